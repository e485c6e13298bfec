"""Async-friendly subprocess helpers.

Commands run through `subprocess.run()` inside `asyncio.to_thread()`;
`asyncio.create_subprocess_exec()` child watchers are unreliable in some
worker environments.
"""

from __future__ import annotations

import asyncio
import subprocess
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_tail(self, limit: int = 2000) -> str:
        text = self.stderr.decode("utf-8", errors="ignore").strip()
        return text[-limit:] if len(text) > limit else text


async def run_subprocess(
    args: Sequence[str],
    *,
    capture_output: bool = True,
    check: bool = False,
    timeout_s: float | None = None,
    cwd: str | None = None,
) -> RunResult:
    """Run `args` to completion.

    Raises `TimeoutError` (retryable) when `timeout_s` elapses; the child is
    killed by `subprocess.run` before that happens.
    """
    argv = [str(a) for a in args]
    pipe = subprocess.PIPE if capture_output else subprocess.DEVNULL

    def _run() -> subprocess.CompletedProcess[bytes]:
        return subprocess.run(argv, stdout=pipe, stderr=pipe, check=check, timeout=timeout_s, cwd=cwd)

    try:
        cp = await asyncio.to_thread(_run)
    except subprocess.TimeoutExpired as exc:
        raise TimeoutError(f"{argv[0]} timed out after {timeout_s}s") from exc
    return RunResult(returncode=int(cp.returncode), stdout=cp.stdout or b"", stderr=cp.stderr or b"")
