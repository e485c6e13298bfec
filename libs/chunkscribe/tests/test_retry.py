from __future__ import annotations

import asyncio

import pytest

from chunkscribe.config import RetryPolicy
from chunkscribe.exceptions import ProviderError, TransientError, ValidationError
from chunkscribe.pipeline.retry import run_with_retry

POLICY = RetryPolicy(max_retries=3, interval_s=2.0, backoff_rate=2.0)


class _Flaky:
    def __init__(self, failures: list[BaseException], result: str = "ok") -> None:
        self.failures = list(failures)
        self.result = result
        self.attempts = 0

    async def __call__(self) -> str:
        self.attempts += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


@pytest.mark.asyncio
async def test_transient_errors_back_off_exponentially(sleep) -> None:
    fn = _Flaky([TransientError("slow down")] * 3)
    result = await run_with_retry(fn, policy=POLICY, step="check_size", sleep=sleep)
    assert result == "ok"
    assert fn.attempts == 4
    assert sleep.calls == [2.0, 4.0, 8.0]


@pytest.mark.asyncio
async def test_exhausted_retries_reraise_original_error(sleep) -> None:
    fn = _Flaky([TransientError(f"boom {i}") for i in range(5)])
    with pytest.raises(TransientError, match="boom 3"):
        await run_with_retry(fn, policy=POLICY, step="check_size", sleep=sleep)
    assert fn.attempts == 4
    assert sleep.calls == [2.0, 4.0, 8.0]


@pytest.mark.asyncio
async def test_non_transient_errors_are_not_retried(sleep) -> None:
    fn = _Flaky([ValidationError("bad input")])
    with pytest.raises(ValidationError):
        await run_with_retry(fn, policy=POLICY, step="split_media", sleep=sleep)
    assert fn.attempts == 1
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_provider_error_follows_transient_flag(sleep) -> None:
    fn = _Flaky([ProviderError("svc", "throttled", transient=True), ProviderError("svc", "rejected")])
    with pytest.raises(ProviderError, match="rejected"):
        await run_with_retry(fn, policy=POLICY, step="submit_jobs", sleep=sleep)
    assert fn.attempts == 2
    assert sleep.calls == [2.0]


@pytest.mark.asyncio
async def test_attempt_timeout_counts_as_transient(sleep) -> None:
    attempts = 0

    async def _slow_then_fast() -> str:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            await asyncio.sleep(5)
        return "done"

    result = await run_with_retry(_slow_then_fast, policy=POLICY, step="relocate", timeout_s=0.01, sleep=sleep)
    assert result == "done"
    assert attempts == 2
    assert sleep.calls == [2.0]


@pytest.mark.asyncio
async def test_poll_policy_and_wait_cap(sleep) -> None:
    fn = _Flaky([TransientError("x")] * 3)
    policy = RetryPolicy(max_retries=2, interval_s=2.0, backoff_rate=2.0, max_interval_s=3.0)
    with pytest.raises(TransientError):
        await run_with_retry(fn, policy=policy, step="poll_loop", sleep=sleep)
    assert fn.attempts == 3
    assert sleep.calls == [2.0, 3.0]
