from __future__ import annotations

import asyncio
import builtins
from collections.abc import Callable
from pathlib import Path

import pytest

from chunkscribe.config import (
    RegistryConfig,
    Settings,
    SplitterConfig,
    StorageConfig,
    TranscriptionConfig,
    WorkflowConfig,
)
from chunkscribe.exceptions import ArtifactNotFoundError, ProviderError
from chunkscribe.models.job import JobStatus
from chunkscribe.pipeline.factory import create_orchestrator
from chunkscribe.pipeline.orchestrator import Orchestrator
from chunkscribe.providers.splitter.base import MediaSplitterTool
from chunkscribe.providers.transcription.base import JobStatusResult, TranscriptionService
from chunkscribe.repositories.job_registry import InMemoryJobRegistry
from chunkscribe.storage.object_store import ObjectInfo, ObjectStore
from chunkscribe.utils.object_uri import parse_object_uri

MB = 1024 * 1024


class InMemoryObjectStore(ObjectStore):
    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.declared_sizes: dict[tuple[str, str], int] = {}
        # op name -> exceptions raised by the next calls of that op, in order
        self.failures: dict[str, list[BaseException]] = {}
        self.calls: list[tuple[str, str, str]] = []

    def _maybe_fail(self, op: str) -> None:
        pending = self.failures.get(op)
        if pending:
            raise pending.pop(0)

    def add(self, bucket: str, key: str, data: bytes = b"media", *, size: int | None = None) -> None:
        self.objects[(bucket, key)] = bytes(data)
        if size is not None:
            self.declared_sizes[(bucket, key)] = int(size)

    def text(self, bucket: str, key: str) -> str:
        return self.objects[(bucket, key)].decode("utf-8")

    def keys(self, bucket: str) -> builtins.list[str]:
        return sorted(k for b, k in self.objects if b == bucket)

    async def head(self, bucket: str, key: str) -> ObjectInfo:
        self.calls.append(("head", bucket, key))
        self._maybe_fail("head")
        if (bucket, key) not in self.objects:
            raise ArtifactNotFoundError(f"{bucket}/{key}")
        size = self.declared_sizes.get((bucket, key), len(self.objects[(bucket, key)]))
        return ObjectInfo(bucket=bucket, key=key, size=size)

    async def get(self, bucket: str, key: str) -> bytes:
        self.calls.append(("get", bucket, key))
        self._maybe_fail("get")
        if (bucket, key) not in self.objects:
            raise ArtifactNotFoundError(f"{bucket}/{key}")
        return self.objects[(bucket, key)]

    async def put(self, bucket: str, key: str, data: bytes, *, content_type: str | None = None) -> str:  # noqa: ARG002
        self.calls.append(("put", bucket, key))
        self._maybe_fail("put")
        self.objects[(bucket, key)] = bytes(data)
        return f"mem://{bucket}/{key}"

    async def list(self, bucket: str, prefix: str = "") -> builtins.list[str]:
        self.calls.append(("list", bucket, prefix))
        self._maybe_fail("list")
        return [k for k in self.keys(bucket) if k.startswith(prefix)]

    async def delete(self, bucket: str, key: str) -> None:
        self.calls.append(("delete", bucket, key))
        self._maybe_fail("delete")
        self.objects.pop((bucket, key), None)


def srt_document(cues: list[tuple[int, int, str]]) -> str:
    def ts(ms: int) -> str:
        h, rem = divmod(ms, 3_600_000)
        m, rem = divmod(rem, 60_000)
        s, millis = divmod(rem, 1000)
        return f"{h:02d}:{m:02d}:{s:02d},{millis:03d}"

    return "".join(
        f"{i}\n{ts(start)} --> {ts(end)}\n{text}\n\n" for i, (start, end, text) in enumerate(cues, start=1)
    )


class FakeTranscriptionService(TranscriptionService):
    """Completes every job after `complete_after` polls and writes its captions.

    `captions(source_key, language)` returns the SRT body written for a job;
    `fail_when(source_key, language)` marks jobs that end up failed.
    """

    name = "fake"

    def __init__(
        self,
        store: InMemoryObjectStore,
        *,
        complete_after: int = 1,
        captions: Callable[[str, str], str] | None = None,
        fail_when: Callable[[str, str], bool] | None = None,
    ) -> None:
        self.store = store
        self.complete_after = int(complete_after)
        self.captions = captions or (lambda key, lang: srt_document([(0, 1000, f"{lang}:{key}")]))
        self.fail_when = fail_when or (lambda key, lang: False)
        self.jobs: dict[str, dict] = {}
        self.submitted: list[str] = []
        self.status_calls: list[str] = []
        self.submit_failures: list[BaseException] = []
        self.status_failures: list[BaseException] = []
        self.closed = 0
        self.in_flight = 0
        self.peak_in_flight = 0

    async def submit(
        self,
        job_id: str,
        source_uri: str,
        language_code: str,
        output_bucket: str,
        caption_formats: list[str],
    ) -> None:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if self.submit_failures:
                raise self.submit_failures.pop(0)
            if job_id in self.jobs:
                raise ProviderError(self.name, f"duplicate job {job_id}")
            source = parse_object_uri(source_uri)
            self.jobs[job_id] = {
                "key": source.key,
                "language_code": language_code,
                "output_bucket": output_bucket,
                "formats": list(caption_formats),
                "polls": 0,
            }
            self.submitted.append(job_id)
        finally:
            self.in_flight -= 1

    async def get_status(self, job_id: str) -> JobStatusResult:
        self.status_calls.append(job_id)
        if self.status_failures:
            raise self.status_failures.pop(0)
        job = self.jobs[job_id]
        job["polls"] += 1
        if job["polls"] < self.complete_after:
            return JobStatusResult(status=JobStatus.SUBMITTED)
        if self.fail_when(job["key"], job["language_code"]):
            return JobStatusResult(status=JobStatus.FAILED, failure_reason="unsupported media")

        bucket = job["output_bucket"]
        body = self.captions(job["key"], job["language_code"])
        self.store.add(bucket, f"{job_id}.srt", body.encode("utf-8"))
        self.store.add(bucket, f"{job_id}.json", b"{}")
        return JobStatusResult(status=JobStatus.COMPLETED, output_uri=f"s3://{bucket}/{job_id}.json")

    async def close(self) -> None:
        self.closed += 1


class FakeSplitterTool(MediaSplitterTool):
    def __init__(self, segments: int = 3, *, error: BaseException | None = None) -> None:
        self.segments = int(segments)
        self.error = error
        self.calls: list[tuple[str, int]] = []

    async def split(self, local_input: str, segment_seconds: int, output_dir: str) -> list[Path]:
        self.calls.append((local_input, segment_seconds))
        if self.error is not None:
            raise self.error
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        ext = Path(local_input).suffix
        paths = []
        for i in range(self.segments):
            p = out / f"chunk_{i:03d}{ext}"
            p.write_bytes(f"segment-{i}".encode())
            paths.append(p)
        return paths


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(float(delay))
        await asyncio.sleep(0)


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        data_dir=str(tmp_path / "data"),
        log_dir=str(tmp_path / "logs"),
        storage=StorageConfig(
            _env_file=None, backend="local", output_bucket="captions", local_root=str(tmp_path / "objects")
        ),
        transcription=TranscriptionConfig(_env_file=None, languages={"english": "en-US"}),
        workflow=WorkflowConfig(_env_file=None),
        splitter=SplitterConfig(_env_file=None, scratch_dir=str(tmp_path / "scratch")),
        registry=RegistryConfig(_env_file=None, backend="memory"),
    )


@pytest.fixture()
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture()
def registry() -> InMemoryJobRegistry:
    return InMemoryJobRegistry()


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def build_orchestrator(settings, store, registry, sleep):
    def _build(
        *,
        service: TranscriptionService | None = None,
        tool: MediaSplitterTool | None = None,
        on_update=None,
    ) -> Orchestrator:
        return create_orchestrator(
            settings,
            store=store,
            service=service or FakeTranscriptionService(store),
            splitter_tool=tool or FakeSplitterTool(),
            registry=registry,
            on_update=on_update,
            sleep=sleep,
        )

    return _build

