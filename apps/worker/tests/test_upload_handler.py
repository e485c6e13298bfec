from __future__ import annotations

import fnmatch
import json
from pathlib import Path

import pytest

from chunkscribe.config import RegistryConfig, Settings, StorageConfig, TranscriptionConfig, WorkflowConfig
from chunkscribe.models.job import JobStatus
from chunkscribe.models.workflow import WorkflowExecution, WorkflowState
from chunkscribe.providers.transcription.base import JobStatusResult, TranscriptionService
from chunkscribe.storage.object_store import LocalObjectStore
from handlers.upload_handler import process_upload_event
from recovery import resume_active_executions


class _FakeRedis:
    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:  # noqa: ARG002
        self.values[key] = value
        return True

    async def sadd(self, key: str, *members: str) -> int:
        self.sets.setdefault(key, set()).update(members)
        return len(members)

    async def srem(self, key: str, *members: str) -> int:
        self.sets.setdefault(key, set()).difference_update(members)
        return len(members)

    async def smembers(self, key: str) -> set[str]:
        return set(self.sets.get(key, set()))

    async def scan_iter(self, match: str | None = None):
        for key in sorted(self.values):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key


class _InstantService(TranscriptionService):
    """Completes every job on its first status check."""

    def __init__(self, store: LocalObjectStore) -> None:
        self.store = store
        self.jobs: dict[str, str] = {}
        self.closed = 0

    async def submit(self, job_id, source_uri, language_code, output_bucket, caption_formats) -> None:  # noqa: ANN001
        self.jobs[job_id] = output_bucket

    async def get_status(self, job_id: str) -> JobStatusResult:
        bucket = self.jobs[job_id]
        await self.store.put_text(bucket, f"{job_id}.srt", "1\n00:00:00,000 --> 00:00:01,000\nhi\n\n")
        return JobStatusResult(status=JobStatus.COMPLETED, output_uri=f"s3://{bucket}/{job_id}.json")

    async def close(self) -> None:
        self.closed += 1


async def _no_sleep(delay: float) -> None:  # noqa: ARG001
    return None


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        data_dir=str(tmp_path / "data"),
        log_dir=str(tmp_path / "logs"),
        storage=StorageConfig(
            _env_file=None, backend="local", output_bucket="captions", local_root=str(tmp_path / "objects")
        ),
        transcription=TranscriptionConfig(_env_file=None, languages={"english": "en-US"}),
        workflow=WorkflowConfig(_env_file=None),
        registry=RegistryConfig(_env_file=None, backend="redis", key_prefix="test"),
    )


@pytest.fixture()
def store(settings: Settings) -> LocalObjectStore:
    root = Path(settings.storage.local_root)
    (root / "uploads").mkdir(parents=True)
    (root / "uploads" / "my clip.mp4").write_bytes(b"media")
    return LocalObjectStore(str(root))


@pytest.mark.asyncio
async def test_s3_event_runs_workflow_and_persists_snapshots(settings, store) -> None:
    redis = _FakeRedis()
    event = {"Records": [{"s3": {"bucket": {"name": "uploads"}, "object": {"key": "my+clip.mp4"}}}]}
    service = _InstantService(store)

    execution = await process_upload_event(event, redis, settings, store=store, service=service, sleep=_no_sleep)

    assert execution is not None
    assert execution.state == WorkflowState.SUCCESS
    assert await store.get_text("captions", "my clip/english.srt")

    saved = json.loads(redis.values[f"test:execution:{execution.id}"])
    assert saved["state"] == "success"
    assert redis.sets["test:executions:active"] == set()
    job_keys = [k for k in redis.values if k.startswith("test:job:")]
    assert len(job_keys) == 1
    assert json.loads(redis.values[job_keys[0]])["status"] == "completed"
    assert service.closed == 1


@pytest.mark.asyncio
async def test_segment_and_output_uploads_are_ignored(settings, store) -> None:
    redis = _FakeRedis()

    assert await process_upload_event({"bucket": "uploads", "key": "chunks/movie/chunk_001.mp4"}, redis, settings) is None
    assert await process_upload_event({"bucket": "captions", "key": "movie/english.srt"}, redis, settings) is None
    assert await process_upload_event({"Records": []}, redis, settings) is None
    assert redis.values == {}


@pytest.mark.asyncio
async def test_startup_resumes_unfinished_executions(settings, store) -> None:
    redis = _FakeRedis()
    pending = WorkflowExecution.from_event({"bucket": "uploads", "key": "my clip.mp4"})
    redis.values[f"test:execution:{pending.id}"] = json.dumps(pending.to_dict())
    redis.sets["test:executions:active"] = {pending.id}

    resumed = await resume_active_executions(
        redis=redis, settings=settings, store=store, service=_InstantService(store), sleep=_no_sleep
    )

    assert resumed == 1
    assert json.loads(redis.values[f"test:execution:{pending.id}"])["state"] == "success"
    assert await resume_active_executions(redis=redis, settings=settings) == 0
