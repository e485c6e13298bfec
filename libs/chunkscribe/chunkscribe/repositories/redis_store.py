"""Redis-backed job registry and execution store."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from chunkscribe.exceptions import ArtifactNotFoundError, TransientError
from chunkscribe.models.job import JobStatus, TranscriptionJob
from chunkscribe.models.workflow import WorkflowExecution
from chunkscribe.repositories.job_registry import (
    ExecutionStore,
    JobRegistry,
    job_matches,
    apply_status,
)

logger = logging.getLogger(__name__)


@contextmanager
def _redis_call(what: str) -> Iterator[None]:
    """Re-raise redis connectivity failures as retryable `TransientError`."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as exc:
        raise TransientError(f"redis {what}: {exc}") from exc


class RedisJobRegistry(JobRegistry):
    """Job records as JSON strings under `<prefix>:job:<job_id>`."""

    def __init__(self, redis: Redis, *, key_prefix: str = "chunkscribe") -> None:
        self.redis = redis
        self.key_prefix = key_prefix.rstrip(":")

    def _key(self, job_id: str) -> str:
        return f"{self.key_prefix}:job:{job_id}"

    async def put(self, job: TranscriptionJob) -> None:
        with _redis_call(f"put job {job.job_id}"):
            await self.redis.set(self._key(job.job_id), json.dumps(job.to_dict()))

    async def get(self, job_id: str) -> TranscriptionJob | None:
        with _redis_call(f"get job {job_id}"):
            raw = await self.redis.get(self._key(job_id))
        if not raw:
            return None
        return TranscriptionJob.from_dict(json.loads(raw))

    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        output_uri: str | None = None,
        failure_reason: str | None = None,
    ) -> TranscriptionJob:
        job = await self.get(job_id)
        if job is None:
            raise ArtifactNotFoundError(f"job not found in registry: {job_id}")
        updated = apply_status(job, status, output_uri=output_uri, failure_reason=failure_reason)
        if updated is not job:
            await self.put(updated)
            logger.debug("job status updated (job_id=%s, status=%s)", job_id, updated.status.value)
        return updated

    async def scan(
        self,
        *,
        status: JobStatus | None = None,
        original_key: str | None = None,
    ) -> list[TranscriptionJob]:
        out: list[TranscriptionJob] = []
        with _redis_call("scan jobs"):
            async for key in self.redis.scan_iter(match=f"{self.key_prefix}:job:*"):
                raw = await self.redis.get(key)
                if not raw:
                    continue
                job = TranscriptionJob.from_dict(json.loads(raw))
                if job_matches(job, status, original_key):
                    out.append(job)
        return sorted(out, key=lambda j: (j.created_at, j.job_id))


class RedisExecutionStore(ExecutionStore):
    """Execution snapshots under `<prefix>:execution:<id>`.

    Terminal executions expire after `ttl_days`; active ones are also tracked
    in the `<prefix>:executions:active` set so the worker can resume them.
    """

    def __init__(self, redis: Redis, *, key_prefix: str = "chunkscribe", ttl_days: int = 30) -> None:
        self.redis = redis
        self.key_prefix = key_prefix.rstrip(":")
        self.ttl_s = int(ttl_days) * 24 * 3600

    def _key(self, execution_id: str) -> str:
        return f"{self.key_prefix}:execution:{execution_id}"

    @property
    def _active_key(self) -> str:
        return f"{self.key_prefix}:executions:active"

    async def save(self, execution: WorkflowExecution) -> None:
        execution.updated_at = datetime.now(tz=timezone.utc)
        payload = json.dumps(execution.to_dict())
        if execution.is_terminal:
            await self.redis.set(self._key(execution.id), payload, ex=self.ttl_s)
            await self.redis.srem(self._active_key, execution.id)
        else:
            await self.redis.set(self._key(execution.id), payload)
            await self.redis.sadd(self._active_key, execution.id)

    async def get(self, execution_id: str) -> WorkflowExecution | None:
        raw = await self.redis.get(self._key(execution_id))
        if not raw:
            return None
        return WorkflowExecution.from_dict(json.loads(raw))

    async def list_active(self) -> list[WorkflowExecution]:
        out: list[WorkflowExecution] = []
        for execution_id in sorted(await self.redis.smembers(self._active_key)):
            execution = await self.get(str(execution_id))
            if execution is None:
                await self.redis.srem(self._active_key, execution_id)
                continue
            if not execution.is_terminal:
                out.append(execution)
        return out
