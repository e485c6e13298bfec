"""Job registry interface and in-memory implementation."""

from __future__ import annotations

import asyncio
import copy
from abc import ABC, abstractmethod

from chunkscribe.exceptions import ArtifactNotFoundError, ValidationError
from chunkscribe.models.job import JobStatus, TranscriptionJob
from chunkscribe.models.workflow import WorkflowExecution


def apply_status(
    job: TranscriptionJob,
    status: JobStatus,
    *,
    output_uri: str | None = None,
    failure_reason: str | None = None,
) -> TranscriptionJob:
    """Return `job` moved to `status`.

    `submitted -> completed|failed` only; writing the current terminal status
    again returns the record unchanged.
    """
    if job.status == status and status.is_terminal:
        return job
    if job.status.is_terminal:
        raise ValidationError(
            f"job {job.job_id} is already {job.status.value}; cannot move to {status.value}"
        )
    if status == JobStatus.SUBMITTED:
        return job
    return job.with_status(status, output_uri=output_uri, failure_reason=failure_reason)


class JobRegistry(ABC):
    """Durable job-id -> job record map."""

    @abstractmethod
    async def put(self, job: TranscriptionJob) -> None:
        ...

    @abstractmethod
    async def get(self, job_id: str) -> TranscriptionJob | None:
        ...

    @abstractmethod
    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        output_uri: str | None = None,
        failure_reason: str | None = None,
    ) -> TranscriptionJob:
        ...

    @abstractmethod
    async def scan(
        self,
        *,
        status: JobStatus | None = None,
        original_key: str | None = None,
    ) -> list[TranscriptionJob]:
        """List records matching every given filter (operator tooling only)."""
        ...

    async def require(self, job_id: str) -> TranscriptionJob:
        job = await self.get(job_id)
        if job is None:
            raise ArtifactNotFoundError(f"job not found in registry: {job_id}")
        return job

    async def close(self) -> None:  # pragma: no cover
        return None


def job_matches(job: TranscriptionJob, status: JobStatus | None, original_key: str | None) -> bool:
    if status is not None and job.status != status:
        return False
    if original_key is not None and job.original_key != original_key:
        return False
    return True


class InMemoryJobRegistry(JobRegistry):
    def __init__(self) -> None:
        self._jobs: dict[str, TranscriptionJob] = {}
        self._lock = asyncio.Lock()

    async def put(self, job: TranscriptionJob) -> None:
        async with self._lock:
            self._jobs[job.job_id] = job

    async def get(self, job_id: str) -> TranscriptionJob | None:
        async with self._lock:
            return self._jobs.get(job_id)

    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        output_uri: str | None = None,
        failure_reason: str | None = None,
    ) -> TranscriptionJob:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise ArtifactNotFoundError(f"job not found in registry: {job_id}")
            updated = apply_status(job, status, output_uri=output_uri, failure_reason=failure_reason)
            self._jobs[job_id] = updated
            return updated

    async def scan(
        self,
        *,
        status: JobStatus | None = None,
        original_key: str | None = None,
    ) -> list[TranscriptionJob]:
        async with self._lock:
            jobs = list(self._jobs.values())
        return sorted(
            (j for j in jobs if job_matches(j, status, original_key)),
            key=lambda j: (j.created_at, j.job_id),
        )


class ExecutionStore(ABC):
    """Snapshots of workflow executions, keyed by execution id."""

    @abstractmethod
    async def save(self, execution: WorkflowExecution) -> None:
        ...

    @abstractmethod
    async def get(self, execution_id: str) -> WorkflowExecution | None:
        ...

    @abstractmethod
    async def list_active(self) -> list[WorkflowExecution]:
        """Executions that have not reached a terminal state."""
        ...


class InMemoryExecutionStore(ExecutionStore):
    def __init__(self) -> None:
        self._items: dict[str, WorkflowExecution] = {}

    async def save(self, execution: WorkflowExecution) -> None:
        self._items[execution.id] = copy.deepcopy(execution)

    async def get(self, execution_id: str) -> WorkflowExecution | None:
        item = self._items.get(execution_id)
        return copy.deepcopy(item) if item is not None else None

    async def list_active(self) -> list[WorkflowExecution]:
        return [copy.deepcopy(e) for e in self._items.values() if not e.is_terminal]
