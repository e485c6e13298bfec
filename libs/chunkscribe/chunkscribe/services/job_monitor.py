"""Poll transcription jobs and record their terminal status."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from chunkscribe.models.job import JobStatus, TranscriptionJob
from chunkscribe.providers.transcription.base import TranscriptionService
from chunkscribe.repositories.job_registry import JobRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollResult:
    job: TranscriptionJob
    changed: bool = False

    @property
    def status(self) -> JobStatus:
        return self.job.status


@dataclass(frozen=True)
class AwaitResult:
    completed: list[TranscriptionJob] = field(default_factory=list)
    failed: list[TranscriptionJob] = field(default_factory=list)
    pending: list[TranscriptionJob] = field(default_factory=list)

    @property
    def all_complete(self) -> bool:
        return not self.failed and not self.pending and bool(self.completed)

    @property
    def any_failed(self) -> bool:
        return bool(self.failed)


class JobMonitor:
    """Direct per-job polling; the wait between rounds belongs to the caller."""

    def __init__(self, service: TranscriptionService, registry: JobRegistry) -> None:
        self.service = service
        self.registry = registry

    async def poll(self, job: TranscriptionJob) -> PollResult:
        current = await self.registry.get(job.job_id) or job
        if current.status.is_terminal:
            return PollResult(job=current)

        result = await self.service.get_status(current.job_id)
        if result.status == JobStatus.SUBMITTED:
            return PollResult(job=current)

        updated = await self.registry.update_status(
            current.job_id,
            result.status,
            output_uri=result.output_uri,
            failure_reason=result.failure_reason,
        )
        if updated.status == JobStatus.FAILED:
            logger.warning(
                "transcription job failed (job_id=%s, reason=%s)", updated.job_id, updated.failure_reason
            )
        else:
            logger.info("transcription job completed (job_id=%s, output=%s)", updated.job_id, updated.output_uri)
        return PollResult(job=updated, changed=True)

    async def await_all(self, jobs: Sequence[TranscriptionJob]) -> AwaitResult:
        """Poll every job once and partition the set by status."""
        results = await asyncio.gather(*(self.poll(job) for job in jobs))
        completed: list[TranscriptionJob] = []
        failed: list[TranscriptionJob] = []
        pending: list[TranscriptionJob] = []
        for r in results:
            match r.status:
                case JobStatus.COMPLETED:
                    completed.append(r.job)
                case JobStatus.FAILED:
                    failed.append(r.job)
                case _:
                    pending.append(r.job)
        return AwaitResult(completed=completed, failed=failed, pending=pending)
