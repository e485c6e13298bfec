"""Submit transcription jobs for one segment."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable, Mapping

from chunkscribe.error_codes import ErrorCode
from chunkscribe.exceptions import ProviderError, SubmissionError
from chunkscribe.models.job import JobStatus, TranscriptionJob
from chunkscribe.models.workflow import SegmentRef
from chunkscribe.providers.transcription.base import TranscriptionService
from chunkscribe.repositories.job_registry import JobRegistry

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^a-zA-Z0-9]")

SubmittedHook = Callable[[TranscriptionJob], None]


def make_job_id(
    key: str,
    language: str,
    *,
    chunk_index: int | None = None,
    now_ms: int | None = None,
) -> str:
    """`job_<sanitized key[:50]>_<language>_<epoch ms>[_chunk<i>]`."""
    safe_key = _UNSAFE.sub("_", str(key or ""))[:50]
    ts = int(now_ms if now_ms is not None else time.time() * 1000)
    suffix = f"_chunk{int(chunk_index)}" if chunk_index else ""
    return f"job_{safe_key}_{language}_{ts}{suffix}"


class TranscriptionJobManager:
    def __init__(
        self,
        service: TranscriptionService,
        registry: JobRegistry,
        *,
        output_bucket: str,
        caption_formats: list[str] | None = None,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self.service = service
        self.registry = registry
        self.output_bucket = output_bucket
        self.caption_formats = list(caption_formats or ["srt"])
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))

    async def submit_one(self, segment: SegmentRef, language: str, language_code: str) -> TranscriptionJob:
        job_id = make_job_id(
            segment.key,
            language,
            chunk_index=segment.chunk_index,
            now_ms=self._clock_ms(),
        )
        try:
            await self.service.submit(
                job_id,
                segment.source.uri,
                language_code,
                self.output_bucket,
                self.caption_formats,
            )
        except SubmissionError:
            raise
        except ProviderError as exc:
            raise SubmissionError(
                exc.provider,
                exc.message,
                transient=exc.transient,
                error_code=exc.error_code or ErrorCode.SUBMISSION_FAILED,
            ) from exc

        job = TranscriptionJob(
            job_id=job_id,
            language=language,
            language_code=language_code,
            source_bucket=segment.bucket,
            source_key=segment.key,
            original_key=segment.original_key,
            base_name=segment.base_name,
            output_bucket=self.output_bucket,
            chunk_index=segment.chunk_index,
            total_chunks=segment.total_chunks,
            status=JobStatus.SUBMITTED,
        )
        await self.registry.put(job)
        logger.info(
            "job submitted (job_id=%s, segment=%s, language=%s)", job_id, segment.label, language
        )
        return job

    async def submit(
        self,
        segment: SegmentRef,
        languages: Mapping[str, str],
        *,
        on_submitted: SubmittedHook | None = None,
    ) -> dict[str, TranscriptionJob]:
        """Submit one job per language concurrently.

        `on_submitted` sees every job that was accepted, even when another
        language fails; the first failure is then re-raised.
        """
        names = list(languages)
        results = await asyncio.gather(
            *(self.submit_one(segment, name, languages[name]) for name in names),
            return_exceptions=True,
        )

        jobs: dict[str, TranscriptionJob] = {}
        first_error: BaseException | None = None
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "job submission failed (segment=%s, language=%s, error=%s)", segment.label, name, result
                )
                first_error = first_error or result
                continue
            jobs[name] = result
            if on_submitted is not None:
                on_submitted(result)

        if first_error is not None:
            raise first_error
        return jobs
