"""Speech-to-text job service base class."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from chunkscribe.models.job import JobStatus


@dataclass(frozen=True)
class JobStatusResult:
    """Status of one job as reported by the service."""

    status: JobStatus
    output_uri: str | None = None
    failure_reason: str | None = None


class TranscriptionService(ABC):
    """Asynchronous (submit, then poll) speech-to-text job service."""

    name: str = "transcription"

    @abstractmethod
    async def submit(
        self,
        job_id: str,
        source_uri: str,
        language_code: str,
        output_bucket: str,
        caption_formats: list[str],
    ) -> None:
        """Start a transcription job.

        Args:
            job_id: Caller-chosen unique job name.
            source_uri: `s3://bucket/key` of the media to transcribe.
            language_code: Service language code (e.g. `en-US`).
            output_bucket: Bucket the service writes its outputs to.
            caption_formats: Caption formats to produce; always includes `srt`.

        Raises:
            ProviderError: The service rejected the job or could not be reached.
        """
        ...

    @abstractmethod
    async def get_status(self, job_id: str) -> JobStatusResult:
        """Return the current status of a previously submitted job."""
        ...

    async def close(self) -> None:  # pragma: no cover
        return None
