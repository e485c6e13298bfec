"""Speech-to-text job services."""

from chunkscribe.providers.transcription.base import JobStatusResult, TranscriptionService

__all__ = ["JobStatusResult", "TranscriptionService"]
