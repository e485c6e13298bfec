"""chunkscribe exception hierarchy."""

from __future__ import annotations

import asyncio

from chunkscribe.error_codes import ErrorCode


class ChunkscribeError(Exception):
    """Base error for chunkscribe."""


class ConfigurationError(ChunkscribeError):
    """Raised when configuration is invalid."""


class ValidationError(ChunkscribeError):
    """Raised for bad inputs that retrying cannot fix."""


class ParseError(ValidationError):
    """Raised when a caption document contains no usable cues."""


class SplitError(ValidationError):
    """Raised when the splitter tool fails or produces no segments."""


class TransientError(ChunkscribeError):
    """Raised for failures that are expected to succeed on retry."""


class ArtifactNotFoundError(ChunkscribeError):
    """Raised when an expected object is missing."""


class ProviderError(ChunkscribeError):
    """Raised when an external service call fails."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        transient: bool = False,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.transient = bool(transient)
        self.error_code = error_code


class SubmissionError(ProviderError):
    """Raised when the transcription service rejects a job submission."""


class JobFailedError(ChunkscribeError):
    """Raised when a transcription job reaches the failed state."""

    def __init__(self, job_id: str, reason: str | None = None) -> None:
        super().__init__(f"transcription job {job_id} failed: {reason or 'unknown reason'}")
        self.job_id = job_id
        self.reason = reason


class StageExecutionError(ChunkscribeError):
    """Raised when a workflow step fails for good."""

    def __init__(
        self,
        stage: str,
        message: str,
        *,
        execution_id: str | None = None,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        prefix = f"{stage}"
        if execution_id:
            prefix = f"{prefix} (execution_id={execution_id})"
        super().__init__(f"{prefix}: {message}")
        self.stage = stage
        self.execution_id = execution_id
        self.message = message
        self.error_code = error_code


def is_transient(exc: BaseException) -> bool:
    """Return True when `exc` should be retried by the workflow retry policy."""
    if isinstance(exc, TransientError):
        return True
    if isinstance(exc, ProviderError):
        return exc.transient
    return isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError))
