"""External service providers."""

from chunkscribe.providers.registry import get_splitter_tool, get_transcription_service
from chunkscribe.providers.splitter.base import MediaSplitterTool
from chunkscribe.providers.transcription.base import JobStatusResult, TranscriptionService

__all__ = [
    "JobStatusResult",
    "MediaSplitterTool",
    "TranscriptionService",
    "get_splitter_tool",
    "get_transcription_service",
]
