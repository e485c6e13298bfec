"""Provider factory and registry."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from chunkscribe.exceptions import ConfigurationError
from chunkscribe.providers.splitter.base import MediaSplitterTool
from chunkscribe.providers.transcription.base import TranscriptionService


def get_transcription_service(config: Mapping[str, Any]) -> TranscriptionService:
    """Get the speech-to-text job service based on configuration."""
    provider_type = str(config.get("provider", "aws")).strip().lower()

    match provider_type:
        case "aws" | "aws_transcribe":
            from chunkscribe.providers.transcription.aws_transcribe import AWSTranscribeService

            return AWSTranscribeService(region=config.get("region"))
        case "http":
            from chunkscribe.providers.transcription.http_service import HTTPTranscriptionService

            base_url = str(config.get("base_url") or "").strip()
            if not base_url:
                raise ConfigurationError("HTTP transcription service requires base_url")
            return HTTPTranscriptionService(
                base_url=base_url,
                api_key=str(config.get("api_key") or ""),
                timeout=float(config.get("timeout", 30.0)),
            )
        case _:
            raise ConfigurationError(f"Unknown transcription provider: {provider_type}")


def get_splitter_tool(config: Mapping[str, Any]) -> MediaSplitterTool:
    provider_type = str(config.get("provider", "ffmpeg")).strip().lower()

    match provider_type:
        case "ffmpeg":
            from chunkscribe.providers.splitter.ffmpeg import FFmpegSplitterTool

            return FFmpegSplitterTool(
                ffmpeg_bin=str(config.get("ffmpeg_bin") or "ffmpeg"),
                timeout_s=config.get("timeout_s"),
            )
        case _:
            raise ConfigurationError(f"Unknown splitter provider: {provider_type}")
