"""FFmpeg segment muxer splitter."""

from __future__ import annotations

import logging
from pathlib import Path

from chunkscribe.exceptions import SplitError
from chunkscribe.providers.splitter.base import MediaSplitterTool
from chunkscribe.utils.ffmpeg import resolve_ffmpeg_bin, segment_command
from chunkscribe.utils.subprocess import run_subprocess

logger = logging.getLogger(__name__)

SEGMENT_STEM = "chunk_"


class FFmpegSplitterTool(MediaSplitterTool):
    def __init__(self, ffmpeg_bin: str = "ffmpeg", *, timeout_s: float | None = None) -> None:
        self.ffmpeg_bin = resolve_ffmpeg_bin(ffmpeg_bin)
        self.timeout_s = timeout_s

    async def split(self, local_input: str, segment_seconds: int, output_dir: str) -> list[Path]:
        if int(segment_seconds) <= 0:
            raise ValueError("segment_seconds must be > 0")
        out_dir = Path(output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        ext = Path(local_input).suffix or ".mp4"
        pattern = out_dir / f"{SEGMENT_STEM}%03d{ext}"

        args = segment_command(
            self.ffmpeg_bin,
            str(local_input),
            str(pattern),
            segment_seconds=int(segment_seconds),
        )
        try:
            result = await run_subprocess(args, timeout_s=self.timeout_s)
        except FileNotFoundError as exc:
            raise SplitError(
                f"ffmpeg binary not found: {self.ffmpeg_bin}. Install ffmpeg, install "
                "`imageio-ffmpeg`, or set SPLITTER_FFMPEG_BIN."
            ) from exc
        if not result.ok:
            raise SplitError(f"ffmpeg failed (code={result.returncode}): {result.stderr_tail()}")

        # `%03d` sorts lexically up to 1000 segments.
        produced = sorted(
            p for p in out_dir.iterdir() if p.is_file() and p.name.startswith(SEGMENT_STEM) and p.suffix == ext
        )
        logger.info(
            "ffmpeg split done (input=%s, segment_s=%s, segments=%d)",
            Path(local_input).name,
            segment_seconds,
            len(produced),
        )
        return produced
