"""FFmpeg binary resolution.

A configured path wins, then `ffmpeg` on PATH, then the binary bundled with
the optional `imageio-ffmpeg` package.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def resolve_ffmpeg_bin(ffmpeg_bin: str = "ffmpeg") -> str:
    ffmpeg_bin = (ffmpeg_bin or "ffmpeg").strip()

    if Path(ffmpeg_bin).exists():
        return ffmpeg_bin

    found = shutil.which(ffmpeg_bin)
    if found:
        return found

    try:
        import imageio_ffmpeg

        bundled = str(imageio_ffmpeg.get_ffmpeg_exe())
    except Exception as exc:
        logger.warning("bundled ffmpeg unavailable (error=%s); using %r as-is", exc, ffmpeg_bin)
        return ffmpeg_bin
    logger.info("using bundled ffmpeg (path=%s)", bundled)
    return bundled


def segment_command(
    ffmpeg_bin: str,
    input_path: str,
    output_pattern: str,
    *,
    segment_seconds: int,
) -> list[str]:
    """Stream-copy `input_path` into fixed-duration segments with reset timestamps."""
    return [
        ffmpeg_bin,
        "-hide_banner",
        "-nostdin",
        "-y",
        "-i",
        str(input_path),
        "-f",
        "segment",
        "-segment_time",
        str(int(segment_seconds)),
        "-reset_timestamps",
        "1",
        "-c",
        "copy",
        str(output_pattern),
    ]
