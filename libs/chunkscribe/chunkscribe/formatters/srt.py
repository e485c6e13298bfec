"""SRT caption codec."""

from __future__ import annotations

import logging
import re

from chunkscribe.exceptions import ParseError
from chunkscribe.formatters.base import CaptionCodec
from chunkscribe.models.caption import CaptionTrack, Cue

logger = logging.getLogger(__name__)

_BLOCK_SEP = re.compile(r"\n\s*\n")
_TIMESTAMP = r"(\d{2,}):(\d{2}):(\d{2})[,.](\d{3})"
_TIMING_LINE = re.compile(rf"^\s*{_TIMESTAMP}\s*-->\s*{_TIMESTAMP}")


def _format_srt_timestamp(ms: int) -> str:
    total_ms = max(0, int(ms))
    millis = total_ms % 1000
    total_s = total_ms // 1000
    s = total_s % 60
    total_m = total_s // 60
    m = total_m % 60
    h = total_m // 60
    return f"{h:02d}:{m:02d}:{s:02d},{millis:03d}"


def _to_ms(h: str, m: str, s: str, ms: str) -> int:
    return int(h) * 3_600_000 + int(m) * 60_000 + int(s) * 1000 + int(ms)


def _parse_block(block: str) -> Cue | None:
    lines = block.strip("\n").split("\n")
    if len(lines) < 3:
        return None
    try:
        index = int(lines[0].strip())
    except ValueError:
        return None
    match = _TIMING_LINE.match(lines[1])
    if match is None:
        return None
    text = "\n".join(lines[2:])
    if not text.strip():
        return None
    g = match.groups()
    return Cue(
        index=index,
        start_ms=_to_ms(*g[0:4]),
        end_ms=_to_ms(*g[4:8]),
        text=text,
    )


class SRTCodec(CaptionCodec):
    extension = ".srt"

    def parse(self, document: str) -> CaptionTrack:
        text = str(document or "").replace("\r\n", "\n").replace("\r", "\n").lstrip("\ufeff")
        if not text.strip():
            return CaptionTrack()

        cues: list[Cue] = []
        skipped = 0
        for block in _BLOCK_SEP.split(text.lstrip().rstrip("\n")):
            cue = _parse_block(block)
            if cue is None:
                skipped += 1
                continue
            cues.append(cue)

        if skipped:
            logger.debug("srt parse skipped malformed blocks (skipped=%d, kept=%d)", skipped, len(cues))
        if not cues:
            raise ParseError(f"no valid SRT cues found ({skipped} malformed blocks)")
        return CaptionTrack(tuple(cues))

    def format(self, track: CaptionTrack) -> str:
        parts: list[str] = []
        for cue in sorted(track.cues, key=lambda c: c.index):
            parts.append(
                f"{cue.index}\n"
                f"{_format_srt_timestamp(cue.start_ms)} --> {_format_srt_timestamp(cue.end_ms)}\n"
                f"{cue.text}\n\n"
            )
        return "".join(parts)


_DEFAULT = SRTCodec()


def parse_srt(document: str) -> CaptionTrack:
    return _DEFAULT.parse(document)


def format_srt(track: CaptionTrack) -> str:
    return _DEFAULT.format(track)
