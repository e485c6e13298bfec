"""Merge per-chunk caption tracks into one continuous track.

Each chunk is transcribed independently, so its cue timestamps restart at 0.
Chunks are concatenated in index order; every cue of chunk i+1 is shifted by
the largest end time emitted for chunk i plus a fixed gap. Only the cues of
each chunk are needed, never the chunk's true media duration.
"""

from __future__ import annotations

from collections.abc import Sequence

from chunkscribe.exceptions import ValidationError
from chunkscribe.models.caption import CaptionTrack, Cue

DEFAULT_GAP_MS = 100


def merge_caption_tracks(
    tracks: Sequence[CaptionTrack],
    *,
    gap_ms: int = DEFAULT_GAP_MS,
) -> CaptionTrack:
    """Merge `tracks` (ordered by chunk index) into one renumbered track.

    A single track is returned as-is, renumbered 1..N only when its indices
    are not already contiguous. A track without cues leaves the running
    offset untouched.
    """
    tracks = list(tracks or [])
    if not tracks:
        raise ValidationError("merge requires at least one caption track")
    gap_ms = int(gap_ms)
    if gap_ms < 0:
        raise ValueError("gap_ms must be >= 0")

    if len(tracks) == 1:
        return tracks[0].renumbered()

    out: list[Cue] = []
    offset = 0
    next_index = 1
    for track in tracks:
        max_end: int | None = None
        for cue in track.cues:
            end = cue.end_ms + offset
            out.append(
                Cue(
                    index=next_index,
                    start_ms=cue.start_ms + offset,
                    end_ms=end,
                    text=cue.text,
                )
            )
            next_index += 1
            max_end = end if max_end is None else max(max_end, end)

        if max_end is not None:
            offset = max_end + gap_ms

    return CaptionTrack(tuple(out))


class CaptionMerger:
    def __init__(self, gap_ms: int = DEFAULT_GAP_MS) -> None:
        self.gap_ms = int(gap_ms)

    def merge(self, tracks: Sequence[CaptionTrack]) -> CaptionTrack:
        return merge_caption_tracks(tracks, gap_ms=self.gap_ms)
