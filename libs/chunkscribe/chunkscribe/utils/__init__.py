"""Utility helpers."""

from chunkscribe.utils.caption_merger import CaptionMerger, merge_caption_tracks
from chunkscribe.utils.object_uri import caption_key_for, parse_object_uri
from chunkscribe.utils.subprocess import RunResult, run_subprocess

__all__ = [
    "CaptionMerger",
    "merge_caption_tracks",
    "caption_key_for",
    "parse_object_uri",
    "RunResult",
    "run_subprocess",
]
