"""Caption codecs."""

from chunkscribe.formatters.base import CaptionCodec
from chunkscribe.formatters.srt import SRTCodec, format_srt, parse_srt

__all__ = ["CaptionCodec", "SRTCodec", "format_srt", "parse_srt"]
