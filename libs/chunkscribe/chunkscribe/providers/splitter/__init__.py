"""Media splitter tools."""

from chunkscribe.providers.splitter.base import MediaSplitterTool

__all__ = ["MediaSplitterTool"]
