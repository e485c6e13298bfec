"""Media splitter tool abstraction."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class MediaSplitterTool(ABC):
    @abstractmethod
    async def split(self, local_input: str, segment_seconds: int, output_dir: str) -> list[Path]:
        """Cut `local_input` into consecutive segments inside `output_dir`.

        Returns the produced files in playback order. Raises `SplitError`
        when the tool exits abnormally.
        """
        raise NotImplementedError
