"""Caption codec base."""

from __future__ import annotations

from abc import ABC, abstractmethod

from chunkscribe.models.caption import CaptionTrack


class CaptionCodec(ABC):
    extension: str = ""

    @abstractmethod
    def parse(self, document: str) -> CaptionTrack:
        ...

    @abstractmethod
    def format(self, track: CaptionTrack) -> str:
        ...
