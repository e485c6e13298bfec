"""Caption cue/track models."""

from __future__ import annotations

from dataclasses import dataclass, field

from chunkscribe.exceptions import ValidationError


@dataclass(frozen=True)
class Cue:
    """One caption; `text` must not be blank."""

    index: int
    start_ms: int
    end_ms: int
    text: str

    def __post_init__(self) -> None:
        if not str(self.text or "").strip():
            raise ValidationError(f"cue {self.index} has no text")


@dataclass(frozen=True)
class CaptionTrack:
    """Ordered cues for one file (or one segment) in one language."""

    cues: tuple[Cue, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "cues", tuple(self.cues))

    def __len__(self) -> int:
        return len(self.cues)

    def __iter__(self):  # noqa: ANN204
        return iter(self.cues)

    @property
    def is_contiguous(self) -> bool:
        return all(cue.index == i for i, cue in enumerate(self.cues, start=1))

    def renumbered(self) -> "CaptionTrack":
        if self.is_contiguous:
            return self
        return CaptionTrack(
            tuple(
                Cue(index=i, start_ms=c.start_ms, end_ms=c.end_ms, text=c.text)
                for i, c in enumerate(self.cues, start=1)
            )
        )
