"""Size-based routing (direct transcription vs. split first)."""

from __future__ import annotations

from chunkscribe.models.workflow import Route


def classify(size_bytes: int, threshold_bytes: int) -> Route:
    """Return `Route.SPLIT` iff `size_bytes > threshold_bytes`."""
    if int(size_bytes) < 0:
        raise ValueError("size_bytes must be >= 0")
    return Route.SPLIT if int(size_bytes) > int(threshold_bytes) else Route.DIRECT


class SizeClassifier:
    def __init__(self, threshold_bytes: int) -> None:
        self.threshold_bytes = int(threshold_bytes)

    def classify(self, size_bytes: int) -> Route:
        return classify(size_bytes, self.threshold_bytes)
