"""Bounded fan-out slots for segment branches."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass


@dataclass(frozen=True)
class ConcurrencyState:
    active: int
    max: int


class FanOutLimiter:
    """At most `limit` branches hold a slot at once; tracks the peak."""

    def __init__(self, limit: int) -> None:
        self._max = max(1, int(limit))
        self._semaphore = asyncio.Semaphore(self._max)
        self._lock = asyncio.Lock()
        self._active = 0
        self._peak = 0

    @property
    def limit(self) -> int:
        return self._max

    @property
    def peak(self) -> int:
        return self._peak

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[ConcurrencyState]:
        async with self._semaphore:
            async with self._lock:
                self._active += 1
                self._peak = max(self._peak, self._active)
                state = ConcurrencyState(active=self._active, max=self._max)
            try:
                yield state
            finally:
                async with self._lock:
                    self._active = max(0, self._active - 1)
