# core/pacing.py
"""
Chunk pacing for streamed replies.

Providers sometimes deliver large chunks at once; for an interactive UI those
are split into small pieces with a short pause so the reply reads as if it is
being typed. Pacing is presentation only: for every strategy the concatenation
of the yielded pieces equals the input chunk.
"""

import asyncio
import random
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol, runtime_checkable

from config.app_config import (
    PACING_DELAY_MAX_MS,
    PACING_DELAY_MIN_MS,
    PACING_ENABLED,
    PACING_OVERSIZED_CHUNK_CHARS,
    PACING_PIECE_MAX_CHARS,
    PACING_PIECE_MIN_CHARS,
)


@runtime_checkable
class PacingStrategy(Protocol):
    def pace(self, chunk: str) -> AsyncIterator[str]:
        """Yield pieces of `chunk` whose concatenation is exactly `chunk`."""
        ...


class NoPacing:
    """Pass-through; used for non-interactive callers and tests."""

    async def pace(self, chunk: str) -> AsyncIterator[str]:
        if chunk:
            yield chunk


class TypingPacer:
    """Split oversized chunks into pseudo-random pieces with a short delay between them."""

    def __init__(
        self,
        min_chars: int = PACING_PIECE_MIN_CHARS,
        max_chars: int = PACING_PIECE_MAX_CHARS,
        delay_min_ms: int = PACING_DELAY_MIN_MS,
        delay_max_ms: int = PACING_DELAY_MAX_MS,
        oversized_chars: int = PACING_OVERSIZED_CHUNK_CHARS,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if min_chars < 1 or max_chars < min_chars:
            raise ValueError("piece sizes must satisfy 1 <= min_chars <= max_chars")
        self.min_chars = min_chars
        self.max_chars = max_chars
        self.delay_min_ms = delay_min_ms
        self.delay_max_ms = max(delay_min_ms, delay_max_ms)
        self.oversized_chars = oversized_chars
        self._rng = rng or random.Random()
        self._sleep = sleep

    def split(self, chunk: str):
        """Deterministic given the rng state; pieces always cover the whole chunk."""
        pieces = []
        i = 0
        while i < len(chunk):
            size = self._rng.randint(self.min_chars, self.max_chars)
            pieces.append(chunk[i:i + size])
            i += size
        return pieces

    async def pace(self, chunk: str) -> AsyncIterator[str]:
        if not chunk:
            return
        if len(chunk) <= self.oversized_chars:
            yield chunk
            return
        pieces = self.split(chunk)
        for idx, piece in enumerate(pieces):
            yield piece
            if idx < len(pieces) - 1:
                delay_ms = self._rng.uniform(self.delay_min_ms, self.delay_max_ms)
                await self._sleep(delay_ms / 1000.0)


def default_pacer() -> PacingStrategy:
    return TypingPacer() if PACING_ENABLED else NoPacing()
