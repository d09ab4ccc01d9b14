"""
Unit tests for core/pacing.py

Tests:
- NoPacing pass-through
- TypingPacer splits oversized chunks and reassembles exactly
- Delays only between pieces, within the configured range
"""

import random

import pytest
from core.pacing import NoPacing, PacingStrategy, TypingPacer


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


async def _collect(pacer, chunk):
    return [piece async for piece in pacer.pace(chunk)]


# =============================================================================
# NoPacing Tests
# =============================================================================

@pytest.mark.asyncio
async def test_no_pacing_passes_chunk_through():
    """The chunk comes out unchanged in one piece"""
    assert await _collect(NoPacing(), "สวัสดีค่ะ") == ["สวัสดีค่ะ"]


@pytest.mark.asyncio
async def test_no_pacing_skips_empty():
    """Empty chunks produce nothing"""
    assert await _collect(NoPacing(), "") == []


def test_strategies_satisfy_protocol():
    """Both strategies implement PacingStrategy"""
    assert isinstance(NoPacing(), PacingStrategy)
    assert isinstance(TypingPacer(), PacingStrategy)


# =============================================================================
# TypingPacer Tests
# =============================================================================

@pytest.mark.asyncio
async def test_typing_pacer_reassembles_exactly():
    """Joined pieces equal the input chunk"""
    sleep = SleepRecorder()
    pacer = TypingPacer(min_chars=2, max_chars=6, delay_min_ms=15, delay_max_ms=45,
                        oversized_chars=12, rng=random.Random(42), sleep=sleep)
    chunk = "การดูแลผู้สูงอายุต้องใช้ความอดทนและความเข้าใจ ลองพักบ้างนะคะ"

    pieces = await _collect(pacer, chunk)

    assert "".join(pieces) == chunk
    assert len(pieces) > 1
    assert all(1 <= len(p) <= 6 for p in pieces)
    assert all(2 <= len(p) for p in pieces[:-1])


@pytest.mark.asyncio
async def test_typing_pacer_delays_between_pieces_only():
    """One delay per gap, each within the configured range"""
    sleep = SleepRecorder()
    pacer = TypingPacer(min_chars=3, max_chars=3, delay_min_ms=10, delay_max_ms=20,
                        oversized_chars=5, rng=random.Random(1), sleep=sleep)

    pieces = await _collect(pacer, "abcdefghij")

    assert pieces == ["abc", "def", "ghi", "j"]
    assert len(sleep.delays) == len(pieces) - 1
    assert all(0.010 <= d <= 0.020 for d in sleep.delays)


@pytest.mark.asyncio
async def test_small_chunk_not_split():
    """Chunks at or under the oversized threshold pass through whole"""
    sleep = SleepRecorder()
    pacer = TypingPacer(oversized_chars=12, rng=random.Random(3), sleep=sleep)

    assert await _collect(pacer, "short chunk") == ["short chunk"]
    assert sleep.delays == []


def test_split_is_deterministic_for_seed():
    """The same seed gives the same pieces"""
    text = "The quick brown fox jumps over the lazy dog"
    a = TypingPacer(rng=random.Random(5)).split(text)
    b = TypingPacer(rng=random.Random(5)).split(text)

    assert a == b
    assert "".join(a) == text


@pytest.mark.parametrize("min_chars, max_chars", [(0, 3), (5, 2)])
def test_invalid_piece_sizes(min_chars, max_chars):
    """Piece sizes must satisfy 1 <= min <= max"""
    with pytest.raises(ValueError):
        TypingPacer(min_chars=min_chars, max_chars=max_chars)
