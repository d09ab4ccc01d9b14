"""
Tests for core/response_generator.py

Tests:
- One-shot generation with bounded retry
- Streaming: reassembly equals the one-shot text, with and without pacing
- First-chunk retry, mid-stream interruption
- Closing the stream early closes the provider stream
"""

import random

import openai
import httpx
import pytest
from core.errors import ProviderFatalError, ProviderTransientError, StreamInterruptedError, UnknownPipelineError
from core.pacing import NoPacing, TypingPacer
from core.response_generator import ResponseGenerator
from core.retry import RetryPolicy
from core.schemas import Language, Mode, PromptPackage, Topic
from tests.fakes import FakeProvider, no_sleep

POLICY = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=30.0, jitter=0.0)


@pytest.fixture
def prompt():
    return PromptPackage(
        system_prompt="system",
        user_prompt="ผู้ใช้: สวัสดีค่ะ",
        topic=Topic.GENERAL,
        mode=Mode.CONVERSATION,
        language=Language.THAI,
    )


def _generator(provider, pacer=None):
    return ResponseGenerator(provider, retry_policy=POLICY, pacer=pacer or NoPacing(), sleep=no_sleep)


async def _drain(agen):
    return [piece async for piece in agen]


# =============================================================================
# One-shot
# =============================================================================

@pytest.mark.asyncio
async def test_generate_returns_reply(prompt):
    """Happy path: one call, text passed through"""
    provider = FakeProvider(reply="สวัสดีค่ะ ยินดีช่วยเหลือ")

    reply = await _generator(provider).generate(prompt)

    assert reply.text == "สวัสดีค่ะ ยินดีช่วยเหลือ"
    assert reply.attempts == 1
    assert provider.calls == 1
    assert provider.prompts == [prompt]


@pytest.mark.asyncio
async def test_generate_retries_transient(prompt):
    """Two transient failures then success: three provider calls"""
    provider = FakeProvider(failures=[ProviderTransientError("429"), ProviderTransientError("503")])

    reply = await _generator(provider).generate(prompt)

    assert provider.calls == 3
    assert reply.attempts == 3


@pytest.mark.asyncio
async def test_generate_maps_raw_sdk_errors(prompt):
    """Raw SDK exceptions from the provider are mapped before retry decisions"""
    request = httpx.Request("POST", "https://example.invalid/v1/chat/completions")
    provider = FakeProvider(failures=[openai.APITimeoutError(request=request)])

    reply = await _generator(provider).generate(prompt)

    assert provider.calls == 2
    assert reply.attempts == 2


@pytest.mark.asyncio
async def test_generate_fatal_not_retried(prompt):
    """A fatal error surfaces after a single call"""
    provider = FakeProvider(failures=[ProviderFatalError("401")])

    with pytest.raises(ProviderFatalError):
        await _generator(provider).generate(prompt)

    assert provider.calls == 1


@pytest.mark.asyncio
async def test_generate_unknown_error(prompt):
    """Unrecognised exceptions become UNKNOWN and are not retried"""
    provider = FakeProvider(failures=[ValueError("weird")])

    with pytest.raises(UnknownPipelineError):
        await _generator(provider).generate(prompt)

    assert provider.calls == 1


@pytest.mark.asyncio
async def test_empty_reply_is_transient(prompt):
    """A blank reply is retried and finally surfaces as transient"""
    provider = FakeProvider(reply="   ")

    with pytest.raises(ProviderTransientError):
        await _generator(provider).generate(prompt)

    assert provider.calls == 3


# =============================================================================
# Streaming
# =============================================================================

@pytest.mark.asyncio
async def test_stream_reassembles_to_one_shot_text(prompt):
    """Joined stream pieces equal the non-streamed reply"""
    text = "ลองพาคุณแม่ออกไปเดินเล่นตอนเช้าค่ะ แสงแดดช่วยเรื่องการนอน"
    chunks = [text[:5], text[5:20], text[20:]]
    provider = FakeProvider(reply=text, chunks=chunks)
    generator = _generator(provider)

    streamed = "".join(await _drain(generator.generate_stream(prompt)))
    one_shot = (await generator.generate(prompt)).text

    assert streamed == one_shot == text


@pytest.mark.asyncio
async def test_stream_with_typing_pacer_reassembles(prompt):
    """Pacing changes the piece boundaries, never the text"""
    text = "การดูแลผู้สูงอายุต้องใช้ความอดทน ลองพักบ้างนะคะ ดูแลตัวเองด้วยค่ะ"
    provider = FakeProvider(reply=text, chunks=[text[:30], text[30:]])
    pacer = TypingPacer(min_chars=2, max_chars=6, oversized_chars=12, rng=random.Random(9), sleep=no_sleep)

    pieces = await _drain(_generator(provider, pacer=pacer).generate_stream(prompt))

    assert "".join(pieces) == text
    assert len(pieces) > 2


@pytest.mark.asyncio
async def test_stream_skips_empty_chunks(prompt):
    """Empty deltas are ignored"""
    provider = FakeProvider(chunks=["", "สวัสดี", "", "ค่ะ"])

    pieces = await _drain(_generator(provider).generate_stream(prompt))

    assert pieces == ["สวัสดี", "ค่ะ"]


@pytest.mark.asyncio
async def test_stream_retries_before_first_chunk(prompt):
    """Failures while opening the stream are retried"""
    provider = FakeProvider(
        chunks=["a", "b"],
        stream_failures=[ProviderTransientError("503"), ProviderTransientError("503")],
    )

    pieces = await _drain(_generator(provider).generate_stream(prompt))

    assert pieces == ["a", "b"]
    assert provider.stream_calls == 3


@pytest.mark.asyncio
async def test_stream_empty_is_retried(prompt):
    """A stream that ends without content counts as transient"""
    provider = FakeProvider(chunks=[])

    with pytest.raises(ProviderTransientError):
        await _drain(_generator(provider).generate_stream(prompt))

    assert provider.stream_calls == 3
    assert provider.closed == 3


@pytest.mark.asyncio
async def test_stream_fatal_open_not_retried(prompt):
    """A fatal error before the first chunk surfaces at once"""
    provider = FakeProvider(stream_failures=[ProviderFatalError("401")])

    with pytest.raises(ProviderFatalError):
        await _drain(_generator(provider).generate_stream(prompt))

    assert provider.stream_calls == 1


@pytest.mark.asyncio
async def test_stream_interrupted_after_first_chunk(prompt):
    """After the first chunk, failures are not retried and become STREAM_INTERRUPTED"""
    provider = FakeProvider(chunks=["first", "second"], fail_after_first=ProviderTransientError("reset"))
    received = []

    with pytest.raises(StreamInterruptedError):
        async for piece in _generator(provider).generate_stream(prompt):
            received.append(piece)

    assert received == ["first"]
    assert provider.stream_calls == 1
    assert provider.closed == 1


@pytest.mark.asyncio
async def test_closing_stream_closes_provider(prompt):
    """A consumer that stops early releases the provider stream"""
    provider = FakeProvider(chunks=["one", "two", "three"])
    stream = _generator(provider).generate_stream(prompt)

    assert await stream.__anext__() == "one"
    await stream.aclose()

    assert provider.closed == 1
