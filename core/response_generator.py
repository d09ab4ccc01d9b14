"""
# core/response_generator.py

Module Contract
- Purpose: Provider invocation for one turn: bounded retry for one-shot replies, first-chunk retry plus pacing for streamed replies.
- Inputs:
  - generate(prompt: PromptPackage) -> GeneratedReply
  - generate_stream(prompt: PromptPackage) -> AsyncIterator[str]
- Outputs:
  - GeneratedReply(text, finish_reason, usage, attempts), or paced text pieces.
- Behavior:
  - One-shot: ProviderTransientError is retried per RetryPolicy; fatal/unknown errors surface at once.
  - Streaming: opening the stream and receiving the first non-empty chunk is retried under the same policy.
    After the first chunk nothing is retried; any failure becomes StreamInterruptedError.
  - Every chunk goes through the PacingStrategy; joined pieces equal the provider's text exactly.
  - Closing the generator (client disconnect, task cancel) closes the provider stream.
  - An empty provider reply counts as transient.
- Dependencies:
  - models.model_manager.ProviderProtocol (generate_once/generate_stream), core.retry, core.pacing
- Side effects:
  - Logging only; no persistence.
"""
import asyncio
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Tuple

from core.errors import (
    PipelineError,
    ProviderTransientError,
    StreamInterruptedError,
    classify_provider_error,
)
from core.pacing import NoPacing, PacingStrategy
from core.retry import RetryPolicy, retry_async
from core.schemas import GeneratedReply, PromptPackage
from models.model_manager import GenerationConfig, extract_chunk_text
from utils.logging_utils import get_logger, log_and_time

logger = get_logger("response_generator")


class ResponseGenerator:
    """Handles response generation and streaming"""

    def __init__(
        self,
        provider,
        retry_policy: Optional[RetryPolicy] = None,
        pacer: Optional[PacingStrategy] = None,
        config: Optional[GenerationConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.provider = provider
        self.retry_policy = retry_policy or RetryPolicy()
        self.pacer = pacer or NoPacing()
        self.config = config
        self._sleep = sleep
        self.logger = logger

    # ---------------- one-shot ----------------

    async def _call_once(self, prompt: PromptPackage):
        try:
            result = await self.provider.generate_once(prompt, self.config)
        except PipelineError:
            raise
        except Exception as e:
            raise classify_provider_error(e) from e
        if not (result.text or "").strip():
            raise ProviderTransientError("Provider returned an empty reply")
        return result

    @log_and_time("Generate reply")
    async def generate(self, prompt: PromptPackage) -> GeneratedReply:
        """Single, complete reply with bounded retry on transient errors."""
        result, attempts = await retry_async(
            lambda: self._call_once(prompt),
            self.retry_policy,
            sleep=self._sleep,
            label="generate_once",
        )
        if attempts > 1:
            self.logger.info(f"[RETRY] generate_once succeeded after {attempts} attempts")
        return GeneratedReply(
            text=result.text,
            finish_reason=result.finish_reason,
            usage=dict(result.usage),
            attempts=attempts,
        )

    # ---------------- streaming ----------------

    async def _open_stream(self, prompt: PromptPackage) -> Tuple[AsyncIterator[Any], str]:
        """Start a provider stream and pull its first non-empty chunk."""
        stream = self.provider.generate_stream(prompt, self.config)
        try:
            async for chunk in stream:
                text = extract_chunk_text(chunk)
                if text:
                    return stream, text
        except BaseException as e:
            await stream.aclose()
            if isinstance(e, Exception) and not isinstance(e, PipelineError):
                raise classify_provider_error(e) from e
            raise
        await stream.aclose()
        raise ProviderTransientError("Provider stream ended before any content")

    async def generate_stream(self, prompt: PromptPackage) -> AsyncIterator[str]:
        """
        Yield reply text as it arrives, paced for display.
        """
        start_time = time.time()
        (stream, first_text), attempts = await retry_async(
            lambda: self._open_stream(prompt),
            self.retry_policy,
            sleep=self._sleep,
            label="generate_stream",
        )
        self.logger.debug(
            f"[STREAMING] First token arrived after {time.time() - start_time:.2f} seconds (attempts={attempts})"
        )

        total_chars = 0
        try:
            async for piece in self.pacer.pace(first_text):
                yield piece
            total_chars += len(first_text)

            try:
                async for chunk in stream:
                    text = extract_chunk_text(chunk)
                    if not text:
                        continue
                    async for piece in self.pacer.pace(text):
                        yield piece
                    total_chars += len(text)
            except StreamInterruptedError:
                raise
            except Exception as e:
                code = e.code.value if isinstance(e, PipelineError) else type(e).__name__
                self.logger.error(f"[STREAMING] Stream failed after {total_chars} chars: {code}")
                raise StreamInterruptedError(f"Stream interrupted after first chunk: {code}") from e
        finally:
            await stream.aclose()

        self.logger.info(
            f"[TIMING] Full response duration: {time.time() - start_time:.2f}s ({total_chars} chars)"
        )
