"""
# models/model_manager.py

Module Contract
- Purpose: Single interface over an OpenAI-compatible chat completion endpoint (OpenRouter by default) for one-shot and streamed generation.
- Inputs:
  - generate_once(prompt: PromptPackage, config: GenerationConfig=?) -> ProviderResult
  - generate_stream(prompt: PromptPackage, config: GenerationConfig=?) -> AsyncIterator[str]
  - validate_connection() -> bool
- Outputs:
  - ProviderResult(text, finish_reason, usage) or text deltas.
- Behavior:
  - Every SDK/transport exception is mapped once, here, via core.errors.classify_provider_error.
  - A missing API key is a fatal configuration error, never a silent stub.
  - Closing a stream generator early closes the underlying HTTP response.
- Dependencies:
  - openai.AsyncOpenAI over an httpx.AsyncClient (shared connection pool)
- Side effects:
  - Holds an HTTP client; exposes aclose() to release it.
"""
import asyncio
import os
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Tuple, runtime_checkable

import httpx
from openai import AsyncOpenAI

from config.app_config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_P,
    PROVIDER_API_KEY,
    PROVIDER_BASE_URL,
    PROVIDER_MODEL,
    PROVIDER_TIMEOUT_S,
    VALIDATE_TIMEOUT_S,
)
from core.errors import PipelineError, ProviderFatalError, classify_provider_error
from core.schemas import Language, Mode, PromptPackage, Topic
from utils.logging_utils import get_logger, log_and_time

logger = get_logger("model_manager")

# Stop sequences to keep the model from writing the user's next line
STOP_SEQUENCES = ["\n\nUser:", "\n\nผู้ใช้:"]


@dataclass(frozen=True)
class GenerationConfig:
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = DEFAULT_TOP_P
    max_tokens: int = DEFAULT_MAX_TOKENS
    stop: Tuple[str, ...] = tuple(STOP_SEQUENCES)


@dataclass(frozen=True)
class ProviderResult:
    text: str
    finish_reason: str = "stop"
    usage: Dict[str, int] = field(default_factory=dict)


@runtime_checkable
class ProviderProtocol(Protocol):
    """What the response generator needs from a text provider."""

    async def generate_once(self, prompt: PromptPackage, config: Optional[GenerationConfig] = None) -> ProviderResult:
        ...

    def generate_stream(self, prompt: PromptPackage, config: Optional[GenerationConfig] = None) -> AsyncIterator[str]:
        ...

    async def validate_connection(self) -> bool:
        ...


def extract_chunk_text(chunk: Any) -> str:
    """Text delta from any of the streaming chunk shapes we see in practice."""
    # OpenAI-style ChatCompletionChunk
    choices = getattr(chunk, "choices", None)
    if choices:
        delta = getattr(choices[0], "delta", None)
        return (getattr(delta, "content", "") or "") if delta is not None else ""
    # Plain string chunk (fakes, local streams)
    if isinstance(chunk, str):
        return chunk
    # Dict-like chunk with direct content
    if isinstance(chunk, dict):
        return chunk.get("content") or chunk.get("text") or ""
    return ""


def _usage_dict(usage: Any) -> Dict[str, int]:
    if usage is None:
        return {}
    out = {}
    for key in ("prompt_tokens", "completion_tokens", "total_tokens"):
        value = getattr(usage, key, None)
        if isinstance(value, int):
            out[key] = value
    return out


class ModelManager:
    """Manager for the API chat model used by the pipeline."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = PROVIDER_BASE_URL,
        model: str = PROVIDER_MODEL,
        timeout_s: float = PROVIDER_TIMEOUT_S,
        client: Optional[Any] = None,
    ):
        self.api_key = api_key or PROVIDER_API_KEY or os.getenv("OPENAI_API_KEY")
        self.base_url = base_url
        self.model = model
        self.default_config = GenerationConfig()
        self._http_client: Optional[httpx.AsyncClient] = None

        if client is not None:
            # Pre-built client (tests, shared pools)
            self.async_client = client
        elif self.api_key:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(timeout_s),
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=10),
                headers={"Connection": "keep-alive"},
            )
            self.async_client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                http_client=self._http_client,
            )
        else:
            logger.warning("[ModelManager] No API key configured; provider calls will fail as PROVIDER_FATAL")
            self.async_client = None

    # ---------- helpers ----------

    def _require_client(self):
        if self.async_client is None:
            raise ProviderFatalError("No API key configured for the text provider")
        return self.async_client

    @staticmethod
    def _messages(prompt: PromptPackage) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": prompt.system_prompt},
            {"role": "user", "content": prompt.user_prompt},
        ]

    def _request_kwargs(self, prompt: PromptPackage, config: Optional[GenerationConfig], stream: bool) -> Dict[str, Any]:
        cfg = config or self.default_config
        return {
            "model": self.model,
            "messages": self._messages(prompt),
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "top_p": cfg.top_p,
            "stop": list(cfg.stop),
            "stream": stream,
        }

    # ---------- generation ----------

    @log_and_time("ModelManager generate_once")
    async def generate_once(self, prompt: PromptPackage, config: Optional[GenerationConfig] = None) -> ProviderResult:
        """Single, complete response (non-streaming)."""
        client = self._require_client()
        try:
            response = await client.chat.completions.create(**self._request_kwargs(prompt, config, stream=False))
        except PipelineError:
            raise
        except Exception as e:
            mapped = classify_provider_error(e)
            logger.error(f"[ModelManager] generate_once failed: {mapped.code.value}: {type(e).__name__}")
            raise mapped from e

        choice = response.choices[0]
        finish_reason = getattr(choice, "finish_reason", None) or "stop"
        if finish_reason == "content_filter":
            raise ProviderFatalError("Provider blocked the response (content_filter)")
        text = (choice.message.content or "").strip()
        return ProviderResult(text=text, finish_reason=finish_reason, usage=_usage_dict(getattr(response, "usage", None)))

    async def generate_stream(self, prompt: PromptPackage, config: Optional[GenerationConfig] = None) -> AsyncIterator[str]:
        """Yield text deltas as they arrive; errors surface as PipelineError."""
        client = self._require_client()
        try:
            stream = await client.chat.completions.create(**self._request_kwargs(prompt, config, stream=True))
        except PipelineError:
            raise
        except Exception as e:
            mapped = classify_provider_error(e)
            logger.error(f"[ModelManager] stream open failed: {mapped.code.value}: {type(e).__name__}")
            raise mapped from e

        try:
            async for chunk in stream:
                text = extract_chunk_text(chunk)
                if text:
                    yield text
        except PipelineError:
            raise
        except Exception as e:
            mapped = classify_provider_error(e)
            logger.error(f"[ModelManager] stream failed mid-way: {mapped.code.value}: {type(e).__name__}")
            raise mapped from e
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                await close()

    async def validate_connection(self, timeout_s: float = VALIDATE_TIMEOUT_S) -> bool:
        """Tiny request with a short timeout; True when the provider answers."""
        if self.async_client is None:
            return False
        probe = PromptPackage(
            system_prompt="Reply with OK.",
            user_prompt="ping",
            topic=Topic.GENERAL,
            mode=Mode.CONVERSATION,
            language=Language.ENGLISH,
        )
        try:
            await asyncio.wait_for(
                self.generate_once(probe, GenerationConfig(max_tokens=5, temperature=0.0)),
                timeout=timeout_s,
            )
            return True
        except asyncio.TimeoutError:
            logger.warning(f"[ModelManager] validate_connection timed out after {timeout_s}s")
            return False
        except PipelineError as e:
            logger.warning(f"[ModelManager] validate_connection failed: {e.code.value}")
            return False

    async def aclose(self):
        """Gracefully close the HTTP client to avoid socket leak."""
        if self._http_client is not None:
            await self._http_client.aclose()
