"""
# core/retry.py

Module Contract
- Purpose: Bounded exponential-backoff retry for provider calls.
- Inputs:
  - retry_async(fn, policy, sleep=asyncio.sleep, label="provider")
- Outputs:
  - (result, attempts) from the first successful call.
- Behavior:
  - Only PipelineError subclasses with retryable=True are retried (ProviderTransientError).
  - Anything else (fatal, unknown, cancellation) propagates on the first failure.
  - Delay before retry n (0-based) is min(base_delay * 2**n, max_delay) plus optional jitter.
  - After max_attempts total invocations the last retryable error is re-raised.
- Side effects:
  - Sleeps between attempts via the injected sleep (no-op in tests); logs [RETRY].
"""
import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

from config.app_config import RETRY_BASE_DELAY, RETRY_JITTER, RETRY_MAX_ATTEMPTS, RETRY_MAX_DELAY
from core.errors import PipelineError
from utils.logging_utils import get_logger

logger = get_logger("retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = RETRY_MAX_ATTEMPTS
    base_delay: float = RETRY_BASE_DELAY
    max_delay: float = RETRY_MAX_DELAY
    jitter: float = RETRY_JITTER

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter < 0:
            raise ValueError("delays must be non-negative")

    def delay_for(self, retry_index: int, rng: Optional[random.Random] = None) -> float:
        delay = min(self.base_delay * (2 ** retry_index), self.max_delay)
        if self.jitter:
            delay += (rng or random).uniform(0, self.jitter)
        return delay


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, PipelineError) and exc.retryable


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "provider",
) -> Tuple[T, int]:
    """Await fn() until it succeeds, fails non-retryably, or attempts run out."""
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn(), attempt
        except PipelineError as e:
            if not e.retryable:
                logger.warning(f"[RETRY] {label}: non-retryable {e.code.value} on attempt {attempt}, giving up")
                raise
            if attempt >= policy.max_attempts:
                logger.error(f"[RETRY] {label}: exhausted {policy.max_attempts} attempts ({e.code.value})")
                raise
            delay = policy.delay_for(attempt - 1)
            logger.warning(
                f"[RETRY] {label}: attempt {attempt}/{policy.max_attempts} failed ({e.code.value}); "
                f"retrying in {delay:.2f}s"
            )
            await sleep(delay)
