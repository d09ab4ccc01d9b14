"""
Unit tests for core/retry.py

Tests:
- Backoff schedule and cap
- Transient errors retried up to max_attempts
- Fatal / unknown errors surface immediately
- Policy validation
"""

import random

import pytest
from core.errors import ProviderFatalError, ProviderTransientError, UnknownPipelineError
from core.retry import RetryPolicy, is_retryable, retry_async


class Flaky:
    """Callable that fails with the given errors, then returns 'ok'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


# =============================================================================
# RetryPolicy Tests
# =============================================================================

def test_backoff_doubles():
    """Delay doubles per retry from the base"""
    policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=30.0, jitter=0.0)

    assert [policy.delay_for(i) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]


def test_backoff_capped():
    """Delay never exceeds max_delay"""
    policy = RetryPolicy(max_attempts=10, base_delay=1.0, max_delay=5.0, jitter=0.0)

    assert policy.delay_for(6) == 5.0


def test_jitter_bounded():
    """Jitter adds at most `jitter` seconds"""
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=30.0, jitter=0.5)
    rng = random.Random(7)

    for _ in range(20):
        assert 1.0 <= policy.delay_for(0, rng) <= 1.5


@pytest.mark.parametrize("kwargs", [
    {"max_attempts": 0},
    {"base_delay": -1.0},
    {"jitter": -0.1},
])
def test_invalid_policy_rejected(kwargs):
    """Nonsensical policies fail at construction"""
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


def test_is_retryable():
    """Only transient pipeline errors are retryable"""
    assert is_retryable(ProviderTransientError("x"))
    assert not is_retryable(ProviderFatalError("x"))
    assert not is_retryable(ValueError("x"))


# =============================================================================
# retry_async Tests
# =============================================================================

@pytest.mark.asyncio
async def test_two_transient_failures_then_success():
    """Two transient failures and a success make three calls"""
    fn = Flaky(ProviderTransientError("429"), ProviderTransientError("503"))
    sleep = SleepRecorder()
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=30.0, jitter=0.0)

    result, attempts = await retry_async(fn, policy, sleep=sleep)

    assert result == "ok"
    assert attempts == 3
    assert fn.calls == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_fatal_error_not_retried():
    """An auth-style failure is raised after one call"""
    fn = Flaky(ProviderFatalError("401"))
    sleep = SleepRecorder()

    with pytest.raises(ProviderFatalError):
        await retry_async(fn, RetryPolicy(max_attempts=3), sleep=sleep)

    assert fn.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_unknown_error_not_retried():
    """Unknown errors are not retried either"""
    fn = Flaky(UnknownPipelineError("?"))

    with pytest.raises(UnknownPipelineError):
        await retry_async(fn, RetryPolicy(max_attempts=3), sleep=SleepRecorder())

    assert fn.calls == 1


@pytest.mark.asyncio
async def test_exhaustion_reraises_last_error():
    """After max_attempts transient failures the last one propagates"""
    last = ProviderTransientError("third")
    fn = Flaky(ProviderTransientError("first"), ProviderTransientError("second"), last)

    with pytest.raises(ProviderTransientError) as excinfo:
        await retry_async(fn, RetryPolicy(max_attempts=3, jitter=0.0), sleep=SleepRecorder())

    assert excinfo.value is last
    assert fn.calls == 3


@pytest.mark.asyncio
async def test_non_pipeline_exception_propagates():
    """Programming errors are not swallowed or retried"""
    fn = Flaky(KeyError("boom"))

    with pytest.raises(KeyError):
        await retry_async(fn, RetryPolicy(max_attempts=3), sleep=SleepRecorder())

    assert fn.calls == 1


@pytest.mark.asyncio
async def test_single_attempt_policy():
    """max_attempts=1 means no retry at all"""
    fn = Flaky(ProviderTransientError("once"))

    with pytest.raises(ProviderTransientError):
        await retry_async(fn, RetryPolicy(max_attempts=1), sleep=SleepRecorder())

    assert fn.calls == 1
