"""
Unit tests for core/errors.py

Tests:
- Provider SDK / transport exceptions map onto the pipeline taxonomy
- Retryable flags per class
- Same-language apologies with no internal details
"""

import httpx
import openai
import pytest
from core.errors import (
    ErrorCode,
    InvalidInputError,
    PipelineError,
    ProviderFatalError,
    ProviderTransientError,
    StreamInterruptedError,
    UnknownPipelineError,
    classify_provider_error,
    user_facing_message,
)
from core.schemas import Language

_REQUEST = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")


def _response(status):
    return httpx.Response(status, request=_REQUEST)


# =============================================================================
# classify_provider_error Tests
# =============================================================================

@pytest.mark.parametrize("exc", [
    openai.RateLimitError("slow down", response=_response(429), body=None),
    openai.InternalServerError("boom", response=_response(500), body=None),
    openai.APITimeoutError(request=_REQUEST),
    openai.APIConnectionError(request=_REQUEST),
    openai.APIStatusError("unavailable", response=_response(503), body=None),
    httpx.ConnectTimeout("connect timed out"),
    httpx.ReadError("reset"),
    TimeoutError(),
    ConnectionResetError(),
])
def test_transient_errors(exc):
    """Rate limits, timeouts, connection problems and 5xx are transient"""
    mapped = classify_provider_error(exc)

    assert isinstance(mapped, ProviderTransientError)
    assert mapped.code is ErrorCode.PROVIDER_TRANSIENT
    assert mapped.retryable is True


@pytest.mark.parametrize("exc", [
    openai.AuthenticationError("bad key", response=_response(401), body=None),
    openai.PermissionDeniedError("nope", response=_response(403), body=None),
    openai.NotFoundError("no model", response=_response(404), body=None),
    openai.BadRequestError("bad request", response=_response(400), body=None),
    openai.APIStatusError("teapot", response=_response(418), body=None),
])
def test_fatal_errors(exc):
    """Auth, permission and malformed-request errors are fatal"""
    mapped = classify_provider_error(exc)

    assert isinstance(mapped, ProviderFatalError)
    assert mapped.retryable is False


def test_status_code_carried():
    """The HTTP status survives the mapping"""
    exc = openai.AuthenticationError("bad key", response=_response(401), body=None)

    assert classify_provider_error(exc).status_code == 401


def test_content_filter_message_is_fatal():
    """Provider safety blocks surfacing as plain errors are fatal"""
    mapped = classify_provider_error(RuntimeError("response blocked by content_filter"))

    assert isinstance(mapped, ProviderFatalError)


def test_unrecognised_error_is_unknown():
    """Anything else is UNKNOWN and not retried"""
    mapped = classify_provider_error(ValueError("weird"))

    assert isinstance(mapped, UnknownPipelineError)
    assert mapped.code is ErrorCode.UNKNOWN
    assert mapped.retryable is False


def test_pipeline_errors_pass_through():
    """Already-mapped errors are returned as-is"""
    err = StreamInterruptedError("cut")

    assert classify_provider_error(err) is err


# =============================================================================
# Taxonomy
# =============================================================================

@pytest.mark.parametrize("cls, code", [
    (InvalidInputError, ErrorCode.INVALID_INPUT),
    (ProviderTransientError, ErrorCode.PROVIDER_TRANSIENT),
    (ProviderFatalError, ErrorCode.PROVIDER_FATAL),
    (StreamInterruptedError, ErrorCode.STREAM_INTERRUPTED),
    (UnknownPipelineError, ErrorCode.UNKNOWN),
])
def test_codes(cls, code):
    """Each error class carries its code and defaults its message to it"""
    err = cls()

    assert isinstance(err, PipelineError)
    assert err.code is code
    assert str(err) == code.value


def test_only_transient_is_retryable():
    """Stream interruptions are never retried"""
    assert StreamInterruptedError.retryable is False
    assert ProviderTransientError.retryable is True


# =============================================================================
# user_facing_message Tests
# =============================================================================

@pytest.mark.parametrize("code", [c for c in ErrorCode if c is not ErrorCode.UNSAFE_CONTENT])
def test_apologies_in_both_languages(code):
    """Every code has a Thai and an English apology that differ"""
    th = user_facing_message(code, Language.THAI)
    en = user_facing_message(code, Language.ENGLISH)

    assert th and en and th != en
    assert "Error" not in en
    assert code.value not in en


def test_unsafe_content_falls_back_to_generic():
    """UNSAFE_CONTENT uses the generic apology"""
    assert user_facing_message(ErrorCode.UNSAFE_CONTENT, Language.ENGLISH) == user_facing_message(
        ErrorCode.UNKNOWN, Language.ENGLISH
    )
