"""
# core/errors.py

Module Contract
- Purpose: Error taxonomy for the pipeline and the single place where provider SDK exceptions are mapped onto it.
- Inputs:
  - classify_provider_error(exc) → PipelineError
  - user_facing_message(code, language) → str
- Outputs:
  - Typed exceptions carrying an ErrorCode; same-language apology strings with no internal details.
- Behavior:
  - Rate limits, timeouts, connection failures and 5xx are transient (retryable).
  - Auth, permission, malformed request and provider content-filter rejections are fatal.
  - Anything unrecognised maps to UNKNOWN and is not retried.
- Dependencies:
  - openai (exception classes), httpx (transport errors surfacing outside the SDK)
"""
from enum import Enum
from typing import Optional

import httpx
import openai

from core.schemas import Language, assert_never


class ErrorCode(Enum):
    INVALID_INPUT = "INVALID_INPUT"
    UNSAFE_CONTENT = "UNSAFE_CONTENT"
    PROVIDER_TRANSIENT = "PROVIDER_TRANSIENT"
    PROVIDER_FATAL = "PROVIDER_FATAL"
    STREAM_INTERRUPTED = "STREAM_INTERRUPTED"
    UNKNOWN = "UNKNOWN"


class PipelineError(Exception):
    """Base for every error the orchestrator knows how to surface."""
    code = ErrorCode.UNKNOWN
    retryable = False

    def __init__(self, message: str = "", *, status_code: Optional[int] = None):
        super().__init__(message or self.code.value)
        self.status_code = status_code


class InvalidInputError(PipelineError):
    code = ErrorCode.INVALID_INPUT


class ProviderTransientError(PipelineError):
    code = ErrorCode.PROVIDER_TRANSIENT
    retryable = True


class ProviderFatalError(PipelineError):
    code = ErrorCode.PROVIDER_FATAL


class StreamInterruptedError(PipelineError):
    code = ErrorCode.STREAM_INTERRUPTED


class UnknownPipelineError(PipelineError):
    code = ErrorCode.UNKNOWN


_CONTENT_FILTER_MARKERS = ("content_filter", "content filter", "safety", "blocked")


def classify_provider_error(exc: BaseException) -> PipelineError:
    """Map an SDK/transport exception to the pipeline taxonomy."""
    if isinstance(exc, PipelineError):
        return exc

    message = f"{type(exc).__name__}: {exc}"
    status = getattr(exc, "status_code", None)

    # Order matters: APITimeoutError subclasses APIConnectionError
    if isinstance(exc, (openai.APITimeoutError, openai.APIConnectionError, openai.RateLimitError,
                        openai.InternalServerError)):
        return ProviderTransientError(message, status_code=status)
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError, TimeoutError, ConnectionError)):
        return ProviderTransientError(message)

    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError, openai.NotFoundError,
                        openai.UnprocessableEntityError)):
        return ProviderFatalError(message, status_code=status)
    if isinstance(exc, openai.BadRequestError):
        # Includes provider-side safety blocks; retrying the same prompt cannot help
        return ProviderFatalError(message, status_code=status)

    if isinstance(exc, openai.APIStatusError):
        if status is not None and (status >= 500 or status == 429):
            return ProviderTransientError(message, status_code=status)
        return ProviderFatalError(message, status_code=status)

    lowered = str(exc).lower()
    if any(marker in lowered for marker in _CONTENT_FILTER_MARKERS):
        return ProviderFatalError(message)

    return UnknownPipelineError(message)


# ===== User-facing text =====

_APOLOGIES = {
    ErrorCode.INVALID_INPUT: {
        Language.THAI: "กรุณาใส่ข้อความที่ถูกต้อง",
        Language.ENGLISH: "Please enter a valid message.",
    },
    ErrorCode.PROVIDER_TRANSIENT: {
        Language.THAI: "ขออภัยค่ะ ระบบไม่สามารถตอบได้ในขณะนี้ กรุณาลองใหม่อีกครั้งในอีกสักครู่",
        Language.ENGLISH: "Sorry, I can't respond right now. Please try again in a moment.",
    },
    ErrorCode.PROVIDER_FATAL: {
        Language.THAI: "ขออภัยค่ะ ไม่สามารถตอบคำถามนี้ได้ในขณะนี้ กรุณาลองถามใหม่อีกครั้ง",
        Language.ENGLISH: "Sorry, I can't answer that right now. Please try asking again.",
    },
    ErrorCode.STREAM_INTERRUPTED: {
        Language.THAI: "ขออภัยค่ะ การตอบกลับถูกขัดจังหวะ กรุณาลองใหม่อีกครั้ง",
        Language.ENGLISH: "Sorry, the reply was interrupted. Please try again.",
    },
    ErrorCode.UNKNOWN: {
        Language.THAI: "เกิดข้อผิดพลาด กรุณาลองใหม่อีกครั้ง",
        Language.ENGLISH: "Something went wrong. Please try again.",
    },
}


def user_facing_message(code: ErrorCode, language: Language) -> str:
    """Non-technical apology in the user's language.

    UNSAFE_CONTENT never reaches here: the orchestrator renders the fixed
    emergency message for it instead.
    """
    if code is ErrorCode.UNSAFE_CONTENT:
        code = ErrorCode.UNKNOWN
    if language is Language.THAI or language is Language.ENGLISH:
        return _APOLOGIES[code][language]
    assert_never(language)
