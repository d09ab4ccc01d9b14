# core/schemas.py
"""
Shared value types for the message pipeline.

Closed enumerations replace the loose 'th'/'en' and 'conversation'/'intelligence'
string flags; every branch over them is written exhaustively so a new member
fails loudly (see `assert_never`) instead of silently falling through.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, NoReturn, Optional, Tuple


class Language(Enum):
    THAI = "th"
    ENGLISH = "en"


class Mode(Enum):
    CONVERSATION = "conversation"
    INTELLIGENCE = "intelligence"


class Topic(Enum):
    """Coarse conversation topic; `EMERGENCY` is only ever set by the safety classifier."""
    GENERAL = "general"
    ALZHEIMER = "alzheimer"
    FALL = "fall"
    SLEEP = "sleep"
    DIET = "diet"
    NIGHT_CARE = "night_care"
    POST_OP = "post_op"
    DIABETES = "diabetes"
    MOOD = "mood"
    MEDICATION = "medication"
    EMERGENCY = "emergency"


class Category(Enum):
    """Sensitive categories flagged on a message, independent of its topic."""
    MEDICAL = "medical"
    COMPLEX = "complex"
    EMERGENCY = "emergency"


class PIICategory(Enum):
    EMAIL = "email"
    URL = "url"
    ID_NUMBER = "id_number"
    PHONE = "phone"
    NAME = "name"
    ADDRESS = "address"
    SOCIAL_HANDLE = "social_handle"


class HandoffReason(Enum):
    EMERGENCY = "emergency"
    COMPLEX_TOPIC = "complex_topic"
    COMPLEX_LANGUAGE = "complex_language"
    LONG_CONVERSATION = "long_conversation"
    NONE = "none"


class Urgency(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Role(Enum):
    USER = "user"
    ASSISTANT = "assistant"


def assert_never(value: NoReturn) -> NoReturn:
    """Exhaustiveness guard for enum dispatch."""
    raise AssertionError(f"Unhandled value: {value!r}")


# ===== Messages =====

@dataclass(frozen=True)
class RawMessage:
    """Inbound utterance exactly as received."""
    session_id: str
    text: str
    language: Optional[Language] = None  # None: detect from the text
    received_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class RedactionRecord:
    category: PIICategory
    original: str
    span: Tuple[int, int]  # offsets in the text the pass ran over


@dataclass(frozen=True)
class SanitizedMessage:
    raw: RawMessage
    redacted_text: str
    redactions: Tuple[RedactionRecord, ...] = ()
    is_valid: bool = True
    invalid_reason: Optional[str] = None

    @property
    def pii_categories(self) -> FrozenSet[PIICategory]:
        return frozenset(r.category for r in self.redactions)


@dataclass(frozen=True)
class SafetyVerdict:
    is_safe: bool
    emergency_detected: bool
    flagged_categories: FrozenSet[Category]
    recommend_handoff: bool
    topic: Topic
    matched_keywords: Tuple[str, ...] = ()


# ===== Prompt / generation =====

@dataclass(frozen=True)
class PromptPackage:
    """Assembled once per turn, never persisted."""
    system_prompt: str
    user_prompt: str
    topic: Topic
    mode: Mode
    language: Language

    @property
    def text(self) -> str:
        return f"{self.system_prompt}\n\n{self.user_prompt}"


@dataclass(frozen=True)
class GeneratedReply:
    text: str
    finish_reason: str = "stop"
    usage: Dict[str, int] = field(default_factory=dict)
    attempts: int = 1


@dataclass(frozen=True)
class HandoffDecision:
    should_recommend: bool
    reason: HandoffReason
    urgency: Urgency


@dataclass(frozen=True)
class ChatResult:
    """What the orchestrator hands back to the request layer for one turn."""
    session_id: str
    response: str
    topic: Topic
    verdict: Optional[SafetyVerdict]
    handoff: HandoffDecision
    error_code: Optional[Any] = None  # core.errors.ErrorCode when the turn failed
    used_provider: bool = False

    @property
    def ok(self) -> bool:
        return self.error_code is None
