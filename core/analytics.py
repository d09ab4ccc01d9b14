# core/analytics.py
"""
Per-turn analytics records.

The pipeline emits one AnalyticsRecord per turn and hands it to an
AnalyticsSink; storage belongs to the caller. Records only ever carry the
redacted snippet and a hashed session id. A failing sink is logged and never
breaks the turn.
"""

import hashlib
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Protocol, Tuple, runtime_checkable

from core.schemas import Category, HandoffDecision, Language, SafetyVerdict, SanitizedMessage, Topic
from utils.logging_utils import get_logger
from utils.sanitizer import create_safe_snippet

logger = get_logger("analytics")

REVIEW_PII_CATEGORY_COUNT = 2


class Route(Enum):
    PRIMARY = "primary"    # provider answered
    FALLBACK = "fallback"  # provider failed, apology returned
    SAFETY = "safety"      # unsafe path, provider never called


@dataclass(frozen=True)
class AnalyticsRecord:
    session_id: str  # hashed
    timestamp: datetime
    redacted_snippet: str
    topic: Topic
    language: Language
    flags: Tuple[str, ...]
    handoff_recommended: bool
    pii_detected: bool
    emergency_detected: bool
    requires_human_review: bool
    routed: Route = Route.PRIMARY
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["topic"] = self.topic.value
        data["language"] = self.language.value
        data["flags"] = list(self.flags)
        data["routed"] = self.routed.value
        return data


def hash_session_id(session_id: str) -> str:
    return hashlib.sha256(session_id.encode("utf-8")).hexdigest()[:16]


def build_record(
    sanitized: SanitizedMessage,
    verdict: SafetyVerdict,
    handoff: HandoffDecision,
    language: Language,
    routed: Route,
) -> AnalyticsRecord:
    flags = tuple(sorted(c.value for c in verdict.flagged_categories))
    requires_review = (
        verdict.emergency_detected
        or Category.COMPLEX in verdict.flagged_categories
        or len(sanitized.pii_categories) >= REVIEW_PII_CATEGORY_COUNT
    )
    return AnalyticsRecord(
        session_id=hash_session_id(sanitized.raw.session_id),
        timestamp=sanitized.raw.received_at,
        redacted_snippet=create_safe_snippet(sanitized.redacted_text),
        topic=verdict.topic,
        language=language,
        flags=flags,
        handoff_recommended=handoff.should_recommend,
        pii_detected=bool(sanitized.redactions),
        emergency_detected=verdict.emergency_detected,
        requires_human_review=requires_review,
        routed=routed,
    )


@runtime_checkable
class AnalyticsSink(Protocol):
    def record(self, record: AnalyticsRecord) -> None:
        ...


class InMemoryAnalyticsSink:
    """Keeps records in a list; handy for tests and the CLI."""

    def __init__(self):
        self.records: List[AnalyticsRecord] = []

    def record(self, record: AnalyticsRecord) -> None:
        self.records.append(record)


class LoggingAnalyticsSink:
    """Writes one INFO line per record."""

    def record(self, record: AnalyticsRecord) -> None:
        logger.info(
            f"[ANALYTICS] session={record.session_id} topic={record.topic.value} "
            f"lang={record.language.value} flags={list(record.flags)} routed={record.routed.value} "
            f"handoff={record.handoff_recommended} pii={record.pii_detected} "
            f"review={record.requires_human_review}"
        )


def emit(sink: AnalyticsSink, record: AnalyticsRecord) -> None:
    try:
        sink.record(record)
    except Exception as e:
        logger.error(f"[ANALYTICS] Sink {type(sink).__name__} failed: {type(e).__name__}: {e}")
