"""
Unit tests for core/analytics.py

Tests:
- Record construction (hashed id, redacted snippet, flags, review rule)
- Sinks and failure isolation
"""

import pytest
from core.analytics import (
    InMemoryAnalyticsSink,
    LoggingAnalyticsSink,
    Route,
    build_record,
    emit,
    hash_session_id,
)
from core.handoff import NO_HANDOFF
from core.schemas import HandoffDecision, HandoffReason, Language, RawMessage, Urgency
from utils.safety_classifier import classify
from utils.sanitizer import Sanitizer


def _record(text, session_id="session-1", handoff=NO_HANDOFF, routed=Route.PRIMARY):
    sanitized = Sanitizer().sanitize(RawMessage(session_id=session_id, text=text))
    verdict = classify(sanitized.redacted_text)
    return build_record(sanitized, verdict, handoff, Language.THAI, routed)


# =============================================================================
# build_record Tests
# =============================================================================

def test_session_id_hashed():
    """The raw session id never appears in the record"""
    record = _record("สวัสดีค่ะ", session_id="U1234567890abcdef")

    assert record.session_id == hash_session_id("U1234567890abcdef")
    assert record.session_id != "U1234567890abcdef"
    assert len(record.session_id) == 16


def test_snippet_is_redacted():
    """Only redacted text reaches the snippet"""
    record = _record("โทรหาฉันที่ 0812345678 นะคะ")

    assert "0812345678" not in record.redacted_snippet
    assert "[PHONE]" in record.redacted_snippet
    assert record.pii_detected is True


def test_emergency_requires_review():
    """Emergencies are always flagged for human review"""
    record = _record("ไม่สบาย หมดสติ", routed=Route.SAFETY)

    assert record.emergency_detected is True
    assert record.requires_human_review is True
    assert "emergency" in record.flags
    assert record.routed is Route.SAFETY


def test_multiple_pii_categories_require_review():
    """Two or more kinds of PII in one message need review"""
    record = _record("โทร 0812345678 หรืออีเมล a@b.com")

    assert record.requires_human_review is True


def test_plain_message_needs_no_review():
    """An ordinary question is not flagged"""
    record = _record("ยายนอนไม่หลับ")

    assert record.requires_human_review is False
    assert record.flags == ()
    assert record.pii_detected is False


def test_handoff_flag_copied():
    """The handoff recommendation is recorded"""
    handoff = HandoffDecision(True, HandoffReason.LONG_CONVERSATION, Urgency.LOW)

    assert _record("สวัสดีค่ะ", handoff=handoff).handoff_recommended is True


def test_to_dict_is_plain():
    """to_dict() produces JSON-friendly values"""
    data = _record("ยายนอนไม่หลับ").to_dict()

    assert data["topic"] == "sleep"
    assert data["language"] == "th"
    assert data["routed"] == "primary"
    assert isinstance(data["timestamp"], str)
    assert isinstance(data["flags"], list)


# =============================================================================
# Sinks
# =============================================================================

def test_in_memory_sink_collects():
    """Records are appended in order"""
    sink = InMemoryAnalyticsSink()
    first, second = _record("one"), _record("two")

    emit(sink, first)
    emit(sink, second)

    assert sink.records == [first, second]


def test_logging_sink_writes_line(caplog):
    """The logging sink emits one [ANALYTICS] line"""
    with caplog.at_level("INFO", logger="analytics"):
        emit(LoggingAnalyticsSink(), _record("สวัสดีค่ะ"))

    assert any("[ANALYTICS]" in r.getMessage() for r in caplog.records)


def test_failing_sink_does_not_raise(caplog):
    """A broken sink is logged, never propagated"""

    class BrokenSink:
        def record(self, record):
            raise RuntimeError("disk full")

    emit(BrokenSink(), _record("สวัสดีค่ะ"))

    assert any("BrokenSink failed" in r.getMessage() for r in caplog.records)
