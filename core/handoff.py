# core/handoff.py
"""
Human-handoff decision.

`decide()` is a pure function of (message, topic, conversation length): no
I/O, no clock, no randomness, so identical inputs always give the identical
decision. Precedence, first match wins:

1. emergency      -> high urgency
2. complex topic  -> medium urgency
3. complex language (heavy Thai/Latin mixing, or the user says they are lost) -> low
4. long conversation (more than the threshold of user messages) -> low
5. none

Opening the human channel is the caller's job; this module only decides,
words the suggestion and builds the tracking link.
"""

from urllib.parse import urlencode, urlsplit, urlunsplit

from config.app_config import LONG_CONVERSATION_THRESHOLD, MIXED_SCRIPT_MIN_RATIO
from core.schemas import HandoffDecision, HandoffReason, Language, Topic, Urgency, assert_never
from utils.care_lexicon import COMPLEX_TOPICS, find_keywords
from utils.logging_utils import get_logger
from utils.safety_classifier import detect_emergency
from utils.thai_text import is_mixed_script

logger = get_logger("handoff")

# Phrases where the user signals they cannot cope with the situation alone
STRUGGLE_PHRASES_TH = frozenset({
    "ไม่รู้จะทำยังไง", "ไม่รู้จะทำอย่างไร", "หมดหนทาง", "ยุ่งยาก", "งงมาก", "ต้องการคนช่วย",
})
STRUGGLE_PHRASES_EN = frozenset({
    "don't know what to do", "overwhelmed", "so confused", "need someone to help",
})
STRUGGLE_PHRASES = STRUGGLE_PHRASES_TH | STRUGGLE_PHRASES_EN

NO_HANDOFF = HandoffDecision(should_recommend=False, reason=HandoffReason.NONE, urgency=Urgency.LOW)


def is_complex_language(text: str, min_ratio: float = MIXED_SCRIPT_MIN_RATIO) -> bool:
    return is_mixed_script(text, min_ratio) or bool(find_keywords(text, STRUGGLE_PHRASES))


def decide(
    text: str,
    topic: Topic,
    conversation_length: int,
    long_threshold: int = LONG_CONVERSATION_THRESHOLD,
) -> HandoffDecision:
    """Decide whether to suggest a human channel for this turn."""
    if topic is Topic.EMERGENCY or detect_emergency(text):
        return HandoffDecision(True, HandoffReason.EMERGENCY, Urgency.HIGH)
    if topic in COMPLEX_TOPICS:
        return HandoffDecision(True, HandoffReason.COMPLEX_TOPIC, Urgency.MEDIUM)
    if is_complex_language(text):
        return HandoffDecision(True, HandoffReason.COMPLEX_LANGUAGE, Urgency.LOW)
    if conversation_length > long_threshold:
        return HandoffDecision(True, HandoffReason.LONG_CONVERSATION, Urgency.LOW)
    return NO_HANDOFF


# ===== Suggestion text =====

_HANDOFF_MESSAGES = {
    Language.THAI: {
        HandoffReason.EMERGENCY: "สถานการณ์นี้อาจต้องการความช่วยเหลือเร่งด่วน ติดต่อทีมงานทาง LINE ได้ทันที หรือโทร 1669 หากเป็นเหตุฉุกเฉิน",
        HandoffReason.COMPLEX_TOPIC: "เรื่องนี้ค่อนข้างซับซ้อน ทีมงานของเราสามารถให้คำแนะนำที่เฉพาะเจาะจงกว่านี้ทาง LINE ค่ะ",
        HandoffReason.COMPLEX_LANGUAGE: "ดูเหมือนสถานการณ์นี้จะไม่ง่ายเลย ทีมงานของเราพร้อมช่วยเหลือทาง LINE ค่ะ",
        HandoffReason.LONG_CONVERSATION: "เราคุยกันมาหลายเรื่องแล้ว หากต้องการปรึกษาแบบเจาะลึก ติดต่อทีมงานทาง LINE ได้เลยค่ะ",
    },
    Language.ENGLISH: {
        HandoffReason.EMERGENCY: "This may need urgent help. Contact our team on LINE right away, or call 1669 in an emergency.",
        HandoffReason.COMPLEX_TOPIC: "This topic is fairly complex. Our team can give more specific guidance on LINE.",
        HandoffReason.COMPLEX_LANGUAGE: "This sounds like a difficult situation. Our team is ready to help on LINE.",
        HandoffReason.LONG_CONVERSATION: "We've covered a lot. For a more in-depth consultation, contact our team on LINE.",
    },
}


def handoff_message(decision: HandoffDecision, language: Language) -> str:
    """Suggestion line for a decision; empty when no handoff is recommended."""
    if not decision.should_recommend:
        return ""
    reason = decision.reason
    if reason is HandoffReason.NONE:
        return ""
    if reason in (
        HandoffReason.EMERGENCY,
        HandoffReason.COMPLEX_TOPIC,
        HandoffReason.COMPLEX_LANGUAGE,
        HandoffReason.LONG_CONVERSATION,
    ):
        return _HANDOFF_MESSAGES[language][reason]
    assert_never(reason)


def build_handoff_url(base_url: str, session_id: str, reason: HandoffReason, urgency: Urgency) -> str:
    """Handoff link with tracking parameters.

    Only LIFF links accept query parameters; other LINE links are returned as
    given. The session id is shortened so the link never carries the full id.
    """
    if not base_url:
        return ""
    parts = urlsplit(base_url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        logger.warning(f"[HANDOFF] Ignoring malformed handoff base URL: {base_url!r}")
        return ""
    if parts.hostname != "liff.line.me":
        return base_url
    params = urlencode({
        "source": "care_assistant",
        "session": session_id[:8],
        "reason": reason.value,
        "urgency": urgency.value,
    })
    query = f"{parts.query}&{params}" if parts.query else params
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
