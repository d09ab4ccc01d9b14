"""
utils/safety_classifier.py

Emergency detection, sensitive-category flagging and topic labelling for
(already redacted) user text.

Evaluation order:
1. Emergency lexicon  - forces emergency_detected, is_safe=False, topic=EMERGENCY,
                         regardless of anything else in the message
2. Complex lexicon    - inheritance/family conflict/multi-morbidity medication,
                         or COMPLEX_MEDICAL_HIT_COUNT+ distinct medical terms;
                         flags COMPLEX and recommends handoff
3. Medical lexicon    - flags MEDICAL, message stays safe
4. Topic table        - first matching row wins, default GENERAL

Topic and flagged categories are independent: a message can be MEDICAL and
topic=DIABETES at the same time.

Deterministic and keyword-driven; no external calls. classify() never raises.
"""

from typing import List, Optional, Set

from core.schemas import Category, SafetyVerdict, Topic
from utils.care_lexicon import (
    COMPLEX_KEYWORDS_EN,
    COMPLEX_KEYWORDS_TH,
    COMPLEX_MEDICAL_HIT_COUNT,
    EMERGENCY_KEYWORDS_EN,
    EMERGENCY_KEYWORDS_TH,
    MEDICAL_KEYWORDS_EN,
    MEDICAL_KEYWORDS_TH,
    TOPIC_KEYWORDS,
    find_keywords,
    first_match,
)
from utils.logging_utils import get_logger

logger = get_logger("safety_classifier")

EMERGENCY_KEYWORDS = EMERGENCY_KEYWORDS_TH | EMERGENCY_KEYWORDS_EN
COMPLEX_KEYWORDS = COMPLEX_KEYWORDS_TH | COMPLEX_KEYWORDS_EN
MEDICAL_KEYWORDS = MEDICAL_KEYWORDS_TH | MEDICAL_KEYWORDS_EN

SAFE_GENERAL_VERDICT = SafetyVerdict(
    is_safe=True,
    emergency_detected=False,
    flagged_categories=frozenset(),
    recommend_handoff=False,
    topic=Topic.GENERAL,
)


def detect_emergency(text: str) -> List[str]:
    return find_keywords(text, EMERGENCY_KEYWORDS)


def classify_topic(text: str) -> Topic:
    """First topic row with any Thai or English hit; GENERAL otherwise."""
    for topic, thai, english in TOPIC_KEYWORDS:
        if first_match(text, thai) or first_match(text, english):
            return topic
    return Topic.GENERAL


def classify(text: str, unredacted: Optional[str] = None) -> SafetyVerdict:
    """Produce the one SafetyVerdict for a message.

    `unredacted` is the pre-redaction text, checked for emergency keywords only,
    so a redaction that swallowed a symptom can never hide an emergency. Only the
    matched keywords are logged.
    """
    if not text or not text.strip():
        return SAFE_GENERAL_VERDICT

    emergency_hits = detect_emergency(text)
    if unredacted:
        emergency_hits = sorted(set(emergency_hits) | set(detect_emergency(unredacted)))
    if emergency_hits:
        logger.warning(f"[CLASSIFY] Emergency keywords matched: {emergency_hits}")
        flags: Set[Category] = {Category.EMERGENCY}
        if find_keywords(text, MEDICAL_KEYWORDS):
            flags.add(Category.MEDICAL)
        return SafetyVerdict(
            is_safe=False,
            emergency_detected=True,
            flagged_categories=frozenset(flags),
            recommend_handoff=True,
            topic=Topic.EMERGENCY,
            matched_keywords=tuple(emergency_hits),
        )

    flags = set()
    matched: List[str] = []

    complex_hits = find_keywords(text, COMPLEX_KEYWORDS)
    medical_hits = find_keywords(text, MEDICAL_KEYWORDS)

    if complex_hits or len(medical_hits) >= COMPLEX_MEDICAL_HIT_COUNT:
        flags.add(Category.COMPLEX)
        matched.extend(complex_hits)
    if medical_hits:
        flags.add(Category.MEDICAL)
        matched.extend(medical_hits)

    topic = classify_topic(text)
    verdict = SafetyVerdict(
        is_safe=True,
        emergency_detected=False,
        flagged_categories=frozenset(flags),
        recommend_handoff=Category.COMPLEX in flags,
        topic=topic,
        matched_keywords=tuple(matched),
    )
    logger.debug(
        f"[CLASSIFY] topic={topic.value} flags={sorted(f.value for f in flags)} "
        f"handoff={verdict.recommend_handoff}"
    )
    return verdict


def format_verdict_log(verdict: SafetyVerdict) -> str:
    """One-line summary for backend logging (keywords only, never message text)."""
    return (
        f"SAFETY: safe={verdict.is_safe} emergency={verdict.emergency_detected} "
        f"topic={verdict.topic.value} flags={sorted(f.value for f in verdict.flagged_categories)} "
        f"handoff={verdict.recommend_handoff}"
    )
