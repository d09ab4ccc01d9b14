"""
utils/thai_text.py

Script-level helpers shared by the sanitizer, the handoff decider and the
orchestrator: Thai character ratio, language detection and the mixed-script
signal used for translation-difficulty handoffs.
"""

import re
from typing import Optional

from core.schemas import Language

THAI_CHAR_RE = re.compile(r"[฀-๿]")
LATIN_CHAR_RE = re.compile(r"[A-Za-z]")
# Redaction tokens are ASCII; they must not count as "English" when measuring script mix
REDACTION_TOKEN_RE = re.compile(r"\[(?:EMAIL|URL|ID|PHONE|NAME|ADDRESS|LINE_ID)\]")


def thai_ratio(text: str) -> float:
    """Share of letters (Thai + Latin) that are Thai. 0.0 for text with no letters."""
    text = REDACTION_TOKEN_RE.sub(" ", text or "")
    thai = len(THAI_CHAR_RE.findall(text))
    latin = len(LATIN_CHAR_RE.findall(text))
    total = thai + latin
    return thai / total if total else 0.0


def detect_language(text: str, default: Language = Language.THAI) -> Language:
    """Any Thai script wins; pure Latin text is English; anything else keeps the default."""
    text = REDACTION_TOKEN_RE.sub(" ", text or "")
    if THAI_CHAR_RE.search(text):
        return Language.THAI
    if LATIN_CHAR_RE.search(text):
        return Language.ENGLISH
    return default


def is_mixed_script(text: str, min_ratio: float = 0.3) -> bool:
    """True when both Thai and Latin letters make up at least `min_ratio` of the letters."""
    text = REDACTION_TOKEN_RE.sub(" ", text or "")
    thai = len(THAI_CHAR_RE.findall(text))
    latin = len(LATIN_CHAR_RE.findall(text))
    total = thai + latin
    if not total:
        return False
    return min(thai, latin) / total >= min_ratio


def resolve_language(declared: Optional[Language], text: str) -> Language:
    return declared if declared is not None else detect_language(text)
