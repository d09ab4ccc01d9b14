"""
utils/sanitizer.py

Input validation and PII redaction for inbound user messages.

Redaction runs as ordered passes over the raw text. Each pass claims the spans
it matches. A later match overlapping an earlier claim is skipped, unless it is
wider and fully contains every claim it overlaps (a URL carrying an email in
its query), in which case it replaces them. The order keeps the categories apart:

1. email        before social handles (local parts look like @handles)
2. url          before phone numbers (URLs carry digit runs)
3. national ID  before generic long digit runs (13 digits would read as a phone)
4. phone        Thai domestic, +66/international, generic long digit runs
5. name         Thai honorific + name
6. address      house number/moo, soi/road/district/province fragments
7. social handle last

Digit-bearing categories are length-gated: a match with fewer digits than
PII_MIN_DIGIT_LENGTH is left alone, so ages, weights and doses stay readable.
Replacement tokens never match any pattern, which makes sanitize() idempotent.
"""

import re
from dataclasses import replace
from typing import List, Optional, Tuple

from config.app_config import (
    MAX_LENGTH_BATCH,
    MAX_LENGTH_STREAMING,
    MIN_INPUT_LENGTH,
    PII_MIN_DIGIT_LENGTH,
    SNIPPET_MAX_LENGTH,
)
from core.schemas import PIICategory, RawMessage, RedactionRecord, SanitizedMessage
from utils.care_lexicon import EMERGENCY_KEYWORDS_TH, MEDICAL_KEYWORDS_TH
from utils.logging_utils import get_logger

logger = get_logger("sanitizer")


REDACTION_TOKENS = {
    PIICategory.EMAIL: "[EMAIL]",
    PIICategory.URL: "[URL]",
    PIICategory.ID_NUMBER: "[ID]",
    PIICategory.PHONE: "[PHONE]",
    PIICategory.NAME: "[NAME]",
    PIICategory.ADDRESS: "[ADDRESS]",
    PIICategory.SOCIAL_HANDLE: "[LINE_ID]",
}

DIGIT_GATED = frozenset({PIICategory.ID_NUMBER, PIICategory.PHONE})

_SEP = r"[ .\-]?"

# Words that follow "คุณ" without it being a personal name (kinship, roles, "you" + verb)
_NOT_NAME_AFTER_KHUN = (
    "แม่", "พ่อ", "ยาย", "ตา", "ปู่", "ย่า", "ป้า", "ลุง", "น้า", "อา", "พี่", "น้อง",
    "หมอ", "พยาบาล", "ครู", "ลูก", "หลาน", "ภาพ", "ค่า", "สมบัติ",
    "ช่วย", "คิด", "ว่า", "จะ", "เคย", "ต้อง", "ควร", "สามารถ", "เป็น", "มี", "รู้", "ได้",
)
_NOT_NAME_AFTER_TITLE = ("จ้าง", "พยาบาล")

# Thai is written without spaces, so a name runs until whitespace, a non-Thai
# character, or the start of a word that must not be swallowed (symptoms above all).
_STOP_WORDS = sorted(
    {w for w in EMERGENCY_KEYWORDS_TH | MEDICAL_KEYWORDS_TH if len(w) >= 3 and not w.isdigit()}
    | {"ไม่สบาย", "ป่วย", "เป็นลม", "ล้ม", "กิน", "นอน", "อายุ", "ที่", "และ", "กับ"},
    key=len,
    reverse=True,
)
_STOP_ALT = "|".join(re.escape(w) for w in _STOP_WORDS)
# Body characters may never start a stop word, so a symptom right after a title or road is kept whole
_NAME_CHAR = r"(?:(?!" + _STOP_ALT + r")[ก-๙])"
_ADDRESS_CHAR = r"(?:(?!" + _STOP_ALT + r")[ก-๙0-9])"
_NAME_END = r"(?=\s|$|[^ก-๙]|" + _STOP_ALT + r")"
_ADDRESS_END = r"(?=\s|$|[^ก-๙0-9]|" + _STOP_ALT + r")"


def _build_patterns(min_digits: int) -> List[Tuple[PIICategory, "re.Pattern"]]:
    not_name = "|".join(_NOT_NAME_AFTER_KHUN)
    not_title = "|".join(_NOT_NAME_AFTER_TITLE)
    return [
        (PIICategory.EMAIL, re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}")),
        (PIICategory.URL, re.compile(r"(?:https?://|www\.)[^\s<>\"']+", re.IGNORECASE)),
        (PIICategory.ID_NUMBER, re.compile(r"(?<!\d)\d-?\d{4}-?\d{5}-?\d{2}-?\d(?!\d)")),
        (PIICategory.PHONE, re.compile(
            # +66 81 234 5678, 0066-2-123-4567, +1 415 555 0100
            r"(?<![A-Za-z0-9+])(?:\+|00)\d{1,3}(?:" + _SEP + r"\(?\d{1,4}\)?){2,5}(?!\d)"
            # 081-234-5678, (02) 123 4567, 0812345678
            r"|(?<!\d)\(?0\d{1,2}\)?" + _SEP + r"\d{3}" + _SEP + r"\d{3,4}(?!\d)"
            # bare long digit runs
            r"|(?<!\d)\d{" + str(max(min_digits, 1)) + r",}(?!\d)"
        )),
        (PIICategory.NAME, re.compile(
            r"(?:นางสาว|นาย|นาง|ดร\.|ศ\.|รศ\.|ผศ\.)\s?(?!" + not_title + r")" + _NAME_CHAR + r"{2,}?" + _NAME_END
            + r"|คุณ(?!" + not_name + r")" + _NAME_CHAR + r"{2,}?" + _NAME_END
        )),
        (PIICategory.ADDRESS, re.compile(
            r"\d+/\d+\s*(?:หมู่(?:ที่)?|ม\.)\s*\d+"
            r"|(?:ซอย|ถนน|ตำบล|อำเภอ|จังหวัด)\s?" + _ADDRESS_CHAR + r"+?" + _ADDRESS_END
        )),
        (PIICategory.SOCIAL_HANDLE, re.compile(r"(?<![\w.\]])@[A-Za-z0-9._\-]{2,}")),
    ]


def create_safe_snippet(text: str, max_length: int = SNIPPET_MAX_LENGTH) -> str:
    """Short single-line excerpt of already-redacted text for analytics and logs.

    Cuts at the last space when that keeps at least 70% of max_length.
    """
    text = re.sub(r"\s+", " ", text or "").strip()
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.7:
        truncated = truncated[:last_space]
    return truncated + "..."


class Sanitizer:
    """Validate and de-identify raw messages. Never raises."""

    def __init__(
        self,
        min_digit_length: int = PII_MIN_DIGIT_LENGTH,
        max_length_streaming: int = MAX_LENGTH_STREAMING,
        max_length_batch: int = MAX_LENGTH_BATCH,
        min_length: int = MIN_INPUT_LENGTH,
    ):
        self.min_digit_length = min_digit_length
        self.max_length_streaming = max_length_streaming
        self.max_length_batch = max_length_batch
        self.min_length = max(min_length, 1)
        self.patterns = _build_patterns(min_digit_length)

    # ---------- redaction ----------

    def _gated(self, category: PIICategory, matched: str) -> bool:
        if category not in DIGIT_GATED:
            return False
        return sum(ch.isdigit() for ch in matched) < self.min_digit_length

    def redact(self, text: str) -> Tuple[str, Tuple[RedactionRecord, ...]]:
        """Return (redacted_text, records). Record spans index into `text`."""
        if not text:
            return text or "", ()

        claimed: List[Tuple[int, int, PIICategory, str]] = []
        for category, pattern in self.patterns:
            for m in pattern.finditer(text):
                start, end = m.span()
                if start == end or self._gated(category, m.group(0)):
                    continue
                overlapping = [c for c in claimed if start < c[1] and c[0] < end]
                if overlapping:
                    # A wider later match (a URL around an email) takes over the claims it contains
                    if not all(start <= c[0] and c[1] <= end and (c[0], c[1]) != (start, end) for c in overlapping):
                        continue
                    claimed = [c for c in claimed if c not in overlapping]
                claimed.append((start, end, category, m.group(0)))

        if not claimed:
            return text, ()

        claimed.sort(key=lambda c: c[0])
        parts = []
        cursor = 0
        for start, end, category, _ in claimed:
            parts.append(text[cursor:start])
            parts.append(REDACTION_TOKENS[category])
            cursor = end
        parts.append(text[cursor:])

        records = tuple(
            RedactionRecord(category=category, original=original, span=(start, end))
            for start, end, category, original in claimed
        )
        return "".join(parts), records

    def scrub(self, text: str) -> str:
        return self.redact(text)[0]

    # ---------- validation ----------

    def validate(self, text: Optional[str], streaming: bool = False) -> Optional[str]:
        """Return an invalid-reason string, or None when the text is acceptable."""
        if text is None or not text.strip():
            return "empty"
        if len(text.strip()) < self.min_length:
            return "too_short"
        limit = self.max_length_streaming if streaming else self.max_length_batch
        if len(text) > limit:
            return "too_long"
        return None

    def sanitize(self, raw: RawMessage, streaming: bool = False) -> SanitizedMessage:
        """Validate and redact one message.

        Oversized text is still redacted so the caller can log it safely.
        """
        text = raw.text if isinstance(raw.text, str) else ""
        if text is not raw.text:
            raw = replace(raw, text=text)

        reason = self.validate(text, streaming=streaming)
        redacted, records = self.redact(text)

        if records:
            categories = sorted({r.category.value for r in records})
            logger.debug(f"[SANITIZE] session={raw.session_id} redacted={len(records)} categories={categories}")
        if reason:
            logger.info(f"[SANITIZE] session={raw.session_id} rejected input: {reason} (len={len(text)})")

        return SanitizedMessage(
            raw=raw,
            redacted_text=redacted,
            redactions=records,
            is_valid=reason is None,
            invalid_reason=reason,
        )
