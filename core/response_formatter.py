"""
# core/response_formatter.py

Module Contract
- Purpose: Final shaping of a reply before it reaches the user.
- Inputs:
  - format_response(raw_reply, topic, language, recommend_handoff, mode) -> str
  - emergency_response(language) -> str
- Outputs:
  - Display text: normalized paragraphs + at most one disclaimer + at most one suggestion.
- Behavior:
  - Paragraph normalization per language (blank-line collapse; Thai breaks after polite particles
    before transitions and numbered items; English breaks before numbered items).
  - Disclaimer chosen by (topic, mode); suggestion is either a mode switch (analytical topics in
    conversation mode) or the human-handoff line. Both are appended, never prepended.
  - Apply exactly once per reply; the caller owns that.
- Side effects:
  - None.
"""
import re

from core.schemas import Language, Mode, Topic, assert_never

# ===== Fixed texts =====

EMERGENCY_MESSAGE = {
    Language.THAI: "⚠️ นี่เป็นสถานการณ์ฉุกเฉิน กรุณาโทร 1669 หรือพาไปโรงพยาบาลทันที อย่าเสียเวลา",
    Language.ENGLISH: "⚠️ This is an emergency. Call 1669 or go to hospital immediately. Don't delay.",
}

DISCLAIMERS = {
    "emergency": {
        Language.THAI: "🚨 หากมีอาการฉุกเฉิน โทร 1669 ทันที ข้อมูลนี้ไม่ใช่การรักษาทางการแพทย์",
        Language.ENGLISH: "🚨 In an emergency call 1669 immediately. This information is not medical treatment.",
    },
    "medication": {
        Language.THAI: "💊 อย่าเปลี่ยนหรือหยุดยาเอง ควรปรึกษาแพทย์หรือเภสัชกรทุกครั้ง",
        Language.ENGLISH: "💊 Never change or stop medications on your own. Always check with a doctor or pharmacist.",
    },
    "medical": {
        Language.THAI: "ℹ️ ข้อมูลนี้เป็นคำแนะนำทั่วไป ไม่สามารถใช้แทนการตรวจจากแพทย์ได้",
        Language.ENGLISH: "ℹ️ This is general guidance and does not replace an examination by a doctor.",
    },
    "analysis": {
        Language.THAI: "ℹ️ การวิเคราะห์นี้สร้างโดย AI เพื่อประกอบการตัดสินใจ ควรยืนยันกับแพทย์ก่อนนำไปใช้",
        Language.ENGLISH: "ℹ️ This analysis is AI-generated to support decisions. Confirm with a doctor before acting on it.",
    },
}

MODE_SWITCH_SUGGESTION = {
    Language.THAI: "💡 หากต้องการข้อมูลเชิงลึกเรื่องนี้ ลองเปลี่ยนเป็นโหมดวิเคราะห์สุขภาพได้ค่ะ",
    Language.ENGLISH: "💡 For a deeper look at this topic, try switching to Health Intelligence mode.",
}

HANDOFF_SUGGESTION = {
    Language.THAI: "หากต้องการคำแนะนำเพิ่มเติม สามารถติดต่อทีมงานผ่าน LINE ได้เลยค่ะ",
    Language.ENGLISH: "For additional guidance, you can contact our team via LINE.",
}

# Topics whose answers benefit from the structured analytical mode
ANALYTICAL_TOPICS = frozenset({
    Topic.ALZHEIMER, Topic.DIABETES, Topic.POST_OP, Topic.MEDICATION, Topic.SLEEP,
})
MEDICATION_WARNING_TOPICS = frozenset({Topic.MEDICATION, Topic.DIABETES, Topic.POST_OP})

# ===== Paragraph normalization =====

_EXCESS_BLANK_RE = re.compile(r"\n{3,}")
_TRAILING_SPACE_RE = re.compile(r"[ \t]+\n")
_THAI_TRANSITIONS = (
    "แนะนำให้", "นอกจากนี้", "อย่างไรก็ตาม", "สำหรับ", "ส่วน", "ทั้งนี้", "ลองให้", "ควร",
)
_THAI_PARTICLE_BREAK_RE = re.compile(
    r"(ค่ะ|คะ|ครับ)[ \t]+(?=(?:" + "|".join(_THAI_TRANSITIONS) + r"|\d+[.)]\s))"
)
_EN_LIST_BREAK_RE = re.compile(r"([.!?:])[ \t]+(?=\d+[.)]\s)")


def normalize_paragraphs(text: str, language: Language) -> str:
    text = (text or "").strip().replace("\r\n", "\n")
    text = _TRAILING_SPACE_RE.sub("\n", text)
    if language is Language.THAI:
        text = _THAI_PARTICLE_BREAK_RE.sub(r"\1\n\n", text)
    elif language is Language.ENGLISH:
        text = _EN_LIST_BREAK_RE.sub(r"\1\n\n", text)
    else:
        assert_never(language)
    return _EXCESS_BLANK_RE.sub("\n\n", text)


# ===== Appendices =====

def select_disclaimer(topic: Topic, mode: Mode, language: Language) -> str:
    """At most one disclaimer per reply, picked by topic then mode."""
    if topic is Topic.GENERAL:
        return ""
    if topic is Topic.EMERGENCY:
        return DISCLAIMERS["emergency"][language]
    if topic in MEDICATION_WARNING_TOPICS:
        return DISCLAIMERS["medication"][language]
    if mode is Mode.INTELLIGENCE:
        return DISCLAIMERS["analysis"][language]
    if mode is Mode.CONVERSATION:
        return DISCLAIMERS["medical"][language]
    assert_never(mode)


def select_suggestion(topic: Topic, mode: Mode, language: Language, recommend_handoff: bool) -> str:
    """At most one suggestion: a mode switch when it fits, else the human channel."""
    if mode is Mode.CONVERSATION and topic in ANALYTICAL_TOPICS:
        return MODE_SWITCH_SUGGESTION[language]
    if recommend_handoff and topic is not Topic.EMERGENCY:
        return HANDOFF_SUGGESTION[language]
    return ""


def appendix(topic: Topic, language: Language, recommend_handoff: bool, mode: Mode) -> str:
    """Text appended after the reply body, including its leading separator."""
    extras = [
        select_disclaimer(topic, mode, language),
        select_suggestion(topic, mode, language, recommend_handoff),
    ]
    extras = [e for e in extras if e]
    return "\n\n" + "\n\n".join(extras) if extras else ""


def format_response(
    raw_reply: str,
    topic: Topic,
    language: Language,
    recommend_handoff: bool,
    mode: Mode = Mode.CONVERSATION,
) -> str:
    return normalize_paragraphs(raw_reply, language) + appendix(topic, language, recommend_handoff, mode)


def emergency_response(language: Language) -> str:
    """Fixed reply for the unsafe path; no provider text involved."""
    return EMERGENCY_MESSAGE[language] + appendix(Topic.EMERGENCY, language, True, Mode.CONVERSATION)
