"""
utils/care_lexicon.py

Keyword tables for elder-care text analysis, plus the one matching routine
everything else uses.

Matching rules:
- Thai has no word spacing, so Thai keywords match as substrings.
- English keywords match on word boundaries (case-insensitive).
- Some short Thai keywords live inside unrelated words ("ยา" medicine inside
  "ยาก" difficult and "ยาย" grandmother). FALSE_FRIENDS lists those containers;
  a keyword only counts when it occurs more often than inside its containers.
"""

import re
from functools import lru_cache
from typing import Iterable, List, Tuple

from core.schemas import Topic


# ===== Emergency =====

EMERGENCY_KEYWORDS_TH = {
    "หมดสติ", "ไม่รู้สึกตัว", "ไม่หายใจ", "หายใจไม่ออก", "หายใจลำบาก",
    "เจ็บหน้าอก", "แน่นหน้าอก", "ชัก", "เลือดออกมาก", "อาเจียนเลือด",
    "หัวฟาด", "ปากเบี้ยว", "แขนขาอ่อนแรง", "พูดไม่ชัดทันที", "ช็อก",
    "สำลักอาหาร", "ฆ่าตัวตาย", "อยากตาย", "1669",
}

EMERGENCY_KEYWORDS_EN = {
    "unconscious", "unresponsive", "passed out", "not breathing", "can't breathe",
    "cannot breathe", "chest pain", "heart attack", "stroke", "seizure",
    "collapsed", "collapse", "choking", "severe bleeding", "coughing blood",
    "suicide", "kill myself", "want to die",
}


# ===== Complex / sensitive situations (handoff candidates) =====

COMPLEX_KEYWORDS_TH = {
    "มรดก", "แบ่งสมบัติ", "พินัยกรรม", "ทะเลาะ", "ขัดแย้ง", "พี่น้องไม่ช่วย",
    "ยาหลายตัว", "ยาหลายชนิด", "หลายโรค", "โรคประจำตัวหลายโรค",
    "ไม่รู้จะทำยังไง", "หมดหนทาง", "ซับซ้อน", "งงมาก", "เครียดมาก",
}

COMPLEX_KEYWORDS_EN = {
    "inheritance", "will dispute", "estate", "family conflict", "family fight",
    "siblings fighting", "multiple medications", "polypharmacy", "several conditions",
    "many medications", "complicated", "overwhelmed",
}

# Distinct medical keyword hits at or above this count also flag the message complex
COMPLEX_MEDICAL_HIT_COUNT = 3


# ===== Medical =====

MEDICAL_KEYWORDS_TH = {
    "ยา", "หมอ", "แพทย์", "โรงพยาบาล", "ความดัน", "เบาหวาน", "ผ่าตัด",
    "อาการ", "ปวด", "ไข้", "ฉีดยา", "เม็ด", "ตรวจเลือด", "วินิจฉัย",
}

MEDICAL_KEYWORDS_EN = {
    "medicine", "medication", "doctor", "hospital", "blood pressure", "diabetes",
    "surgery", "symptom", "symptoms", "pain", "fever", "injection", "pill", "pills",
    "dose", "dosage", "prescription", "diagnosis",
}


# ===== Topics (first match wins, table order) =====

TOPIC_KEYWORDS: List[Tuple[Topic, Tuple[str, ...], Tuple[str, ...]]] = [
    (Topic.POST_OP,
     ("หลังผ่าตัด", "แผลผ่าตัด", "แผล", "ฟื้นตัว"),
     ("after surgery", "surgery", "operation", "wound", "recovery")),
    (Topic.DIABETES,
     ("เบาหวาน", "น้ำตาลในเลือด", "อินซูลิน", "น้ำตาล"),
     ("diabetes", "diabetic", "blood sugar", "glucose", "insulin")),
    (Topic.ALZHEIMER,
     ("อัลไซเมอร์", "สมองเสื่อม", "ความจำ", "ขี้ลืม", "ลืม", "สับสน"),
     ("alzheimer", "alzheimer's", "dementia", "memory", "forget", "forgetful", "confusion", "confused")),
    (Topic.FALL,
     ("หกล้ม", "ลื่นล้ม", "ล้ม"),
     ("fall", "fell", "falls", "slip", "slipped", "trip", "tripped")),
    (Topic.MEDICATION,
     ("กินยา", "ยา", "เม็ด"),
     ("medicine", "medication", "pill", "pills", "drug", "prescription", "dose")),
    (Topic.SLEEP,
     ("นอนไม่หลับ", "ฝันร้าย", "นอน", "หลับ"),
     ("sleep", "insomnia", "nightmare", "nap")),
    (Topic.NIGHT_CARE,
     ("กลางคืน", "ตอนดึก", "ดึก", "ค่ำ"),
     ("night", "nighttime", "evening", "midnight")),
    (Topic.DIET,
     ("อาหาร", "กินข้าว", "กิน", "ดื่ม", "หิว", "โภชนาการ"),
     ("food", "eat", "eating", "drink", "nutrition", "meal", "diet")),
    (Topic.MOOD,
     ("อารมณ์", "เศร้า", "เครียด", "โกรธ", "หงุดหงิด", "ซึมเศร้า"),
     ("mood", "sad", "angry", "stress", "stressed", "depression", "depressed", "lonely")),
]

# Topics that route to a human for anything beyond general guidance
COMPLEX_TOPICS = frozenset({Topic.MEDICATION, Topic.POST_OP, Topic.DIABETES})


# ===== Emotional markers (checked in this order) =====

MOOD_MARKERS: List[Tuple[str, Tuple[str, ...], Tuple[str, ...]]] = [
    ("anxious",
     ("กังวล", "กลัว", "ไม่แน่ใจ", "วิตก", "เครียด", "ตื่นเต้น"),
     ("anxious", "scared", "afraid", "nervous", "panicking")),
    ("sad",
     ("เศร้า", "เหนื่อย", "ท้อ", "เบื่อ", "หดหู่", "ผิดหวัง"),
     ("sad", "tired", "exhausted", "hopeless", "depressed", "down")),
    ("worried",
     ("เป็นห่วง", "กลุ้มใจ", "ไม่สบายใจ", "ห่วงใย"),
     ("worried", "concerned", "uneasy")),
    ("calm",
     ("สบายใจ", "ผ่อนคลาย", "สงบ", "ดีใจ", "โล่งใจ"),
     ("relieved", "calm", "relaxed", "better now", "glad")),
    ("seeking",
     ("ช่วย", "แนะนำ", "ไม่รู้", "ยังไง", "อยากรู้"),
     ("help", "advice", "how do", "what should", "recommend")),
]

MOOD_BASE_INTENSITY = {
    "anxious": 3,
    "sad": 3,
    "worried": 2,
    "calm": 1,
    "seeking": 2,
    "neutral": 1,
}

URGENT_MARKERS_TH = ("ฉุกเฉิน", "ด่วน", "ไม่รู้จะทำยังไง", "หมดหนทาง", "ไม่ไหวแล้ว")
URGENT_MARKERS_EN = ("urgent", "emergency", "right now", "can't cope", "desperate")


# ===== Advice concepts (canonical phrase, Thai cues, English cues) =====

ADVICE_CONCEPTS: List[Tuple[str, Tuple[str, ...], Tuple[str, ...]]] = [
    ("grab bars", ("ราวจับ",), ("grab bar", "grab bars", "handrail", "handrails")),
    ("non-slip surfaces", ("กันลื่น",), ("non-slip", "anti-slip")),
    ("night lighting", ("ไฟกลางคืน", "ไฟส่องสว่าง", "เปิดไฟ"), ("night light", "night lights", "lighting")),
    ("clear walkways", ("ของกีดขวาง", "ทางเดิน"), ("obstacles", "clutter", "walkway", "walkways")),
    ("consistent sleep schedule", ("เวลาเดิม", "ตื่นนอนเวลา"), ("same time", "sleep schedule", "bedtime routine")),
    ("daily routine", ("กิจวัตร",), ("routine", "daily schedule")),
    ("limit caffeine", ("คาเฟอีน", "กาแฟ"), ("caffeine", "coffee")),
    ("light exercise", ("ออกกำลังกาย", "เดินเล่น", "ยืดเหยียด"), ("exercise", "walking", "stretching")),
    ("hydration", ("ดื่มน้ำ",), ("hydration", "hydrated", "water intake", "drink water")),
    ("balanced meals", ("ผักผลไม้", "ผัก", "โปรตีน"), ("vegetables", "protein", "balanced diet", "fruit")),
    ("blood sugar monitoring", ("ตรวจน้ำตาล", "วัดน้ำตาล"), ("blood sugar", "glucose monitoring")),
    ("medication schedule", ("กินยาตรงเวลา", "ตรงเวลา", "กล่องยา"), ("on time", "pill organizer", "pill box")),
    ("wound care", ("ทำความสะอาดแผล", "ดูแลแผล"), ("wound care", "clean the wound", "dressing")),
    ("consult a doctor", ("ปรึกษาแพทย์", "พบแพทย์", "หาหมอ", "ปรึกษาหมอ"), ("consult", "see a doctor", "talk to the doctor")),
    ("emotional support", ("กำลังใจ", "รับฟัง"), ("emotional support", "listen", "reassure", "reassurance")),
    ("caregiver self-care", ("ดูแลตัวเอง", "พักผ่อน"), ("self-care", "take a break", "rest yourself")),
    ("simple communication", ("คำพูดง่าย", "พูดช้า"), ("simple words", "simple language", "speak slowly")),
    ("safe environment", ("สภาพแวดล้อม", "ความปลอดภัย"), ("safe environment", "home safety")),
]


# ===== False friends =====

FALSE_FRIENDS = {
    "ยา": ("ยาก", "ยาย", "ยาว", "ยาม", "ยาน"),
    "ชัก": ("ชักชวน", "ชักจูง", "ชักนำ", "ชักช้า", "ชักว่าว"),
    "ล้ม": ("ล้มเหลว", "ล้มเลิก", "ล้มละลาย"),
    "สบายใจ": ("ไม่สบายใจ",),
    "fall": ("fall asleep", "falls asleep", "falling asleep"),
    "down": ("sit down", "lie down", "slow down", "calm down"),
}


# ===== Matching =====

def _is_thai(keyword: str) -> bool:
    return any("฀" <= ch <= "๿" for ch in keyword)


@lru_cache(maxsize=2048)
def _word_pattern(keyword: str) -> "re.Pattern":
    return re.compile(r"(?<![A-Za-z0-9])" + re.escape(keyword.lower()) + r"(?![A-Za-z0-9])")


def _count(text: str, lowered: str, keyword: str) -> int:
    if _is_thai(keyword) or keyword.isdigit():
        return text.count(keyword)
    return len(_word_pattern(keyword).findall(lowered))


def keyword_present(text: str, keyword: str) -> bool:
    """True if `keyword` occurs in `text` on its own, not only inside a false friend."""
    if not text:
        return False
    lowered = text.lower().replace("\u2019", "'")
    hits = _count(text, lowered, keyword)
    if not hits:
        return False
    contained = sum(_count(text, lowered, ff) for ff in FALSE_FRIENDS.get(keyword, ()))
    return hits > contained


def find_keywords(text: str, keywords: Iterable[str]) -> List[str]:
    """Matched keywords in a stable (sorted) order."""
    return sorted(kw for kw in set(keywords) if keyword_present(text, kw))


def first_match(text: str, keywords: Iterable[str]):
    for kw in keywords:
        if keyword_present(text, kw):
            return kw
    return None
