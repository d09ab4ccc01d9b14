"""
Unit tests for utils/safety_classifier.py

Tests:
- Emergency detection dominates every other signal, including redaction
- Medical / complex flagging and handoff recommendation
- Topic labelling (table order, false friends, English word boundaries)
- Verdict log line never contains message text
"""

import pytest
from core.schemas import Category, Topic
from utils.safety_classifier import classify, classify_topic, detect_emergency, format_verdict_log
from utils.sanitizer import Sanitizer


# =============================================================================
# Emergency
# =============================================================================

@pytest.mark.parametrize("text", [
    "ไม่สบาย หมดสติ",
    "คุณพ่อเจ็บหน้าอกมาก",
    "ยายหายใจไม่ออก",
    "My mother collapsed after dinner",
    "he can't breathe",
    "she can’t breathe",
])
def test_emergency_detected(text):
    """Emergency keywords force an unsafe verdict"""
    verdict = classify(text)

    assert verdict.emergency_detected is True
    assert verdict.is_safe is False
    assert verdict.topic is Topic.EMERGENCY
    assert verdict.recommend_handoff is True
    assert Category.EMERGENCY in verdict.flagged_categories
    assert verdict.matched_keywords


def test_emergency_dominates_other_topics():
    """A sleep question that also mentions unconsciousness is an emergency"""
    verdict = classify("คุณยายนอนไม่หลับ แต่ตอนนี้หมดสติ")

    assert verdict.topic is Topic.EMERGENCY
    assert verdict.is_safe is False


def test_emergency_keeps_medical_flag():
    """Medical words alongside an emergency are still flagged"""
    verdict = classify("กินยาแล้วชักเกร็ง")

    assert verdict.flagged_categories == frozenset({Category.EMERGENCY, Category.MEDICAL})


@pytest.mark.parametrize("text", [
    "พ่อล้มกลางถนนหมดสติ",
    "แม่ล้มที่ซอยหมดสติ",
    "นางหมดสติ",
])
def test_emergency_survives_redaction(text):
    """A symptom written right after a road or title is still an emergency once redacted"""
    redacted = Sanitizer().scrub(text)

    verdict = classify(redacted, unredacted=text)

    assert "หมดสติ" in redacted
    assert verdict.emergency_detected is True
    assert verdict.topic is Topic.EMERGENCY


def test_unredacted_text_checked_for_emergency():
    """Emergency keywords hidden by a redaction token are found in the original text"""
    verdict = classify("พ่อล้มกลาง[ADDRESS]", unredacted="พ่อล้มกลางถนนหมดสติ")

    assert verdict.emergency_detected is True
    assert verdict.is_safe is False
    assert verdict.matched_keywords == ("หมดสติ",)


def test_unredacted_text_does_not_set_topic():
    """Only emergencies are read from the original text; topic comes from the redacted text"""
    verdict = classify("ยายนอนไม่หลับ", unredacted="ยายนอนไม่หลับ")

    assert verdict.is_safe is True
    assert verdict.topic is Topic.SLEEP


def test_detect_emergency_lists_keywords():
    """detect_emergency returns the matched keywords in sorted order"""
    assert detect_emergency("หมดสติ ไม่หายใจ") == sorted(["หมดสติ", "ไม่หายใจ"])
    assert detect_emergency("สบายดีค่ะ") == []


# =============================================================================
# Medical / complex
# =============================================================================

def test_medical_flag_without_handoff():
    """A single medication question is medical but not complex"""
    verdict = classify("คุณพ่อกินยาความดันทุกวัน")

    assert verdict.is_safe is True
    assert verdict.flagged_categories == frozenset({Category.MEDICAL})
    assert verdict.recommend_handoff is False
    assert verdict.topic is Topic.MEDICATION


def test_complex_keyword_recommends_handoff():
    """Family conflict is complex and recommends a human"""
    verdict = classify("พี่น้องทะเลาะเรื่องมรดกของแม่")

    assert verdict.is_safe is True
    assert Category.COMPLEX in verdict.flagged_categories
    assert verdict.recommend_handoff is True


def test_many_medical_terms_are_complex():
    """Three or more distinct medical terms flag the message complex"""
    verdict = classify("หมอให้ยาหลังผ่าตัด แต่ยังมีไข้")

    assert Category.COMPLEX in verdict.flagged_categories
    assert Category.MEDICAL in verdict.flagged_categories
    assert verdict.topic is Topic.POST_OP


def test_false_friend_not_medical():
    """'ยาก' (difficult) and 'ยาย' (grandmother) do not mean medicine"""
    verdict = classify("ดูแลยายยากมาก")

    assert Category.MEDICAL not in verdict.flagged_categories
    assert verdict.topic is Topic.GENERAL


def test_english_word_boundary():
    """'pain' inside 'painting' is not a medical keyword"""
    verdict = classify("I need a painting for the room")

    assert verdict.flagged_categories == frozenset()


# =============================================================================
# Topics
# =============================================================================

@pytest.mark.parametrize("text, topic", [
    ("ยายนอนไม่หลับทุกคืน", Topic.SLEEP),
    ("แผลหลังผ่าตัดยังบวม", Topic.POST_OP),
    ("น้ำตาลในเลือดสูง", Topic.DIABETES),
    ("คุณตาเริ่มขี้ลืม", Topic.ALZHEIMER),
    ("แม่หกล้มในห้องน้ำ", Topic.FALL),
    ("ควรกินอาหารอะไรดี", Topic.DIET),
    ("My father feels lonely", Topic.MOOD),
    ("Dad gets up at midnight", Topic.NIGHT_CARE),
    ("สวัสดีค่ะ", Topic.GENERAL),
])
def test_topic_labels(text, topic):
    """Topic keywords map to the expected topic"""
    assert classify_topic(text) is topic


def test_topic_table_order():
    """Post-op wins over medication when both appear"""
    assert classify_topic("หลังผ่าตัดต้องกินยาอะไรบ้าง") is Topic.POST_OP


def test_fall_asleep_is_not_a_fall():
    """'fall asleep' does not count as a fall"""
    assert classify_topic("She likes to fall asleep early") is not Topic.FALL


def test_empty_text_is_safe_general():
    """Blank text gets the default safe verdict"""
    verdict = classify("   ")
    assert verdict.is_safe is True
    assert verdict.topic is Topic.GENERAL


# =============================================================================
# Logging helper
# =============================================================================

def test_verdict_log_has_no_message_text():
    """The log line describes the verdict without quoting the user"""
    text = "คุณพ่อกินยาความดันทุกวัน"
    line = format_verdict_log(classify(text))

    assert "topic=medication" in line
    assert text not in line
