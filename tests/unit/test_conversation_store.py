"""
Unit tests for memory/conversation_store.py

Tests:
- Read of unknown sessions, append and FIFO bound
- Message count survives history trimming
- Concept extraction and tracking
- Repetition check
- TTL eviction with an injected clock
- Session isolation and stats
"""

import pytest
from core.schemas import Role, Topic
from memory.conversation_store import ConversationStore, Turn, extract_concepts


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return ConversationStore(max_turns=4, ttl_seconds=100, max_concepts=5, clock=clock)


def _user(text, topic=Topic.GENERAL):
    return Turn(role=Role.USER, text=text, topic=topic)


def _assistant(text):
    return Turn(role=Role.ASSISTANT, text=text)


# =============================================================================
# read / append
# =============================================================================

def test_read_unknown_session_is_empty(store):
    """Unknown sessions read as an empty context without being created"""
    context = store.read("nobody")

    assert context.is_empty
    assert context.message_count == 0
    assert "nobody" not in store


def test_append_and_read(store):
    """Turns come back in order with their roles"""
    store.append("s1", _user("สวัสดีค่ะ"))
    store.append("s1", _assistant("สวัสดีค่ะ มีอะไรให้ช่วยไหมคะ"))

    context = store.read("s1")
    assert [t.role for t in context.turns] == [Role.USER, Role.ASSISTANT]
    assert context.message_count == 1


def test_turns_bounded_fifo(store):
    """Only the last max_turns turns are kept"""
    for i in range(6):
        store.append("s1", _user(f"msg{i}"))

    context = store.read("s1")
    assert [t.text for t in context.turns] == ["msg2", "msg3", "msg4", "msg5"]


def test_message_count_survives_trimming(store):
    """conversation_length counts every user message ever seen"""
    for i in range(6):
        store.append("s1", _user(f"msg{i}"))
        store.append("s1", _assistant(f"reply{i}"))

    assert store.conversation_length("s1") == 6
    assert store.conversation_length("other") == 0


def test_last_topic(store):
    """last_topic is the topic of the latest user turn"""
    store.append("s1", _user("นอนไม่หลับ", Topic.SLEEP))
    store.append("s1", _assistant("ลองดื่มนมอุ่น ๆ"))

    assert store.read("s1").last_topic is Topic.SLEEP


def test_sessions_isolated(store):
    """Writes to one session never show up in another"""
    store.append("a", _user("ของ a"))
    store.append("b", _user("ของ b"))

    assert [t.text for t in store.read("a").turns] == ["ของ a"]
    assert [t.text for t in store.read("b").turns] == ["ของ b"]


def test_emotional_state_tracks_user_turns(store):
    """User turns move the emotional state; assistant turns don't"""
    store.append("s1", _user("ฉันกังวลมาก"))
    store.append("s1", _assistant("เข้าใจค่ะ กังวลเป็นเรื่องปกติ เหนื่อยไหมคะ"))

    assert store.read("s1").emotional_state.mood == "anxious"
    assert store.emotional_summary("s1").startswith("anxious")


# =============================================================================
# Concepts
# =============================================================================

def test_extract_concepts_lexicon_and_list_items():
    """Lexicon concepts and list-item headings are both extracted"""
    reply = "1. ติดราวจับในห้องน้ำ\n2. เปิดไฟกลางคืนไว้"
    concepts = extract_concepts(reply)

    assert "grab bars" in concepts
    assert "night lighting" in concepts
    assert "ติดราวจับในห้องน้ำ" in concepts


def test_extract_concepts_english():
    """English replies map onto the same canonical labels"""
    concepts = extract_concepts("Install grab bars and keep a night light on. Limit coffee after noon.")

    assert concepts[:3] == ["grab bars", "night lighting", "limit caffeine"]


def test_extract_concepts_empty():
    """Empty replies yield nothing"""
    assert extract_concepts("") == []


def test_track_concepts_returns_only_new(store):
    """Repeated concepts are not reported twice"""
    first = store.track_concepts("s1", "Install grab bars.")
    second = store.track_concepts("s1", "Grab bars again, and stay hydrated.")

    assert first == ["grab bars"]
    assert second == ["hydration"]
    assert store.read("s1").concepts == ("grab bars", "hydration")


def test_track_concepts_bounded(store):
    """Oldest concepts fall off once max_concepts is exceeded"""
    store.track_concepts("s1", "grab bars, non-slip mats, a night light, less clutter")
    store.track_concepts("s1", "a bedtime routine and some coffee limits, then walking")

    concepts = store.read("s1").concepts
    assert len(concepts) == 5
    assert "grab bars" not in concepts


# =============================================================================
# Repetition
# =============================================================================

def test_repetitive_response_detected(store):
    """A reply opening like a recent one is repetitive"""
    store.append("s1", _assistant("เข้าใจความรู้สึกของคุณเลยค่ะ การดูแลผู้สูงอายุไม่ง่าย"))

    assert store.is_repetitive_response("s1", "เข้าใจความรู้สึกของคุณเลยค่ะ การดูแลผู้สูงอายุไม่ง่าย และ...")
    assert not store.is_repetitive_response("s1", "ลองพาคุณแม่ออกไปเดินเล่นตอนเช้าดูนะคะ")


def test_short_openings_never_repetitive(store):
    """Short replies like 'ได้ค่ะ' are not flagged"""
    store.append("s1", _assistant("ได้ค่ะ"))
    assert not store.is_repetitive_response("s1", "ได้ค่ะ")


# =============================================================================
# Eviction / housekeeping
# =============================================================================

def test_evict_expired(store, clock):
    """Sessions idle beyond the TTL are dropped"""
    store.append("old", _user("hello"))
    clock.now = 80
    store.append("fresh", _user("hello"))

    clock.now = 150
    removed = store.evict_expired()

    assert removed == 1
    assert "old" not in store
    assert "fresh" in store


def test_read_after_eviction_starts_fresh(store, clock):
    """An evicted session reads back empty"""
    store.append("s1", _user("hello"))
    clock.now = 500
    store.evict_expired()

    assert store.read("s1").is_empty
    assert store.conversation_length("s1") == 0


def test_opportunistic_sweep(store, clock):
    """Appending after a quarter TTL sweeps idle sessions"""
    store.append("old", _user("hello"))
    clock.now = 200
    store.append("new", _user("hello"))

    assert "old" not in store
    assert len(store) == 1


def test_clear(store):
    """clear() removes one session and reports whether it existed"""
    store.append("s1", _user("hello"))

    assert store.clear("s1") is True
    assert store.clear("s1") is False


def test_stats(store, clock):
    """stats() summarizes all sessions"""
    store.append("a", _user("one"))
    store.append("a", _assistant("two"))
    store.append("b", _user("three"))
    clock.now = 10

    stats = store.stats()
    assert stats["active_sessions"] == 2
    assert stats["total_turns"] == 3
    assert stats["total_messages"] == 2
    assert stats["oldest_idle_seconds"] == 10
