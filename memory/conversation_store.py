# memory/conversation_store.py
"""
Session-partitioned conversation memory.

Holds, per session id:
- a bounded FIFO of recent turns (role, redacted text, topic)
- the ordered set of advice "concepts" already surfaced to the user
- the rolling emotional state derived from user turns

Concurrency contract: at most one writer per session at a time. The
orchestrator serializes turns per session; the store itself takes no locks,
so different sessions never block each other. Idle sessions are evicted after
a TTL; eviction is housekeeping only, a read after eviction simply starts a
fresh context.
"""

import re
import time
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, Dict, List, Optional, Tuple

from config.app_config import MAX_HISTORY_TURNS, MAX_TRACKED_CONCEPTS, SESSION_TTL_SECONDS
from core.schemas import Role, Topic
from utils.care_lexicon import ADVICE_CONCEPTS, first_match
from utils.emotional_context import (
    EmotionalState,
    format_emotional_context_log,
    summarize_emotional_state,
    update_emotional_state,
)
from utils.logging_utils import get_logger

logger = get_logger("conversation_store")

MAX_CONCEPTS_PER_REPLY = 8
CONCEPT_MAX_CHARS = 40
OPENING_PATTERN_CHARS = 30
_LIST_ITEM_RE = re.compile(r"^\s*(?:[-•*]|\d+[.)])\s+(.+)$", re.MULTILINE)
_PUNCT_RE = re.compile(r"[\"'“”‘’()\[\]{}!?…]+")


@dataclass(frozen=True)
class Turn:
    role: Role
    text: str
    topic: Topic = Topic.GENERAL
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class ConversationContext:
    """Read-only snapshot handed to the prompt builder."""
    session_id: str
    turns: Tuple[Turn, ...] = ()
    concepts: Tuple[str, ...] = ()
    emotional_state: EmotionalState = field(default_factory=EmotionalState)
    message_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.turns and not self.concepts

    @property
    def last_topic(self) -> Optional[Topic]:
        for turn in reversed(self.turns):
            if turn.role is Role.USER:
                return turn.topic
        return None


class _Session:
    __slots__ = ("turns", "concepts", "emotional_state", "message_count", "last_activity")

    def __init__(self, max_turns: int, now: float):
        self.turns: Deque[Turn] = deque(maxlen=max_turns)
        self.concepts: "OrderedDict[str, None]" = OrderedDict()
        self.emotional_state = EmotionalState()
        self.message_count = 0
        self.last_activity = now


def _normalize_concept(phrase: str) -> str:
    phrase = phrase.split(":", 1)[0]
    phrase = _PUNCT_RE.sub("", phrase)
    phrase = re.sub(r"\s+", " ", phrase).strip(" .,-").lower()
    if len(phrase) > CONCEPT_MAX_CHARS:
        cut = phrase[:CONCEPT_MAX_CHARS]
        phrase = cut.rsplit(" ", 1)[0] if " " in cut else cut
    return phrase


def extract_concepts(reply_text: str) -> List[str]:
    """Canonical phrases for the advice a reply gave.

    Two sources, in order: the care-advice lexicon (stable English labels for
    Thai or English wording) and the headings of bullet/numbered list items.
    """
    if not reply_text:
        return []
    found: "OrderedDict[str, None]" = OrderedDict()
    for canonical, thai, english in ADVICE_CONCEPTS:
        if first_match(reply_text, thai) or first_match(reply_text, english):
            found[canonical] = None
    for item in _LIST_ITEM_RE.findall(reply_text):
        phrase = _normalize_concept(item)
        if len(phrase) >= 4:
            found.setdefault(phrase, None)
    return list(found)[:MAX_CONCEPTS_PER_REPLY]


class ConversationStore:
    """In-process conversation memory keyed by session id."""

    def __init__(
        self,
        max_turns: int = MAX_HISTORY_TURNS,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        max_concepts: int = MAX_TRACKED_CONCEPTS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_turns = max_turns
        self.ttl_seconds = ttl_seconds
        self.max_concepts = max_concepts
        self._clock = clock
        self._sessions: Dict[str, _Session] = {}
        self._last_sweep = clock()

    # ---------- internals ----------

    def _session(self, session_id: str) -> _Session:
        now = self._clock()
        self._maybe_sweep(now)
        session = self._sessions.get(session_id)
        if session is None:
            session = self._sessions[session_id] = _Session(self.max_turns, now)
            logger.debug(f"[STORE] New session context: {session_id}")
        session.last_activity = now
        return session

    def _maybe_sweep(self, now: float) -> None:
        # Opportunistic cleanup, at most once per quarter TTL
        if now - self._last_sweep >= self.ttl_seconds / 4:
            self.evict_expired(now)

    # ---------- public API ----------

    def read(self, session_id: str) -> ConversationContext:
        """Snapshot of a session; an unknown session yields an empty context."""
        session = self._sessions.get(session_id)
        if session is None:
            return ConversationContext(session_id=session_id)
        return ConversationContext(
            session_id=session_id,
            turns=tuple(session.turns),
            concepts=tuple(session.concepts),
            emotional_state=session.emotional_state,
            message_count=session.message_count,
        )

    def append(self, session_id: str, turn: Turn) -> None:
        """Record a turn; user turns also advance the message count and emotional state."""
        session = self._session(session_id)
        session.turns.append(turn)
        if turn.role is Role.USER:
            session.message_count += 1
            previous = session.emotional_state.mood
            session.emotional_state = update_emotional_state(session.emotional_state, turn.text, turn.timestamp)
            if session.emotional_state.mood != previous:
                logger.debug(format_emotional_context_log(session.emotional_state, session_id))

    def track_concepts(self, session_id: str, reply_text: str) -> List[str]:
        """Extract concepts from an assistant reply and remember the new ones."""
        session = self._session(session_id)
        added = []
        for concept in extract_concepts(reply_text):
            if concept in session.concepts:
                session.concepts.move_to_end(concept)
                continue
            session.concepts[concept] = None
            added.append(concept)
        while len(session.concepts) > self.max_concepts:
            session.concepts.popitem(last=False)
        if added:
            logger.debug(f"[STORE] session={session_id} new concepts: {added}")
        return added

    def emotional_summary(self, session_id: str) -> str:
        session = self._sessions.get(session_id)
        return summarize_emotional_state(session.emotional_state) if session else ""

    def conversation_length(self, session_id: str) -> int:
        """Number of user messages seen for the session (survives history trimming)."""
        session = self._sessions.get(session_id)
        return session.message_count if session else 0

    def is_repetitive_response(self, session_id: str, proposed: str) -> bool:
        """True when `proposed` opens the same way as one of the recent assistant replies."""
        session = self._sessions.get(session_id)
        if session is None or not proposed:
            return False
        opening = proposed.strip()[:OPENING_PATTERN_CHARS]
        if len(opening) <= 10:
            return False
        for turn in list(session.turns)[-10:]:
            if turn.role is Role.ASSISTANT and turn.text.strip()[:OPENING_PATTERN_CHARS] == opening:
                return True
        return False

    def clear(self, session_id: str) -> bool:
        removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info(f"[STORE] Cleared session {session_id}")
        return removed

    def evict_expired(self, now: Optional[float] = None) -> int:
        """Drop sessions idle for longer than the TTL. Returns how many were removed."""
        now = self._clock() if now is None else now
        self._last_sweep = now
        expired = [sid for sid, s in self._sessions.items() if now - s.last_activity > self.ttl_seconds]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"[STORE] Evicted {len(expired)} idle session(s)")
        return len(expired)

    def stats(self) -> Dict[str, float]:
        now = self._clock()
        idle = [now - s.last_activity for s in self._sessions.values()]
        return {
            "active_sessions": len(self._sessions),
            "total_turns": sum(len(s.turns) for s in self._sessions.values()),
            "total_messages": sum(s.message_count for s in self._sessions.values()),
            "oldest_idle_seconds": max(idle) if idle else 0.0,
        }

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
