"""
utils/emotional_context.py

Rolling emotional tone for a conversation, derived from the user's own words.
Used by the conversation store (trend bookkeeping) and the prompt builder
(tone guidance for the generator).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Tuple

from utils.care_lexicon import (
    MOOD_BASE_INTENSITY,
    MOOD_MARKERS,
    URGENT_MARKERS_EN,
    URGENT_MARKERS_TH,
    first_match,
)

NEUTRAL = "neutral"
MAX_INTENSITY = 5
URGENT_BOOST = 2
MAX_JOURNEY = 20


@dataclass(frozen=True)
class MoodShift:
    timestamp: datetime
    mood: str
    trigger: Optional[str] = None


@dataclass(frozen=True)
class EmotionalState:
    """Current mood plus how it got there."""
    mood: str = NEUTRAL
    intensity: int = 1
    trigger: Optional[str] = None
    journey: Tuple[MoodShift, ...] = field(default_factory=tuple)


def detect_mood(text: str) -> Tuple[str, int, Optional[str]]:
    """Return (mood, intensity 1-5, trigger keyword) for a single user message."""
    mood, trigger = NEUTRAL, None
    for name, thai, english in MOOD_MARKERS:
        hit = first_match(text, thai) or first_match(text, english)
        if hit:
            mood, trigger = name, hit
            break

    intensity = MOOD_BASE_INTENSITY[mood]
    if first_match(text, URGENT_MARKERS_TH) or first_match(text, URGENT_MARKERS_EN):
        intensity = min(MAX_INTENSITY, intensity + URGENT_BOOST)
    return mood, intensity, trigger


def update_emotional_state(state: EmotionalState, text: str, now: Optional[datetime] = None) -> EmotionalState:
    """Fold one user message into the rolling state.

    A neutral message keeps the previous mood; the journey only grows when the mood changes.
    """
    mood, intensity, trigger = detect_mood(text)
    if mood == NEUTRAL and state.mood != NEUTRAL:
        return state

    journey = state.journey
    if mood != state.mood:
        journey = (journey + (MoodShift(now or datetime.now(), mood, trigger),))[-MAX_JOURNEY:]
    return replace(state, mood=mood, intensity=intensity, trigger=trigger, journey=journey)


def summarize_emotional_state(state: EmotionalState) -> str:
    """Compact trend line, e.g. 'anxious (intensity 4/5); trend: worried -> anxious'."""
    if state.mood == NEUTRAL and not state.journey:
        return ""
    summary = f"{state.mood} (intensity {state.intensity}/{MAX_INTENSITY})"
    moods: List[str] = [shift.mood for shift in state.journey[-3:]]
    if len(moods) > 1:
        summary += "; trend: " + " -> ".join(moods)
    return summary


def format_emotional_context_log(state: EmotionalState, session_id: str) -> str:
    """Format emotional state for backend logging."""
    return (
        f"EMOTIONAL_CONTEXT: session={session_id} mood={state.mood} "
        f"intensity={state.intensity} trigger={state.trigger} shifts={len(state.journey)}"
    )
