"""
# core/prompt/builder.py

Module Contract
- Purpose: Compose the single outbound prompt for one turn.
- Inputs:
  - build(text, topic, profile, context, mode, language) -> PromptPackage
- Outputs:
  - PromptPackage(system_prompt, user_prompt, ...) ready for the provider.
- Behavior:
  - System part: persona + topic addendum + mode clause.
  - User part: demographic hints (each optional), emotional trend, already-given
    concepts with an instruction not to repeat them, recent turns, then the user line.
  - Any absent input simply drops its clause; nothing here raises on missing data.
- Dependencies:
  - core.prompt.templates (static text), memory.conversation_store.ConversationContext
- Side effects:
  - None (pure); DEBUG logging of section sizes only.
"""

from typing import Any, Iterable, List, Optional

from config.app_config import PROMPT_RECENT_CONCEPTS, PROMPT_RECENT_TURNS
from core.schemas import Language, Mode, PromptPackage, Role, Topic, assert_never
from memory.conversation_store import ConversationContext
from memory.profile_store import Gender, UserProfile
from utils.emotional_context import summarize_emotional_state
from utils.logging_utils import get_logger, log_duration

from .templates import (
    AGE_CONTEXT,
    BASE_SYSTEM_PROMPT,
    GENDER_CONTEXT,
    LABELS,
    MODE_PROMPTS,
    REGION_CONTEXT,
    TOPIC_PROMPTS,
)

logger = get_logger("prompt_builder")

TURN_PREVIEW_CHARS = 200


def _dedupe_keep_order(items: Iterable[Any], key_fn=lambda x: str(x).strip().lower()) -> List[Any]:
    """Deduplicate while preserving order."""
    seen = set()
    result = []
    for item in items:
        key = key_fn(item)
        if key not in seen:
            seen.add(key)
            result.append(item)
    return result


def _truncate_list(items: List[Any], limit: int) -> List[Any]:
    """Truncate list to limit, keeping most recent items."""
    if limit <= 0:
        return []
    return items[-limit:] if len(items) > limit else items


class PromptBuilder:
    """Pure prompt assembly; one instance can serve every session."""

    def __init__(self, recent_turns: int = PROMPT_RECENT_TURNS, recent_concepts: int = PROMPT_RECENT_CONCEPTS):
        self.recent_turns = recent_turns
        self.recent_concepts = recent_concepts

    # ---------- sections ----------

    @staticmethod
    def system_section(topic: Topic, mode: Mode, language: Language) -> str:
        parts = [BASE_SYSTEM_PROMPT[language]]
        topic_prompt = TOPIC_PROMPTS.get(topic)
        if topic_prompt:
            parts.append(topic_prompt[language])
        parts.append(MODE_PROMPTS[mode][language])
        return "\n\n".join(parts)

    @staticmethod
    def profile_section(profile: Optional[UserProfile], language: Language) -> str:
        if profile is None or profile.is_empty:
            return ""
        lines = []
        if profile.age_range is not None:
            lines.append(f"- {LABELS['age'][language]}: {AGE_CONTEXT[profile.age_range][language]}")
        if profile.gender is not None and profile.gender is not Gender.PREFER_NOT_TO_SAY:
            lines.append(f"- {LABELS['gender'][language]}: {GENDER_CONTEXT[profile.gender][language]}")
        if profile.region is not None:
            lines.append(f"- {LABELS['region'][language]}: {REGION_CONTEXT[profile.region][language]}")
        if not lines:
            return ""
        return f"{LABELS['profile'][language]}:\n" + "\n".join(lines)

    @staticmethod
    def emotion_section(context: Optional[ConversationContext], language: Language) -> str:
        if context is None:
            return ""
        summary = summarize_emotional_state(context.emotional_state)
        return f"{LABELS['emotion'][language]}: {summary}" if summary else ""

    def concepts_section(self, context: Optional[ConversationContext], language: Language) -> str:
        if context is None or not context.concepts:
            return ""
        concepts = _truncate_list(_dedupe_keep_order(context.concepts), self.recent_concepts)
        return LABELS["concepts"][language].format(concepts=", ".join(concepts))

    def history_section(self, context: Optional[ConversationContext], language: Language) -> str:
        if context is None or not context.turns:
            return ""
        lines = []
        for turn in _truncate_list(list(context.turns), self.recent_turns):
            if turn.role is Role.USER:
                role = LABELS["user_role"][language]
            elif turn.role is Role.ASSISTANT:
                role = LABELS["assistant_role"][language]
            else:
                assert_never(turn.role)
            text = " ".join(turn.text.split())
            if len(text) > TURN_PREVIEW_CHARS:
                text = text[:TURN_PREVIEW_CHARS] + "..."
            lines.append(f"{role}: {text}")
        return f"{LABELS['recent'][language]}:\n" + "\n".join(lines)

    # ---------- assembly ----------

    @log_duration("Prompt build")
    def build(
        self,
        text: str,
        topic: Topic,
        profile: Optional[UserProfile] = None,
        context: Optional[ConversationContext] = None,
        mode: Mode = Mode.CONVERSATION,
        language: Language = Language.THAI,
    ) -> PromptPackage:
        """Assemble the prompt package for one turn from redacted user text."""
        system_prompt = self.system_section(topic, mode, language)

        sections = [
            self.profile_section(profile, language),
            self.emotion_section(context, language),
            self.concepts_section(context, language),
            self.history_section(context, language),
        ]
        if "[" in text:
            sections.append(LABELS["redaction_note"][language])
        sections.append(f"{LABELS['user'][language]}: {text.strip()}")
        user_prompt = "\n\n".join(s for s in sections if s)

        logger.debug(
            f"[PROMPT] topic={topic.value} mode={mode.value} lang={language.value} "
            f"system_chars={len(system_prompt)} user_chars={len(user_prompt)} "
            f"sections={sum(1 for s in sections if s)}"
        )
        return PromptPackage(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            topic=topic,
            mode=mode,
            language=language,
        )
