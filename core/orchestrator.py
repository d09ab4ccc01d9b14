"""
# core/orchestrator.py

Module Contract
- Purpose: High-level turn orchestrator. Runs one user message through sanitize → classify → (emergency exit) → context → prompt → provider → store → handoff → format.
- Inputs:
  - process_message(raw: RawMessage, mode: Mode, profile: Optional[UserProfile]) -> ChatResult
  - stream_message(raw: RawMessage, mode: Mode, profile: Optional[UserProfile]) -> AsyncIterator[str]
  - Wired collaborators: sanitizer, response_generator, prompt_builder, store, profile_store, analytics sink, optional analysis capability, provider (health only)
- Outputs:
  - ChatResult (one-shot) or text pieces (streaming).
- Behavior:
  - At most one turn per session in flight; a second message for the same session waits (queue policy).
    Different sessions never wait on each other.
  - Unsafe (emergency) messages never reach the provider: the fixed emergency message is returned.
  - Only redacted text is ever logged, stored, or sent to the provider.
  - One-shot failures come back as ChatResult(error_code=...) with a same-language apology.
  - Streaming failures raise the PipelineError after logging; the emergency path never raises.
  - Streaming: the reply body is forwarded as it arrives, then one trailing piece with the
    disclaimer/suggestion. Paragraph normalization applies to one-shot replies only.
- Side effects:
  - Writes turns/concepts to the ConversationStore; emits one AnalyticsRecord per turn.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional, Protocol, runtime_checkable

from core.analytics import AnalyticsSink, LoggingAnalyticsSink, Route, build_record, emit
from core.errors import ErrorCode, InvalidInputError, PipelineError, UnknownPipelineError, user_facing_message
from core.handoff import NO_HANDOFF, decide
from core.prompt.builder import PromptBuilder
from core.response_formatter import appendix, emergency_response, format_response
from core.response_generator import ResponseGenerator
from core.schemas import (
    ChatResult,
    HandoffDecision,
    Language,
    Mode,
    PromptPackage,
    RawMessage,
    Role,
    SafetyVerdict,
    SanitizedMessage,
    Topic,
)
from memory.conversation_store import ConversationStore, Turn
from memory.profile_store import ProfileStore, UserProfile
from utils.logging_utils import get_logger, log_and_time, preview
from utils.safety_classifier import classify, format_verdict_log
from utils.sanitizer import Sanitizer
from utils.thai_text import resolve_language


@runtime_checkable
class AnalysisCapability(Protocol):
    """External structured-analysis service consulted in intelligence mode.

    Returns short analysis notes to add to the prompt, or None.
    """

    async def analyze(self, text: str, topic: Topic, language: Language) -> Optional[str]:
        ...


@dataclass(frozen=True)
class _TurnPlan:
    sanitized: SanitizedMessage
    verdict: Optional[SafetyVerdict]  # None for rejected input
    language: Language


class ChatOrchestrator:
    """Coordinates one conversation turn at a time per session."""

    def __init__(
        self,
        *,
        response_generator: ResponseGenerator,
        store: ConversationStore,
        sanitizer: Optional[Sanitizer] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        profile_store: Optional[ProfileStore] = None,
        analytics_sink: Optional[AnalyticsSink] = None,
        analysis: Optional[AnalysisCapability] = None,
        provider=None,
    ):
        self.logger = get_logger("orchestrator")
        self.response_generator = response_generator
        self.store = store
        self.sanitizer = sanitizer or Sanitizer()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.profile_store = profile_store
        self.analytics_sink = analytics_sink or LoggingAnalyticsSink()
        self.analysis = analysis
        self.provider = provider or getattr(response_generator, "provider", None)

        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    # ---------- per-session serialization ----------

    @asynccontextmanager
    async def _session_turn(self, session_id: str):
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            if lock.locked():
                self.logger.debug(f"[Orchestrator] session={session_id} busy, queuing turn")
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if self._lock_users[session_id] == 0:
                del self._lock_users[session_id]
                del self._locks[session_id]

    def is_busy(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()

    # ---------- turn stages ----------

    def _plan(self, raw: RawMessage, streaming: bool) -> _TurnPlan:
        sanitized = self.sanitizer.sanitize(raw, streaming=streaming)
        language = resolve_language(raw.language, sanitized.redacted_text)
        verdict = classify(sanitized.redacted_text, unredacted=sanitized.raw.text) if sanitized.is_valid else None
        if verdict is not None:
            self.logger.info(f"[Orchestrator] session={raw.session_id} {format_verdict_log(verdict)}")
        return _TurnPlan(sanitized=sanitized, verdict=verdict, language=language)

    async def _lookup_profile(self, session_id: str, profile: Optional[UserProfile]) -> Optional[UserProfile]:
        if profile is not None or self.profile_store is None:
            return profile
        try:
            return await self.profile_store.get_profile(session_id)
        except Exception as e:
            self.logger.warning(f"[Orchestrator] Profile lookup failed, continuing without: {type(e).__name__}: {e}")
            return None

    async def _with_analysis(self, prompt: PromptPackage, text: str) -> PromptPackage:
        if self.analysis is None or prompt.mode is not Mode.INTELLIGENCE:
            return prompt
        try:
            notes = await self.analysis.analyze(text, prompt.topic, prompt.language)
        except Exception as e:
            self.logger.warning(f"[Orchestrator] Analysis capability failed: {type(e).__name__}: {e}")
            return prompt
        if not notes:
            return prompt
        label = "ผลการวิเคราะห์เบื้องต้น" if prompt.language is Language.THAI else "Analysis notes"
        return replace(prompt, user_prompt=f"{label}:\n{notes.strip()}\n\n{prompt.user_prompt}")

    async def _build_prompt(self, plan: _TurnPlan, mode: Mode, profile: Optional[UserProfile]) -> PromptPackage:
        session_id = plan.sanitized.raw.session_id
        context = self.store.read(session_id)
        profile = await self._lookup_profile(session_id, profile)
        prompt = self.prompt_builder.build(
            plan.sanitized.redacted_text,
            plan.verdict.topic,
            profile=profile,
            context=context,
            mode=mode,
            language=plan.language,
        )
        return await self._with_analysis(prompt, plan.sanitized.redacted_text)

    def _record_user_turn(self, plan: _TurnPlan) -> None:
        self.store.append(
            plan.sanitized.raw.session_id,
            Turn(role=Role.USER, text=plan.sanitized.redacted_text, topic=plan.verdict.topic),
        )

    def _record_reply(self, plan: _TurnPlan, reply_text: str) -> None:
        session_id = plan.sanitized.raw.session_id
        if self.store.is_repetitive_response(session_id, reply_text):
            self.logger.warning(f"[Orchestrator] session={session_id} reply repeats a recent opening")
        self.store.append(session_id, Turn(role=Role.ASSISTANT, text=reply_text, topic=plan.verdict.topic))
        self.store.track_concepts(session_id, reply_text)

    def _decide_handoff(self, plan: _TurnPlan) -> HandoffDecision:
        session_id = plan.sanitized.raw.session_id
        decision = decide(
            plan.sanitized.redacted_text,
            plan.verdict.topic,
            self.store.conversation_length(session_id),
        )
        if decision.should_recommend:
            self.logger.info(
                f"[HANDOFF] session={session_id} reason={decision.reason.value} urgency={decision.urgency.value}"
            )
        return decision

    def _emit(self, plan: _TurnPlan, handoff: HandoffDecision, routed: Route) -> None:
        emit(self.analytics_sink, build_record(plan.sanitized, plan.verdict, handoff, plan.language, routed))

    def _emergency_turn(self, plan: _TurnPlan) -> ChatResult:
        """Unsafe path: record the user turn, never call the provider."""
        self._record_user_turn(plan)
        handoff = self._decide_handoff(plan)
        self._emit(plan, handoff, Route.SAFETY)
        return ChatResult(
            session_id=plan.sanitized.raw.session_id,
            response=emergency_response(plan.language),
            topic=plan.verdict.topic,
            verdict=plan.verdict,
            handoff=handoff,
            error_code=ErrorCode.UNSAFE_CONTENT,
            used_provider=False,
        )

    def _failure(self, plan: _TurnPlan, error: PipelineError, used_provider: bool) -> ChatResult:
        return ChatResult(
            session_id=plan.sanitized.raw.session_id,
            response=user_facing_message(error.code, plan.language),
            topic=plan.verdict.topic if plan.verdict else Topic.GENERAL,
            verdict=plan.verdict,
            handoff=NO_HANDOFF,
            error_code=error.code,
            used_provider=used_provider,
        )

    # ---------- public API ----------

    @log_and_time("Process message")
    async def process_message(
        self,
        raw: RawMessage,
        mode: Mode = Mode.CONVERSATION,
        profile: Optional[UserProfile] = None,
    ) -> ChatResult:
        """Run one full (non-streaming) turn and return the formatted reply."""
        plan = self._plan(raw, streaming=False)
        if not plan.sanitized.is_valid:
            return self._failure(plan, InvalidInputError(plan.sanitized.invalid_reason or ""), used_provider=False)

        async with self._session_turn(raw.session_id):
            if not plan.verdict.is_safe:
                return self._emergency_turn(plan)

            prompt = await self._build_prompt(plan, mode, profile)
            self._record_user_turn(plan)
            self.logger.debug(
                f"[Orchestrator] session={raw.session_id} prompt ready: {preview(plan.sanitized.redacted_text)}"
            )

            try:
                reply = await self.response_generator.generate(prompt)
            except PipelineError as e:
                self.logger.error(f"[Orchestrator] session={raw.session_id} generation failed: {e.code.value}")
                self._emit(plan, NO_HANDOFF, Route.FALLBACK)
                return self._failure(plan, e, used_provider=True)
            except Exception as e:
                self.logger.exception(f"[Orchestrator] session={raw.session_id} unexpected error: {type(e).__name__}")
                self._emit(plan, NO_HANDOFF, Route.FALLBACK)
                return self._failure(plan, UnknownPipelineError(str(e)), used_provider=True)

            self._record_reply(plan, reply.text)
            handoff = self._decide_handoff(plan)
            response = format_response(reply.text, plan.verdict.topic, plan.language, handoff.should_recommend, mode)
            self._emit(plan, handoff, Route.PRIMARY)

            return ChatResult(
                session_id=raw.session_id,
                response=response,
                topic=plan.verdict.topic,
                verdict=plan.verdict,
                handoff=handoff,
                used_provider=True,
            )

    @log_and_time("Stream message")
    async def stream_message(
        self,
        raw: RawMessage,
        mode: Mode = Mode.CONVERSATION,
        profile: Optional[UserProfile] = None,
    ) -> AsyncIterator[str]:
        """Run one turn, yielding reply text as it is produced.

        Raises InvalidInputError for rejected input and the generator's
        PipelineError when the provider fails; the caller renders the apology.
        """
        plan = self._plan(raw, streaming=True)
        if not plan.sanitized.is_valid:
            raise InvalidInputError(plan.sanitized.invalid_reason or "")

        async with self._session_turn(raw.session_id):
            if not plan.verdict.is_safe:
                result = self._emergency_turn(plan)
                yield result.response
                return

            prompt = await self._build_prompt(plan, mode, profile)
            self._record_user_turn(plan)
            handoff = self._decide_handoff(plan)

            pieces = []
            stream = self.response_generator.generate_stream(prompt)
            try:
                async for piece in stream:
                    pieces.append(piece)
                    yield piece
            except PipelineError as e:
                self.logger.error(
                    f"[STREAMING] session={raw.session_id} failed after {sum(map(len, pieces))} chars: {e.code.value}"
                )
                self._emit(plan, NO_HANDOFF, Route.FALLBACK)
                raise
            finally:
                # Consumer went away or the stream ended: release provider resources now
                await stream.aclose()

            reply_text = "".join(pieces)
            self._record_reply(plan, reply_text)
            tail = appendix(plan.verdict.topic, plan.language, handoff.should_recommend, mode)
            if tail:
                yield tail
            self._emit(plan, handoff, Route.PRIMARY)

    async def health_check(self) -> Dict[str, Any]:
        provider_ok = False
        if self.provider is not None:
            provider_ok = await self.provider.validate_connection()
        return {
            "status": "ok" if provider_ok else "degraded",
            "provider": provider_ok,
            "store": self.store.stats(),
            "timestamp": datetime.now().isoformat(),
        }
