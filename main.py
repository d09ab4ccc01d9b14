"""
# main.py

Module Contract
- Purpose: Application entry point. Builds the orchestrator stack and runs a small terminal chat or a health check.
- Inputs:
  - CLI arg `mode`: "cli" (default) or "health"; optional "--lang th|en", "--mode conversation|intelligence", "--no-stream"
  - Environment: OPENAI_API_KEY, ASSISTANT_* overrides (see config/app_config.py), optionally from a .env file
- Outputs:
  - cli: interactive chat on stdin/stdout, one session per run
  - health: JSON health report on stdout; exit code 0 when the provider answers, 1 otherwise
- Key functions:
  - build_orchestrator() → ChatOrchestrator wired with ModelManager, ConversationStore, PromptBuilder
- Side effects:
  - Configures root logging; holds an HTTP client closed on exit.
"""
import argparse
import asyncio
import json
import sys
import uuid

from dotenv import load_dotenv

# .env must be loaded before config.app_config reads the environment
load_dotenv()

from config.app_config import HANDOFF_BASE_URL, LOG_FILE_PATH, LOG_LEVEL
from utils.logging_utils import configure_logging, get_logger

# Setup logging early to avoid duplicate handlers
configure_logging(level=LOG_LEVEL, file_path=LOG_FILE_PATH, console_level="WARNING")
logger = get_logger("main")

from core.analytics import LoggingAnalyticsSink
from core.dependencies import deps
from core.errors import PipelineError, user_facing_message
from core.handoff import build_handoff_url
from core.orchestrator import ChatOrchestrator
from core.pacing import NoPacing
from core.prompt.builder import PromptBuilder
from core.schemas import Language, Mode, RawMessage
from memory.profile_store import InMemoryProfileStore
from models.model_manager import ModelManager
from utils.sanitizer import Sanitizer


def build_orchestrator(pacer=None) -> ChatOrchestrator:
    """Builds and returns a configured orchestrator"""
    # Create model_manager FIRST
    model_manager = ModelManager()
    logger.info(f"[ModelManager] Active model: {model_manager.model} via {model_manager.base_url}")

    # Register shared dependencies
    deps.initialize(model_manager, pacer=pacer)

    return ChatOrchestrator(
        response_generator=deps.get_response_generator(),
        store=deps.get_conversation_store(),
        sanitizer=Sanitizer(),
        prompt_builder=PromptBuilder(),
        profile_store=InMemoryProfileStore(),
        analytics_sink=LoggingAnalyticsSink(),
        provider=model_manager,
    )


async def run_cli(orchestrator: ChatOrchestrator, language, mode: Mode, stream: bool) -> None:
    session_id = uuid.uuid4().hex
    print("Type a message (empty line or Ctrl-D to quit).")
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line or not line.strip():
            break
        raw = RawMessage(session_id=session_id, text=line.rstrip("\n"), language=language)

        if not stream:
            result = await orchestrator.process_message(raw, mode=mode)
            print(f"\n{result.response}\n")
            handoff = result.handoff
        else:
            try:
                async for piece in orchestrator.stream_message(raw, mode=mode):
                    print(piece, end="", flush=True)
                print("\n")
            except PipelineError as e:
                print(f"\n{user_facing_message(e.code, language or Language.THAI)}\n")
            handoff = None

        if handoff is not None and handoff.should_recommend:
            url = build_handoff_url(HANDOFF_BASE_URL, session_id, handoff.reason, handoff.urgency)
            if url:
                print(f"[handoff: {handoff.reason.value}/{handoff.urgency.value}] {url}\n")


async def run_health(orchestrator: ChatOrchestrator) -> int:
    report = await orchestrator.health_check()
    print(json.dumps(report, indent=2, ensure_ascii=False))
    return 0 if report["provider"] else 1


async def _main(args) -> int:
    orchestrator = build_orchestrator(pacer=NoPacing() if args.mode_name == "health" else None)
    try:
        if args.mode_name == "health":
            return await run_health(orchestrator)
        language = Language(args.lang) if args.lang else None
        await run_cli(orchestrator, language, Mode(args.chat_mode), stream=not args.no_stream)
        return 0
    finally:
        await deps.get_model_manager().aclose()
        deps.reset()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Elder-care assistant pipeline")
    parser.add_argument("mode_name", nargs="?", default="cli", choices=["cli", "health"])
    parser.add_argument("--lang", choices=[l.value for l in Language], default=None)
    parser.add_argument("--mode", dest="chat_mode", choices=[m.value for m in Mode], default=Mode.CONVERSATION.value)
    parser.add_argument("--no-stream", action="store_true")
    return parser.parse_args(argv)


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(_main(parse_args())))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
