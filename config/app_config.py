"""
# config/app_config.py

Module Contract
- Purpose: Central configuration loader/normalizer. Reads YAML (optional), merges env overrides, sets defaults, and exposes module-level constants for the safety pipeline.
- Inputs:
  - Optional YAML (config.yaml) at several search paths
  - Environment variables (OPENAI_API_KEY, ASSISTANT_BASE_URL, ASSISTANT_MODEL, ASSISTANT_LOG_LEVEL, HANDOFF_BASE_URL)
- Outputs:
  - Module-level constants used across the stack: input limits, PII thresholds, history/TTL, retry, streaming pacing, handoff and model knobs.
- Key functions:
  - load_yaml_config(config_path) → dict: tolerant loader with variable resolution
  - ensure_config_defaults(config) → dict: fills missing defaults per section
  - apply_env_overrides(config) → dict: environment wins over YAML
- Error handling:
  - Logs and falls back to safe defaults if files/vars are missing.
"""
import os
import re
import yaml
from pathlib import Path
from utils.logging_utils import get_logger

logger = get_logger("config")

# --------------------------------------------------------------------
# Variable resolution
# --------------------------------------------------------------------

def resolve_vars(config: dict) -> dict:
    """
    Recursively resolves placeholder variables in the config like ${section.key}.
    """
    if not isinstance(config, dict):
        return config

    def get_value_by_path(path: str, conf_dict: dict):
        keys = path.split(".")
        value = conf_dict
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return None
        return value

    def resolve_value(value, conf_dict):
        if isinstance(value, str):
            for match in re.findall(r"\$\{([^}]+)\}", value):
                replacement = get_value_by_path(match, conf_dict)
                if replacement is not None:
                    value = value.replace(f"${{{match}}}", str(replacement))
            return value
        elif isinstance(value, dict):
            return {k: resolve_value(v, conf_dict) for k, v in value.items()}
        elif isinstance(value, list):
            return [resolve_value(item, conf_dict) for item in value]
        return value

    # Multiple passes to resolve nested references
    for _ in range(5):
        prev = str(config)
        config = resolve_value(config, config)
        if str(config) == prev:
            break

    return config

# --------------------------------------------------------------------
# YAML loading
# --------------------------------------------------------------------

def load_yaml_config(config_path="config.yaml"):
    """Load configuration from YAML file with variable substitution."""
    paths_to_try = list(dict.fromkeys([
        Path(config_path),
        Path(__file__).parent / config_path,
        Path(__file__).parent.parent / config_path,
        Path.cwd() / config_path,
    ]))

    config = {}
    for path in paths_to_try:
        if path.exists():
            logger.info(f"Loading config from: {path}")
            try:
                with open(path, "r", encoding="utf-8") as f:
                    config = yaml.safe_load(f)
                if not isinstance(config, dict):
                    logger.error("Config file is not a valid dictionary.")
                    config = {}
                break
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Error loading config: {e}")
                config = {}

    if not config:
        logger.warning(f"Config file not found in any of: {paths_to_try}, using defaults.")

    return resolve_vars(config)

# --------------------------------------------------------------------
# Defaults
# --------------------------------------------------------------------

DEFAULTS = {
    "pipeline": {
        "max_length_streaming": 2000,
        "max_length_batch": 5000,
        "min_length": 1,
    },
    "pii": {
        "min_digit_length": 9,
        "snippet_max_length": 160,
    },
    "history": {
        "max_turns": 10,
        "session_ttl_seconds": 7200,
        "max_concepts": 30,
        "prompt_recent_turns": 5,
        "prompt_recent_concepts": 5,
    },
    "retry": {
        "max_attempts": 3,
        "base_delay": 1.0,
        "max_delay": 30.0,
        "jitter": 0.0,
    },
    "streaming": {
        "pacing_enabled": True,
        "piece_min_chars": 2,
        "piece_max_chars": 6,
        "delay_min_ms": 15,
        "delay_max_ms": 45,
        "oversized_chunk_chars": 12,
    },
    "handoff": {
        "long_conversation_threshold": 8,
        "mixed_script_min_ratio": 0.3,
        "base_url": "https://line.me/R/ti/p/@jirung",
    },
    "models": {
        "base_url": "https://openrouter.ai/api/v1",
        "model": "google/gemini-2.5-flash",
        "temperature": 0.7,
        "top_p": 0.9,
        "max_tokens": 4096,
        "timeout_s": 30.0,
        "validate_timeout_s": 5.0,
    },
    "logging": {
        "level": "INFO",
        "file_path": "assistant_debug.log",
    },
}


def ensure_config_defaults(config):
    """Ensure every section exists and every knob has a value."""
    for section, values in DEFAULTS.items():
        current = config.setdefault(section, {})
        if not isinstance(current, dict):
            logger.warning(f"Config section '{section}' is not a mapping, resetting to defaults")
            current = config[section] = {}
        for key, value in values.items():
            current.setdefault(key, value)
    return config


def apply_env_overrides(config):
    """Environment variables take precedence over YAML values."""
    models = config["models"]
    if os.getenv("ASSISTANT_BASE_URL"):
        models["base_url"] = os.getenv("ASSISTANT_BASE_URL")
    if os.getenv("ASSISTANT_MODEL"):
        models["model"] = os.getenv("ASSISTANT_MODEL")
    models["api_key"] = os.getenv("OPENAI_API_KEY", models.get("api_key", ""))

    if os.getenv("ASSISTANT_LOG_LEVEL"):
        config["logging"]["level"] = os.getenv("ASSISTANT_LOG_LEVEL").upper()
    if os.getenv("HANDOFF_BASE_URL"):
        config["handoff"]["base_url"] = os.getenv("HANDOFF_BASE_URL")
    return config

# --------------------------------------------------------------------
# Main Loading Sequence (only load once!)
# --------------------------------------------------------------------

logger.info("Loading configuration...")
config = load_yaml_config("config.yaml")
config = ensure_config_defaults(config)
config = apply_env_overrides(config)

_pipeline = config["pipeline"]
_pii = config["pii"]
_history = config["history"]
_retry = config["retry"]
_streaming = config["streaming"]
_handoff = config["handoff"]
_models = config["models"]

# --------------------------------------------------------------------
# Export all config values
# --------------------------------------------------------------------

# Input validation
MAX_LENGTH_STREAMING = int(_pipeline["max_length_streaming"])
MAX_LENGTH_BATCH = int(_pipeline["max_length_batch"])
MIN_INPUT_LENGTH = int(_pipeline["min_length"])

# PII redaction: digit runs shorter than this are ages, weights, doses
PII_MIN_DIGIT_LENGTH = int(_pii["min_digit_length"])
SNIPPET_MAX_LENGTH = int(_pii["snippet_max_length"])

# Conversation store
MAX_HISTORY_TURNS = int(_history["max_turns"])
SESSION_TTL_SECONDS = float(_history["session_ttl_seconds"])
MAX_TRACKED_CONCEPTS = int(_history["max_concepts"])
PROMPT_RECENT_TURNS = int(_history["prompt_recent_turns"])
PROMPT_RECENT_CONCEPTS = int(_history["prompt_recent_concepts"])

# Retry / backoff
RETRY_MAX_ATTEMPTS = int(_retry["max_attempts"])
RETRY_BASE_DELAY = float(_retry["base_delay"])
RETRY_MAX_DELAY = float(_retry["max_delay"])
RETRY_JITTER = float(_retry["jitter"])

# Streaming pacing
PACING_ENABLED = bool(_streaming["pacing_enabled"])
PACING_PIECE_MIN_CHARS = int(_streaming["piece_min_chars"])
PACING_PIECE_MAX_CHARS = int(_streaming["piece_max_chars"])
PACING_DELAY_MIN_MS = int(_streaming["delay_min_ms"])
PACING_DELAY_MAX_MS = int(_streaming["delay_max_ms"])
PACING_OVERSIZED_CHUNK_CHARS = int(_streaming["oversized_chunk_chars"])

# Handoff
LONG_CONVERSATION_THRESHOLD = int(_handoff["long_conversation_threshold"])
MIXED_SCRIPT_MIN_RATIO = float(_handoff["mixed_script_min_ratio"])
HANDOFF_BASE_URL = _handoff["base_url"]

# Provider
PROVIDER_BASE_URL = _models["base_url"]
PROVIDER_MODEL = _models["model"]
PROVIDER_API_KEY = _models.get("api_key") or None
DEFAULT_TEMPERATURE = float(_models["temperature"])
DEFAULT_TOP_P = float(_models["top_p"])
DEFAULT_MAX_TOKENS = int(_models["max_tokens"])
PROVIDER_TIMEOUT_S = float(_models["timeout_s"])
VALIDATE_TIMEOUT_S = float(_models["validate_timeout_s"])

# Logging
LOG_LEVEL = str(config["logging"]["level"]).upper()
LOG_FILE_PATH = config["logging"]["file_path"] or None

logger.debug(
    f"[CONFIG] model={PROVIDER_MODEL} base_url={PROVIDER_BASE_URL} "
    f"retry={RETRY_MAX_ATTEMPTS}x{RETRY_BASE_DELAY}s history={MAX_HISTORY_TURNS} ttl={SESSION_TTL_SECONDS}s"
)
