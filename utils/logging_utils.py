"""
Logging utilities for the pipeline.

Key goals:
- Provide a simple `get_logger(name)` for modules.
- Configure root logging once on startup without duplicate handlers.
- Keep raw user text out of log lines (`preview()` only ever sees redacted text).
"""

from typing import Callable, Optional, Union
import logging
import time
import inspect
import functools

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: Union[int, str] = logging.INFO,
    file_path: Optional[str] = "assistant_debug.log",
    file_level: Union[int, str] = logging.DEBUG,
    console_level: Optional[Union[int, str]] = None,
) -> None:
    """Configure root logger once and avoid duplicate handlers.

    Call this from the entrypoint before building the orchestrator.
    """
    level = _coerce_level(level)
    file_level = _coerce_level(file_level)

    root = logging.getLogger()
    if root.hasHandlers():
        root.handlers.clear()

    # Root sits at the lowest of console/file levels so neither handler is starved
    root.setLevel(min(level, file_level) if file_path else level)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    ch = logging.StreamHandler()
    ch.setLevel(_coerce_level(console_level) if console_level is not None else level)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    if file_path:
        try:
            fh = logging.FileHandler(file_path, mode="w", encoding="utf-8")
        except OSError as e:
            root.warning(f"[LOGGING] File handler unavailable ({e}), console only")
        else:
            fh.setLevel(file_level)
            fh.setFormatter(fmt)
            root.addHandler(fh)


def get_logger(name: str = "assistant") -> logging.Logger:
    """Return a module-specific logger.

    Root configuration should be done once via `configure_logging()` in the
    application entrypoint (main.py) to avoid duplicate handlers.
    """
    return logging.getLogger(name)


def preview(text: str, limit: int = 50) -> str:
    """Single-line preview of already-redacted text for log messages."""
    text = (text or "").replace("\n", " ")
    return text[:limit] + "..." if len(text) > limit else text


# --- Lightweight decorators ---

def log_and_time(label: str = "Function") -> Callable:
    """Decorator to log start/end and duration at DEBUG level."""
    def decorator(func):
        log = get_logger(func.__module__)

        if inspect.isasyncgenfunction(func):
            @functools.wraps(func)
            async def async_gen_wrapper(*args, **kwargs):
                start = time.time()
                log.debug(f"[{label}] START")
                agen = func(*args, **kwargs)
                try:
                    async for result in agen:
                        yield result
                finally:
                    # Propagate early close to the wrapped generator right away
                    await agen.aclose()
                    log.debug(f"[{label}] END, duration: {time.time() - start:.2f}s")
            return async_gen_wrapper

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_func_wrapper(*args, **kwargs):
                start = time.time()
                log.debug(f"[{label}] START")
                result = await func(*args, **kwargs)
                log.debug(f"[{label}] END, duration: {time.time() - start:.2f}s")
                return result
            return async_func_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start = time.time()
            log.debug(f"[{label}] START")
            result = func(*args, **kwargs)
            log.debug(f"[{label}] END, duration: {time.time() - start:.2f}s")
            return result
        return sync_wrapper

    return decorator


def log_duration(tag: str) -> Callable:
    """Decorator to log only duration (DEBUG level)."""
    def decorator(func):
        log = get_logger(func.__module__)

        if inspect.isasyncgenfunction(func):
            return func  # Not supported nicely

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start = time.time()
                result = await func(*args, **kwargs)
                log.debug(f"[TIMING] {tag} took {time.time() - start:.3f}s")
                return result
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start = time.time()
            result = func(*args, **kwargs)
            log.debug(f"[TIMING] {tag} took {time.time() - start:.3f}s")
            return result
        return sync_wrapper

    return decorator


"""
Module Contract
- Purpose: Central logging utilities used throughout the pipeline. Provides named loggers, a redacted-text preview helper and simple timing decorators.
- Inputs:
  - get_logger(name), configure_logging(level, file_path), log_and_time(label), log_duration(tag)
- Outputs:
  - Logger instances; wrapped functions with timing logs.
- Side effects:
  - None (root configuration happens in entrypoints via configure_logging()).
"""
