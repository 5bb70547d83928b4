"""Environment-driven configuration defaults."""

from __future__ import annotations

import logging
import os

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def resolve_thread_safe(value: bool | None = None) -> bool:
    """Resolve whether caches lock by default, from argument or environment."""
    if value is not None:
        return bool(value)
    raw = os.getenv("KEYED_SELECTORS_THREAD_SAFE", "1").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError("KEYED_SELECTORS_THREAD_SAFE must be one of: 1, 0, true, false, yes, no, on, off")


def resolve_log_level(value: str | None = None) -> int:
    """Resolve a logging level name from argument or environment."""
    raw = value or os.getenv("KEYED_SELECTORS_LOG_LEVEL", "WARNING")
    name = raw.strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"KEYED_SELECTORS_LOG_LEVEL must be a logging level name, got: {raw}")
    return level
