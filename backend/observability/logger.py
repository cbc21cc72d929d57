"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- No side effects beyond logging
- Events below the configured minimum level are dropped
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable

from constants import DEFAULT_LOG_LEVEL, LOG_LEVELS


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_LEVEL_RANK: dict[str, int] = {name: rank for rank, name in enumerate(LOG_LEVELS)}
_min_rank: int = _LEVEL_RANK[DEFAULT_LOG_LEVEL]


def set_min_level(level: str) -> None:
    """
    Set the minimum level that reaches the sink.

    Unknown levels raise ValueError; config validation catches them first.
    """
    global _min_rank  # pylint: disable=global-statement
    try:
        _min_rank = _LEVEL_RANK[level.upper()]
    except KeyError as exc:
        raise ValueError(f"unknown log level: {level!r}") from exc


def now_ms() -> int:
    """Wall-clock milliseconds for event timestamps."""
    return time.time_ns() // 1_000_000


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller supplies event_type and any context fields.
    ts_ms and level are filled in when absent (level defaults to INFO).

    This function:
    - Serializes to JSON
    - Writes exactly one line
    - Flushes immediately (no buffering)
    - Never raises
    """
    level = str(event.get("level", "INFO")).upper()
    if _LEVEL_RANK.get(level, _LEVEL_RANK["INFO"]) < _min_rank:
        return

    payload: dict[str, Any] = {"ts_ms": now_ms(), "level": level}
    payload.update(event)
    payload["level"] = level

    try:
        line = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback: logging must never crash the runtime
        fallback: dict[str, Any] = {
            "ts_ms": payload.get("ts_ms"),
            "level": "ERROR",
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
