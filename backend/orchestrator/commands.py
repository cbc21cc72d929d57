"""
Side-effect command definitions for the presence reducer.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from orchestrator.enums.fade import FadeDirection


# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Gain
    SET_GAIN = "SET_GAIN"
    START_FADE = "START_FADE"

    # Publish loop
    START_PUBLISHING = "START_PUBLISHING"
    ENSURE_PUBLISHING = "ENSURE_PUBLISHING"
    STOP_PUBLISHING = "STOP_PUBLISHING"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Gain Commands
# =============================================================================

@dataclass(frozen=True)
class SetGain(Command):
    """Set a static gain on the crossfade engine, cancelling any fade."""
    gain: float
    command_type: CommandType = CommandType.SET_GAIN


@dataclass(frozen=True)
class StartFade(Command):
    """Begin a fade from the current gain in the given direction."""
    direction: FadeDirection
    command_type: CommandType = CommandType.START_FADE


# =============================================================================
# Publish Loop Commands
# =============================================================================

@dataclass(frozen=True)
class StartPublishing(Command):
    """Arm a new publish generation (supersedes any running one)."""
    command_type: CommandType = CommandType.START_PUBLISHING


@dataclass(frozen=True)
class EnsurePublishing(Command):
    """
    Start the publish loop only if it is not running.

    A fresh start begins silent (gain 0.0) so the following fade-in
    ramps up from nothing; a running loop is left untouched so an
    in-progress fade-out reverses smoothly.
    """
    command_type: CommandType = CommandType.ENSURE_PUBLISHING


@dataclass(frozen=True)
class StopPublishing(Command):
    """Cancel the current publish generation."""
    command_type: CommandType = CommandType.STOP_PUBLISHING


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
