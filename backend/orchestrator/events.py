"""
Event definitions for the presence reducer.

Rules:
- Events describe facts that have occurred in the room connection.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Events are produced by the room adapter's SDK callbacks and by the
connection supervisor, and consumed by exactly one dispatch loop
(orchestrator.runtime), so membership and connection changes are
strictly ordered relative to each other.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every event type must be explicitly handled or explicitly ignored
    by the reducer.
    """

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    ROOM_CONNECTING = "ROOM_CONNECTING"
    ROOM_CONNECTED = "ROOM_CONNECTED"
    ROOM_RECONNECTING = "ROOM_RECONNECTING"
    ROOM_RECONNECTED = "ROOM_RECONNECTED"
    ROOM_DISCONNECTED = "ROOM_DISCONNECTED"

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------
    PARTICIPANT_CONNECTED = "PARTICIPANT_CONNECTED"
    PARTICIPANT_DISCONNECTED = "PARTICIPANT_DISCONNECTED"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# Connection Events
# =============================================================================

@dataclass(frozen=True)
class RoomConnecting(Event):
    """A connection attempt is starting."""
    attempt: int = 0


@dataclass(frozen=True)
class RoomConnected(Event):
    """
    Joined the room and published the track.

    remote_identities is the membership snapshot taken right after join;
    the reducer seeds presence from it.
    """
    remote_identities: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class RoomReconnecting(Event):
    """The SDK lost signalling and is attempting to resume."""


@dataclass(frozen=True)
class RoomReconnected(Event):
    """The SDK resumed the session; membership may have changed meanwhile."""
    remote_identities: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class RoomDisconnected(Event):
    """The session ended (remote drop, failed resume, or local teardown)."""
    reason: str | None = None


# =============================================================================
# Membership Events
# =============================================================================

@dataclass(frozen=True)
class ParticipantConnected(Event):
    """A remote participant joined."""
    identity: str


@dataclass(frozen=True)
class ParticipantDisconnected(Event):
    """A remote participant left."""
    identity: str
