"""
Pure presence reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).

Decision table:
- beacon joins              -> StartFade(OUT)
- beacon leaves             -> EnsurePublishing, StartFade(IN)
- connected                 -> derive presence from the snapshot:
    present -> SetGain(0.0)              (stay silent)
    absent  -> SetGain(1.0), StartPublishing
- reconnected (SDK resume)  -> re-derive presence, then fade like a join/leave:
    present -> StartFade(OUT)
    absent  -> EnsurePublishing, StartFade(IN)
- disconnected              -> StopPublishing, presence cleared
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from orchestrator.commands import (
    Command,
    EnsurePublishing,
    LogEvent,
    SetGain,
    StartFade,
    StartPublishing,
    StopPublishing,
)
from orchestrator.enums.fade import FadeDirection
from orchestrator.events import (
    Event,
    ParticipantConnected,
    ParticipantDisconnected,
    RoomConnected,
    RoomConnecting,
    RoomDisconnected,
    RoomReconnected,
    RoomReconnecting,
)
from orchestrator.state_dataclass import AgentState
from session.connection_status import ConnectionState


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: AgentState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "event_type": event.event_type.value,
            "connection_state": state.connection_state.value,
            "beacon_present": state.beacon_present,
            "decision": decision,
            "details": details or {},
        }
    )


def _ignore(
    state: AgentState, event: Event, reason: str
) -> tuple[AgentState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _is_in_room(state: AgentState) -> bool:
    return state.connection_state in (ConnectionState.CONNECTED, ConnectionState.RECONNECTING)


def _sync_from_snapshot(
    state: AgentState,
    event: Event,
    remote_identities: frozenset[str],
    decision: str,
) -> tuple[AgentState, tuple[Command, ...]]:
    """
    Derive presence from a membership snapshot and pick the starting gain.

    Gain is not carried across connections: every fresh session starts
    at full gain unless the beacon is already there.
    """
    present = state.beacon_identity in remote_identities
    new_state = replace(
        state,
        beacon_present=present,
        connection_state=ConnectionState.CONNECTED,
    )

    commands: tuple[Command, ...]
    if present:
        commands = (SetGain(gain=0.0),)
    else:
        commands = (SetGain(gain=1.0), StartPublishing())

    return new_state, commands + (
        _log(
            new_state,
            event,
            decision,
            {
                "remote_count": len(remote_identities),
                "beacon_present": present,
                "was_present": state.beacon_present,
            },
        ),
    )


def _resync_presence(
    state: AgentState,
    event: RoomReconnected,
) -> tuple[AgentState, tuple[Command, ...]]:
    """
    Re-derive presence after the transport resumed the same session.

    Membership events may have been missed during the gap. The running
    loop and the current gain are kept; only a fade is requested.
    """
    present = state.beacon_identity in event.remote_identities
    new_state = replace(
        state,
        beacon_present=present,
        connection_state=ConnectionState.CONNECTED,
    )

    commands: tuple[Command, ...]
    if present:
        commands = (StartFade(direction=FadeDirection.OUT),)
    else:
        commands = (EnsurePublishing(), StartFade(direction=FadeDirection.IN))

    return new_state, commands + (
        _log(
            new_state,
            event,
            "resynced",
            {
                "remote_count": len(event.remote_identities),
                "beacon_present": present,
                "was_present": state.beacon_present,
            },
        ),
    )


# =============================================================================
# Reducer
# =============================================================================

def reduce(
    state: AgentState, event: Event
) -> tuple[AgentState, tuple[Command, ...]]:
    """
    Pure reducer for beacon presence and connection state.

    Given the current state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects
    """

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    if isinstance(event, RoomConnecting):
        new_state = replace(state, connection_state=ConnectionState.CONNECTING)
        return new_state, (
            _log(new_state, event, "connecting", {"attempt": event.attempt}),
        )

    if isinstance(event, RoomConnected):
        return _sync_from_snapshot(state, event, event.remote_identities, "connected")

    if isinstance(event, RoomReconnecting):
        if state.connection_state is not ConnectionState.CONNECTED:
            return _ignore(state, event, "not_connected")
        new_state = replace(state, connection_state=ConnectionState.RECONNECTING)
        return new_state, (_log(new_state, event, "reconnecting"),)

    if isinstance(event, RoomReconnected):
        if not _is_in_room(state):
            return _ignore(state, event, "not_connected")
        return _resync_presence(state, event)

    if isinstance(event, RoomDisconnected):
        new_state = replace(
            state,
            beacon_present=False,
            connection_state=ConnectionState.DISCONNECTED,
        )
        return new_state, (
            StopPublishing(),
            _log(new_state, event, "disconnected", {"reason": event.reason}),
        )

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------
    if isinstance(event, ParticipantConnected):
        if not _is_in_room(state):
            return _ignore(state, event, "not_connected")
        if event.identity != state.beacon_identity:
            return _ignore(state, event, "not_beacon")
        if state.beacon_present:
            return _ignore(state, event, "already_present")

        new_state = replace(state, beacon_present=True)
        return new_state, (
            StartFade(direction=FadeDirection.OUT),
            _log(new_state, event, "beacon_joined", {"identity": event.identity}),
        )

    if isinstance(event, ParticipantDisconnected):
        if not _is_in_room(state):
            return _ignore(state, event, "not_connected")
        if event.identity != state.beacon_identity:
            return _ignore(state, event, "not_beacon")
        if not state.beacon_present:
            return _ignore(state, event, "already_absent")

        new_state = replace(state, beacon_present=False)
        return new_state, (
            EnsurePublishing(),
            StartFade(direction=FadeDirection.IN),
            _log(new_state, event, "beacon_left", {"identity": event.identity}),
        )

    return _ignore(state, event, "unhandled_event")
