"""
Authoritative presence state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass

from constants import DEFAULT_BEACON_IDENTITY
from session.connection_status import ConnectionState


@dataclass(frozen=True)
class AgentState:
    """
    Immutable snapshot of reducer-owned state.

    beacon_present:
        Whether the beacon identity is currently a remote participant.
        Reset to False whenever the room connection is lost.

    connection_state:
        Room connection status as last reported by the supervisor or SDK.
    """

    beacon_identity: str = DEFAULT_BEACON_IDENTITY
    beacon_present: bool = False
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
