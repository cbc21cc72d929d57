"""
Room connection status.

Tracked in AgentState alongside beacon presence; transitions are made
only by the reducer in response to supervisor and SDK events.
"""
from enum import Enum


class ConnectionState(Enum):
    """
    Room connection lifecycle.

    RECONNECTING means the SDK is resuming an existing session; membership
    is re-read from the room once it reports RECONNECTED.
    """
    DISCONNECTED = "DISCONNECTED"  # Not in a room
    CONNECTING = "CONNECTING"      # Join attempt in flight
    CONNECTED = "CONNECTED"        # Joined and publishing
    RECONNECTING = "RECONNECTING"  # SDK-level resume in progress
