"""
Room transport contract.

This module defines the *interface only*: no backoff, no presence
decisions and no frame production live here.

Key invariants:
- The adapter reports facts (membership changes, SDK reconnects) through
  the emit callback as orchestrator events; it never calls the reducer.
- capture_frame() submits one already-gain-scaled frame and may block
  for back-pressure; it never reorders frames.
- Teardown methods are safe to call more than once and in any state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from audio.frames import DecodeFrame
from orchestrator.events import Event


EmitEvent = Callable[[Event], None]


class RoomTransportError(RuntimeError):
    """Joining, publishing to, or submitting frames to the room failed."""


class RoomAdapter(ABC):
    """
    Abstract interface for one room session.

    One instance is used for exactly one connect/disconnect cycle; the
    supervisor builds a fresh adapter for every attempt.
    """

    @abstractmethod
    async def connect(self, url: str, token: str) -> None:
        """
        Join the room.

        Raises:
            RoomTransportError if the join fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def publish_audio(self, *, track_name: str, sample_rate_hz: int, channels: int) -> None:
        """
        Create the outbound audio source and publish it as a track.

        Raises:
            RoomTransportError if publishing fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def capture_frame(self, frame: DecodeFrame) -> None:
        """Submit one frame to the published track."""
        raise NotImplementedError

    @abstractmethod
    def remote_identities(self) -> frozenset[str]:
        """Identities of the remote participants currently in the room."""
        raise NotImplementedError

    @abstractmethod
    async def wait_disconnected(self) -> str | None:
        """Block until the session ends. Returns the disconnect reason if known."""
        raise NotImplementedError

    @abstractmethod
    async def close_audio(self) -> None:
        """Release the outbound audio source. Idempotent."""
        raise NotImplementedError

    @abstractmethod
    async def disconnect(self) -> None:
        """Leave the room. Idempotent."""
        raise NotImplementedError
