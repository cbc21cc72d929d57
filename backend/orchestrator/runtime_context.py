"""
Runtime execution context.

Provides Runtime with access to the imperative resources it drives when
executing commands: the crossfade engine and the publish loop.

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from orchestrator.enums.fade import FadeDirection


# ---------------------------------------------------------------------
# Capability Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class GainControlProtocol(Protocol):
    @property
    def gain(self) -> float: ...
    def set_gain(self, gain: float) -> None: ...
    def start_fade(self, direction: FadeDirection) -> None: ...


@runtime_checkable
class PublisherProtocol(Protocol):
    @property
    def running(self) -> bool: ...
    def start(self) -> int: ...
    def stop(self) -> None: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    Runtime is allowed to:
    - Change the gain / start fades
    - Start and stop the publish loop

    Runtime is NOT allowed to:
    - Touch the room connection (the supervisor owns it)
    - Perform orchestration decisions
    """

    def __init__(
        self,
        *,
        gain: GainControlProtocol,
        publisher: PublisherProtocol,
        room_name: str,
    ) -> None:
        self.gain = gain
        self.publisher = publisher
        self.room_name = room_name
