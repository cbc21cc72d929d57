"""
Crossfade engine.

Owns the playback gain and ramps it linearly toward 1.0 (fade in) or
0.0 (fade out), one step per emitted frame.

Invariants:
- Gain stays within [0.0, 1.0]
- A fade that starts mid-ramp begins at the exact current gain
  (no jump) and its length is proportional to the distance left
- Terminal gains are exact: 1.0 after a fade in, 0.0 after a fade out
- Mutated only from the publish loop's task and the runtime's dispatch
  loop, both on the same event loop; no locks
"""

from __future__ import annotations

import math
from typing import Callable

from audio.pcm import apply_gain
from observability.logger import log_event
from orchestrator.enums.fade import FadeDirection


FadeCompleteListener = Callable[[], None]

_TARGET_GAIN: dict[FadeDirection, float] = {
    FadeDirection.IN: 1.0,
    FadeDirection.OUT: 0.0,
}


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves away from zero for positive input."""
    return math.floor(value + 0.5)


def fade_frames_total(direction: FadeDirection, current_gain: float, max_fade_frames: int) -> int:
    """
    Number of frames a fade from current_gain should take.

    Proportional to the remaining distance, never less than one frame.
    """
    distance = (1.0 - current_gain) if direction is FadeDirection.IN else current_gain
    return max(1, round_half_up(distance * max_fade_frames))


class CrossfadeEngine:
    """
    Stateful gain ramp applied frame by frame.

    on_fade_out_complete is invoked once each time a fade out reaches 0.0.
    The publish loop wires it to its own stop().
    """

    def __init__(self, *, max_fade_frames: int, initial_gain: float = 1.0) -> None:
        if max_fade_frames <= 0:
            raise ValueError("max_fade_frames must be > 0")
        self._max_fade_frames = max_fade_frames
        self._gain = _clamp(initial_gain)
        self._direction: FadeDirection | None = None
        self._start_gain = self._gain
        self._frames_total = 0
        self._frames_remaining = 0
        self.on_fade_out_complete: FadeCompleteListener | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def gain(self) -> float:
        return self._gain

    @property
    def direction(self) -> FadeDirection | None:
        return self._direction

    @property
    def frames_total(self) -> int:
        return self._frames_total

    @property
    def frames_remaining(self) -> int:
        return self._frames_remaining

    @property
    def max_fade_frames(self) -> int:
        return self._max_fade_frames

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def set_gain(self, gain: float) -> None:
        """Set a static gain and drop any fade in progress."""
        self._gain = _clamp(gain)
        self._direction = None
        self._frames_total = 0
        self._frames_remaining = 0

    def start_fade(self, direction: FadeDirection) -> None:
        """
        Begin a ramp toward the direction's target from the current gain.

        Replaces any fade already in progress.
        """
        total = fade_frames_total(direction, self._gain, self._max_fade_frames)
        self._direction = direction
        self._start_gain = self._gain
        self._frames_total = total
        self._frames_remaining = total

        log_event({
            "level": "DEBUG",
            "event_type": "FADE_STARTED",
            "direction": direction.value,
            "start_gain": round(self._start_gain, 4),
            "frames_total": total,
        })

    # ------------------------------------------------------------------
    # Per-frame
    # ------------------------------------------------------------------

    def apply(self, pcm_bytes: bytes) -> bytes:
        """
        Advance the ramp by one frame (if fading) and scale the samples.

        Returns a new, owned bytes object of the same length.
        """
        if self._direction is not None:
            self._step()
        return apply_gain(pcm_bytes, self._gain)

    def _step(self) -> None:
        direction = self._direction
        assert direction is not None
        target = _TARGET_GAIN[direction]

        self._frames_remaining -= 1
        if self._frames_remaining > 0:
            progress = 1.0 - (self._frames_remaining / self._frames_total)
            self._gain = _clamp(self._start_gain + (target - self._start_gain) * progress)
            return

        self._gain = target
        self._direction = None
        self._frames_remaining = 0

        log_event({
            "level": "DEBUG",
            "event_type": "FADE_COMPLETED",
            "direction": direction.value,
            "gain": target,
        })

        if direction is FadeDirection.OUT and self.on_fade_out_complete is not None:
            self.on_fade_out_complete()


def _clamp(gain: float) -> float:
    return min(1.0, max(0.0, float(gain)))
