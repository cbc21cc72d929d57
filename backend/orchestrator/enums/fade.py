"""
Crossfade direction enumeration.

Rules:
- No behavior, no helper methods.
- The target gain for each direction lives in audio.crossfade.
"""

from __future__ import annotations

from enum import Enum


class FadeDirection(str, Enum):
    """Direction of an in-progress gain ramp."""

    IN = "in"
    OUT = "out"
