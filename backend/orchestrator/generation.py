"""
Publish generation counter.

Rules:
- Generations are monotonic integers.
- A value of 0 means "no publish loop has been started yet".
- Once a generation is superseded it is never current again.
- Only PublishLoop.start() advances the counter.
"""

from __future__ import annotations


class PublishGeneration:
    """
    Mutable holder for the current publish generation.

    Any frame producer captures the value returned by advance() and must
    check is_current() before submitting each frame.
    """

    def __init__(self) -> None:
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def advance(self) -> int:
        self._value += 1
        return self._value

    def is_current(self, generation: int) -> bool:
        return generation == self._value
