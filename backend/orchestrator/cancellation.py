"""
Publish-loop cancellation context.

Responsibilities:
- Tie a running publish loop to the generation it was started with
- Run teardown hooks (e.g. decoder termination) exactly once on cancel
- Provide an interruptible sleep for the empty-playlist wait

Non-responsibilities:
- NO decision about when to cancel (PublishLoop.stop / start decide)
- NO generation allocation (orchestrator.generation owns that)

This module is infrastructure only.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from observability.logger import log_event
from orchestrator.generation import PublishGeneration


CancelCallback = Callable[[], None]


class CancellationContext:
    """
    Cancellation handle for one publish-loop generation.

    A context is "current" only while it has not been cancelled AND its
    generation is still the latest one. Either condition failing means the
    loop owning it must stop submitting frames.
    """

    def __init__(self, *, generation: int, counter: PublishGeneration) -> None:
        self._generation = generation
        self._counter = counter
        self._cancelled = False
        self._wake = asyncio.Event()
        self._callbacks: list[CancelCallback] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def is_current(self) -> bool:
        return not self._cancelled and self._counter.is_current(self._generation)

    def add_callback(self, callback: CancelCallback) -> None:
        """
        Register a hook to run on cancel().

        If the context is already cancelled the hook runs immediately.
        """
        if self._cancelled:
            self._run_callback(callback)
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: CancelCallback) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    def cancel(self) -> None:
        """
        Mark cancelled and run registered hooks.

        Idempotent: a second call does nothing.
        """
        if self._cancelled:
            return
        self._cancelled = True
        self._wake.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._run_callback(callback)

    async def sleep(self, seconds: float) -> bool:
        """
        Sleep up to `seconds`, returning early on cancel().

        Returns:
            True if the context was cancelled before or during the sleep.
        """
        if self._cancelled:
            return True
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
        return self._cancelled

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run_callback(self, callback: CancelCallback) -> None:
        try:
            callback()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "level": "ERROR",
                "event_type": "CANCEL_CALLBACK_FAILED",
                "generation": self._generation,
                "error": repr(e),
            })
