"""
Service lifecycle.

Signal handlers only call request_shutdown(); the ordered teardown in
shutdown() runs exactly once no matter how many signals arrive.

Teardown order:
1. stop the publish loop (no more frames)
2. release local audio resources
3. leave the room
4. cancel background tasks: supervisor, then dispatch and heartbeat
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence

from observability.logger import log_event


AsyncHook = Callable[[], Awaitable[None]]


class ServiceLifecycle:
    def __init__(
        self,
        *,
        stop_publishing: AsyncHook,
        release_audio: AsyncHook,
        leave_room: AsyncHook,
        grace_s: float = 5.0,
    ) -> None:
        self._stop_publishing = stop_publishing
        self._release_audio = release_audio
        self._leave_room = leave_room
        self._grace_s = grace_s

        self.shutdown_event = asyncio.Event()
        self._shutdown_started = False
        self._supervisor_task: asyncio.Task[None] | None = None
        self._background: list[asyncio.Task[None]] = []

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def set_supervisor(self, task: asyncio.Task[None]) -> None:
        self._supervisor_task = task

    def add_background(self, tasks: Sequence[asyncio.Task[None]]) -> None:
        self._background.extend(tasks)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    @property
    def shutting_down(self) -> bool:
        return self._shutdown_started

    def request_shutdown(self, signame: str | None = None) -> None:
        """Signal-safe: only flags the shutdown. Repeated calls are harmless."""
        if self.shutdown_event.is_set():
            return
        log_event({
            "event_type": "SHUTDOWN_REQUESTED",
            "signal": signame,
        })
        self.shutdown_event.set()

    async def shutdown(self) -> bool:
        """
        Run the ordered teardown.

        Returns:
            True if this call performed the teardown, False if it had
            already run.
        """
        if self._shutdown_started:
            return False
        self._shutdown_started = True
        self.shutdown_event.set()

        for step, hook in (
            ("stop_publishing", self._stop_publishing),
            ("release_audio", self._release_audio),
            ("leave_room", self._leave_room),
        ):
            try:
                await hook()
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "level": "ERROR",
                    "event_type": "SHUTDOWN_STEP_FAILED",
                    "step": step,
                    "error": repr(e),
                })

        # The supervisor's own teardown still posts to the dispatch loop,
        # so it must finish before dispatch is cancelled.
        if self._supervisor_task is not None:
            await _finish(self._supervisor_task, self._grace_s)
        for task in self._background:
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)

        log_event({"event_type": "SHUTDOWN_COMPLETE"})
        return True


async def _finish(task: asyncio.Task[None], grace_s: float) -> None:
    """Let the task exit on its own for grace_s, then cancel it."""
    if task.done():
        return
    done, _ = await asyncio.wait({task}, timeout=grace_s)
    if not done:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
