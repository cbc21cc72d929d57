"""
Runtime execution shell for the playlist bot.

Responsibilities:
- Own the presence state
- Serialize every inbound event through one queue and one dispatch loop
- Call the pure reducer
- Execute commands with side effects (gain, fades, publish loop)

Non-responsibilities:
- Room connection management (session.supervisor)
- Frame production (orchestrator.publish_loop)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from orchestrator.reducer import reduce
from orchestrator.commands import (
    Command,
    EnsurePublishing,
    LogEvent,
    SetGain,
    StartFade,
    StartPublishing,
    StopPublishing,
)
from orchestrator.events import Event
from orchestrator.state_dataclass import AgentState

from observability.logger import log_event


if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


_QueueItem = tuple[Event, "asyncio.Future[None] | None"]


class Runtime:
    """
    Runtime execution boundary.

    Architectural role:
    Runtime is the bridge between the pure reducer (immutable state) and
    the imperative world (crossfade engine, publish loop, logging).

    Guarantees:
    - Events are processed strictly in arrival order by run()
    - Reducer is called exactly once per event
    - State is updated before any side effects execute
    - Commands are executed in reducer-emitted order
    """

    def __init__(
        self,
        *,
        initial_state: AgentState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._queue: asyncio.Queue[_QueueItem] = asyncio.Queue()

    @property
    def state(self) -> AgentState:
        """Current immutable state. Read-only for consumers."""
        return self._state

    # ------------------------------------------------------------------
    # Event ingress
    # ------------------------------------------------------------------

    def post_event(self, event: Event) -> None:
        """
        Enqueue an event without waiting for it to be processed.

        Safe to call from synchronous SDK callbacks on the event loop.
        """
        self._queue.put_nowait((event, None))

    async def send_event(self, event: Event) -> None:
        """
        Enqueue an event and wait until run() has processed it.

        Used by the supervisor so that e.g. the connect snapshot is applied
        before it starts waiting on the session.
        """
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((event, done))
        await done

    async def run(self) -> None:
        """Dispatch loop. Runs until cancelled."""
        while True:
            event, done = await self._queue.get()
            try:
                await self.handle_event(event)
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "level": "ERROR",
                    "event_type": "RUNTIME_EVENT_FAILED",
                    "source_event": event.event_type.value,
                    "error": repr(e),
                })
            finally:
                if done is not None and not done.done():
                    done.set_result(None)
                self._queue.task_done()

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the reducer and execute its commands.

        Only run() calls this in production; tests may call it directly.
        """
        new_state, commands = reduce(self._state, event)
        self._state = new_state

        for cmd in commands:
            await self._execute_command(cmd)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "room": self._ctx.room_name,
            })

        elif isinstance(cmd, SetGain):
            self._ctx.gain.set_gain(cmd.gain)

        elif isinstance(cmd, StartFade):
            self._ctx.gain.start_fade(cmd.direction)

        elif isinstance(cmd, StartPublishing):
            self._ctx.publisher.start()

        elif isinstance(cmd, EnsurePublishing):
            if not self._ctx.publisher.running:
                self._ctx.gain.set_gain(0.0)
                self._ctx.publisher.start()

        elif isinstance(cmd, StopPublishing):
            self._ctx.publisher.stop()

        else:
            log_event({
                "level": "WARNING",
                "event_type": "UNKNOWN_COMMAND",
                "command_type": getattr(cmd, "command_type", None),
            })
