"""
Connection supervisor.

Responsibilities:
- Own the room connection lifecycle: join, publish, wait, tear down
- Retry forever with capped exponential backoff
- Seed presence from the membership snapshot on every connect
- Attach / detach the room as the publish loop's frame sink

Still NOT responsible for:
- Presence decisions (reducer)
- Frame production (publish loop)
- Process signals (service.lifecycle)
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from adapters.room.base import EmitEvent, RoomAdapter
from config import AppConfig
from constants import AUDIO_CHANNELS
from observability.logger import log_event
from orchestrator.events import (
    EventType,
    RoomConnected,
    RoomConnecting,
    RoomDisconnected,
)
from orchestrator.publish_loop import PublishLoop
from orchestrator.retry import (
    RetryAttempt,
    next_attempt,
    reconnect_delay_ms,
    reset_attempt,
)
from orchestrator.runtime import Runtime


RoomFactory = Callable[[EmitEvent], RoomAdapter]
TokenProvider = Callable[[], str]
SleepFn = Callable[[float], Awaitable[None]]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class ConnectionSupervisor:
    """
    Long-lived task that keeps the bot in the room.

    A fresh RoomAdapter is built for every attempt. Failures of any kind
    (token, join, publish, dropped session) are logged and retried; only
    shutdown or task cancellation ends run().
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        runtime: Runtime,
        publish_loop: PublishLoop,
        room_factory: RoomFactory,
        token_provider: TokenProvider,
        shutdown_event: asyncio.Event,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._config = config
        self._runtime = runtime
        self._publish_loop = publish_loop
        self._room_factory = room_factory
        self._token_provider = token_provider
        self._shutdown = shutdown_event
        self._sleep = sleep

        self._room: RoomAdapter | None = None
        self._attempt: RetryAttempt = reset_attempt()
        self._established = False

    @property
    def attempt(self) -> RetryAttempt:
        return self._attempt

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        while not self._shutdown.is_set():
            self._established = False
            try:
                await self._run_session()
            except asyncio.CancelledError:
                raise
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "level": "ERROR",
                    "event_type": "ROOM_SESSION_FAILED",
                    "room": self._config.room_name,
                    "attempt": self._attempt.attempt,
                    "error": repr(e),
                })

            if self._shutdown.is_set():
                break

            if self._established:
                self._attempt = reset_attempt()
            else:
                self._attempt = next_attempt(self._attempt)
            delay_ms = reconnect_delay_ms(
                self._attempt,
                base_ms=self._config.reconnect_base_ms,
                max_ms=self._config.reconnect_max_ms,
            )
            log_event({
                "level": "WARNING",
                "event_type": "ROOM_RECONNECT_SCHEDULED",
                "room": self._config.room_name,
                "attempt": self._attempt.attempt,
                "delay_ms": delay_ms,
            })
            await self._backoff(delay_ms / 1000.0)

        log_event({
            "event_type": "SUPERVISOR_EXITED",
            "room": self._config.room_name,
        })

    async def _run_session(self) -> None:
        await self._runtime.send_event(RoomConnecting(
            event_type=EventType.ROOM_CONNECTING,
            ts_ms=_now_ms(),
            attempt=self._attempt.attempt,
        ))

        room = self._room_factory(self._runtime.post_event)
        self._room = room
        reason: str | None = "setup_failed"
        try:
            token = self._token_provider()
            await room.connect(self._config.livekit_url, token)
            await room.publish_audio(
                track_name=self._config.track_name,
                sample_rate_hz=self._config.sample_rate_hz,
                channels=AUDIO_CHANNELS,
            )
            if self._shutdown.is_set():
                reason = "shutdown"
                return
            self._publish_loop.attach_sink(room)

            await self._runtime.send_event(RoomConnected(
                event_type=EventType.ROOM_CONNECTED,
                ts_ms=_now_ms(),
                remote_identities=room.remote_identities(),
            ))
            self._established = True
            log_event({
                "event_type": "ROOM_SESSION_ESTABLISHED",
                "room": self._config.room_name,
                "attempt": self._attempt.attempt,
            })

            reason = await self._wait_session_end(room)
        finally:
            await self._teardown(room, reason)

    async def _wait_session_end(self, room: RoomAdapter) -> str | None:
        dropped = asyncio.ensure_future(room.wait_disconnected())
        stopping = asyncio.ensure_future(self._shutdown.wait())
        try:
            await asyncio.wait({dropped, stopping}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopping.cancel()
            if not dropped.done():
                dropped.cancel()
        if dropped.done() and not dropped.cancelled():
            return dropped.result()
        return "shutdown"

    async def _teardown(self, room: RoomAdapter, reason: str | None) -> None:
        self._publish_loop.detach_sink()
        await self._runtime.send_event(RoomDisconnected(
            event_type=EventType.ROOM_DISCONNECTED,
            ts_ms=_now_ms(),
            reason=reason,
        ))
        await room.close_audio()
        await room.disconnect()
        if self._room is room:
            self._room = None
        log_event({
            "event_type": "ROOM_SESSION_ENDED",
            "room": self._config.room_name,
            "reason": reason,
        })

    async def _backoff(self, seconds: float) -> None:
        """Sleep for the backoff delay, returning early on shutdown."""
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        stopping = asyncio.ensure_future(self._shutdown.wait())
        try:
            await asyncio.wait({sleeper, stopping}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            stopping.cancel()

    # ------------------------------------------------------------------
    # Shutdown hooks (idempotent)
    # ------------------------------------------------------------------

    async def release_audio(self) -> None:
        """Detach the sink and close the current audio source, if any."""
        self._publish_loop.detach_sink()
        room = self._room
        if room is not None:
            await room.close_audio()

    async def leave_room(self) -> None:
        room = self._room
        if room is not None:
            await room.disconnect()
