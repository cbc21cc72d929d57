"""
LiveKit room adapter.

Wraps one livekit.rtc.Room session: join, publish a single mono audio
track, forward membership and SDK reconnect callbacks as orchestrator
events, and tear everything down idempotently.
"""

from __future__ import annotations

import asyncio
import time

from livekit import rtc

from adapters.room.base import EmitEvent, RoomAdapter, RoomTransportError
from audio.frames import DecodeFrame
from observability.logger import log_event
from orchestrator.events import (
    EventType,
    ParticipantConnected,
    ParticipantDisconnected,
    RoomReconnected,
    RoomReconnecting,
)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class LiveKitRoomAdapter(RoomAdapter):
    """
    LiveKit implementation of RoomAdapter.

    SDK callbacks run on the event loop and only post events; all state
    decisions happen in the runtime's dispatch loop.
    """

    def __init__(self, *, emit_event: EmitEvent) -> None:
        self._emit_event = emit_event
        self._room = rtc.Room()
        self._source: rtc.AudioSource | None = None
        self._track: rtc.LocalAudioTrack | None = None
        self._disconnected = asyncio.Event()
        self._disconnect_reason: str | None = None
        self._connected = False
        self._left = False

        self._room.on("participant_connected", self._on_participant_connected)
        self._room.on("participant_disconnected", self._on_participant_disconnected)
        self._room.on("reconnecting", self._on_reconnecting)
        self._room.on("reconnected", self._on_reconnected)
        self._room.on("disconnected", self._on_disconnected)

    # ------------------------------------------------------------------
    # RoomAdapter
    # ------------------------------------------------------------------

    async def connect(self, url: str, token: str) -> None:
        options = rtc.RoomOptions(auto_subscribe=False, dynacast=True)
        try:
            await self._room.connect(url, token, options=options)
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise RoomTransportError(f"connect failed: {e!r}") from e
        self._connected = True
        log_event({
            "event_type": "ROOM_JOINED",
            "room": self._room.name,
            "remote_count": len(self._room.remote_participants),
        })

    async def publish_audio(self, *, track_name: str, sample_rate_hz: int, channels: int) -> None:
        source = rtc.AudioSource(sample_rate_hz, channels)
        self._source = source
        track = rtc.LocalAudioTrack.create_audio_track(track_name, source)
        self._track = track
        options = rtc.TrackPublishOptions(source=rtc.TrackSource.SOURCE_MICROPHONE)
        try:
            publication = await self._room.local_participant.publish_track(track, options)
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise RoomTransportError(f"publish failed: {e!r}") from e
        log_event({
            "event_type": "TRACK_PUBLISHED",
            "track_name": track_name,
            "track_sid": publication.sid,
            "sample_rate_hz": sample_rate_hz,
        })

    async def capture_frame(self, frame: DecodeFrame) -> None:
        source = self._source
        if source is None:
            raise RoomTransportError("audio source is not open")
        audio_frame = rtc.AudioFrame(
            data=frame.pcm_bytes,
            sample_rate=frame.sample_rate_hz,
            num_channels=frame.num_channels,
            samples_per_channel=frame.samples_per_channel,
        )
        await source.capture_frame(audio_frame)

    def remote_identities(self) -> frozenset[str]:
        return frozenset(p.identity for p in self._room.remote_participants.values())

    async def wait_disconnected(self) -> str | None:
        await self._disconnected.wait()
        return self._disconnect_reason

    async def close_audio(self) -> None:
        source, self._source = self._source, None
        self._track = None
        if source is None:
            return
        try:
            await source.aclose()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "level": "WARNING",
                "event_type": "AUDIO_SOURCE_CLOSE_FAILED",
                "error": repr(e),
            })

    async def disconnect(self) -> None:
        if self._left:
            return
        self._left = True
        if not self._connected:
            return
        try:
            await self._room.disconnect()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "level": "WARNING",
                "event_type": "ROOM_DISCONNECT_FAILED",
                "error": repr(e),
            })
        self._mark_disconnected("local_disconnect")

    # ------------------------------------------------------------------
    # SDK callbacks
    # ------------------------------------------------------------------

    def _on_participant_connected(self, participant: rtc.RemoteParticipant) -> None:
        self._emit_event(ParticipantConnected(
            event_type=EventType.PARTICIPANT_CONNECTED,
            ts_ms=_now_ms(),
            identity=participant.identity,
        ))

    def _on_participant_disconnected(self, participant: rtc.RemoteParticipant) -> None:
        self._emit_event(ParticipantDisconnected(
            event_type=EventType.PARTICIPANT_DISCONNECTED,
            ts_ms=_now_ms(),
            identity=participant.identity,
        ))

    def _on_reconnecting(self) -> None:
        self._emit_event(RoomReconnecting(
            event_type=EventType.ROOM_RECONNECTING,
            ts_ms=_now_ms(),
        ))

    def _on_reconnected(self) -> None:
        self._emit_event(RoomReconnected(
            event_type=EventType.ROOM_RECONNECTED,
            ts_ms=_now_ms(),
            remote_identities=self.remote_identities(),
        ))

    def _on_disconnected(self, reason: object = None) -> None:
        self._mark_disconnected(None if reason is None else str(reason))

    def _mark_disconnected(self, reason: str | None) -> None:
        if self._disconnected.is_set():
            return
        self._disconnect_reason = reason
        self._disconnected.set()
