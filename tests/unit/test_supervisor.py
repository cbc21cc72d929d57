# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio
from typing import Any, Callable

from adapters.room.base import EmitEvent, RoomAdapter, RoomTransportError
from audio.frames import DecodeFrame
from config import AppConfig
from orchestrator.enums.fade import FadeDirection
from orchestrator.events import EventType, ParticipantConnected
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import AgentState
from session.connection_status import ConnectionState
from session.supervisor import ConnectionSupervisor


BEACON = "beacon01"


# ---------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------

class FakeRoom(RoomAdapter):
    def __init__(
        self,
        emit: EmitEvent,
        *,
        fail_connect: bool = False,
        drop_after_connect: bool = False,
        identities: frozenset[str] = frozenset(),
    ) -> None:
        self.emit = emit
        self.fail_connect = fail_connect
        self.drop_after_connect = drop_after_connect
        self.identities = identities
        self.connected = False
        self.published = False
        self.audio_closed = 0
        self.disconnects = 0
        self._gone = asyncio.Event()

    async def connect(self, url: str, token: str) -> None:
        if self.fail_connect:
            raise RoomTransportError("refused")
        self.connected = True

    async def publish_audio(self, *, track_name: str, sample_rate_hz: int, channels: int) -> None:
        self.published = True
        if self.drop_after_connect:
            self._gone.set()

    async def capture_frame(self, frame: DecodeFrame) -> None:
        pass

    def remote_identities(self) -> frozenset[str]:
        return self.identities

    async def wait_disconnected(self) -> str | None:
        await self._gone.wait()
        return "remote_drop"

    async def close_audio(self) -> None:
        self.audio_closed += 1

    async def disconnect(self) -> None:
        self.disconnects += 1
        self._gone.set()

    def drop(self) -> None:
        self._gone.set()


class FakeGain:
    def __init__(self) -> None:
        self.gain = 1.0
        self.calls: list[tuple[str, Any]] = []

    def set_gain(self, gain: float) -> None:
        self.gain = gain
        self.calls.append(("set_gain", gain))

    def start_fade(self, direction: FadeDirection) -> None:
        self.calls.append(("start_fade", direction))


class FakePublisher:
    def __init__(self) -> None:
        self.running = False
        self.calls: list[str] = []
        self.sink: Any = None

    def start(self) -> int:
        self.running = True
        self.calls.append("start")
        return 1

    def stop(self) -> None:
        self.running = False
        self.calls.append("stop")

    def attach_sink(self, sink: Any) -> None:
        self.sink = sink

    def detach_sink(self) -> None:
        self.sink = None


class Harness:
    def __init__(self, plan: list[dict[str, Any]]) -> None:
        self.plan = plan
        self.rooms: list[FakeRoom] = []
        self.delays: list[float] = []
        self.gain = FakeGain()
        self.publisher = FakePublisher()
        self.shutdown = asyncio.Event()
        self.runtime = Runtime(
            initial_state=AgentState(beacon_identity=BEACON),
            context=RuntimeExecutionContext(
                gain=self.gain, publisher=self.publisher, room_name="test"
            ),
        )
        self.supervisor = ConnectionSupervisor(
            config=AppConfig(
                livekit_api_key="key",
                livekit_api_secret="secret",
                reconnect_base_ms=1000,
                reconnect_max_ms=30_000,
            ),
            runtime=self.runtime,
            publish_loop=self.publisher,  # type: ignore[arg-type]
            room_factory=self.make_room,
            token_provider=lambda: "token",
            shutdown_event=self.shutdown,
            sleep=self.fake_sleep,
        )

    def make_room(self, emit: EmitEvent) -> FakeRoom:
        options = self.plan[len(self.rooms)] if len(self.rooms) < len(self.plan) else {}
        room = FakeRoom(emit, **options)
        self.rooms.append(room)
        return room

    async def fake_sleep(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)
    await asyncio.wait_for(poll(), timeout)


async def run_harness(harness: Harness, until: Callable[[], bool]) -> None:
    dispatch = asyncio.create_task(harness.runtime.run())
    supervisor = asyncio.create_task(harness.supervisor.run())
    try:
        await wait_until(until)
    finally:
        harness.shutdown.set()
        await asyncio.wait_for(supervisor, 2.0)
        dispatch.cancel()
        await asyncio.gather(dispatch, return_exceptions=True)


# ---------------------------------------------------------------------
# Backoff
# ---------------------------------------------------------------------

def test_backoff_doubles_on_failures_and_resets_after_session():
    harness = Harness([
        {"fail_connect": True},
        {"fail_connect": True},
        {"fail_connect": True},
        {"drop_after_connect": True},
        {},
    ])

    def settled() -> bool:
        return len(harness.rooms) == 5 and harness.rooms[4].published and harness.publisher.sink is not None

    asyncio.run(run_harness(harness, settled))

    assert harness.delays == [2.0, 4.0, 8.0, 1.0]
    assert harness.supervisor.attempt.attempt == 0


def test_every_room_is_torn_down():
    harness = Harness([{"fail_connect": True}, {"drop_after_connect": True}, {}])

    asyncio.run(run_harness(harness, lambda: len(harness.rooms) == 3 and harness.rooms[2].published))

    for room in harness.rooms:
        assert room.audio_closed >= 1
        assert room.disconnects >= 1
    assert harness.publisher.sink is None
    assert harness.runtime.state.connection_state is ConnectionState.DISCONNECTED


# ---------------------------------------------------------------------
# Presence seeding
# ---------------------------------------------------------------------

def test_connect_without_beacon_starts_publishing():
    harness = Harness([{"identities": frozenset({"listener"})}])

    asyncio.run(run_harness(harness, lambda: "start" in harness.publisher.calls))

    assert harness.gain.calls[0] == ("set_gain", 1.0)
    assert harness.publisher.calls[-1] == "stop"


def test_connect_with_beacon_present_stays_silent():
    harness = Harness([{"identities": frozenset({BEACON})}])

    asyncio.run(run_harness(harness, lambda: harness.runtime.state.beacon_present))

    assert harness.gain.calls == [("set_gain", 0.0)]
    assert "start" not in harness.publisher.calls


def test_membership_events_from_adapter_reach_reducer():
    harness = Harness([{}])
    seen: list[bool] = []

    def beacon_joined_seen() -> bool:
        if harness.publisher.sink is not None and harness.runtime.state.connection_state is ConnectionState.CONNECTED:
            if not seen:
                seen.append(True)
                harness.rooms[0].emit(ParticipantConnected(
                    event_type=EventType.PARTICIPANT_CONNECTED, ts_ms=0, identity=BEACON
                ))
        return ("start_fade", FadeDirection.OUT) in harness.gain.calls

    asyncio.run(run_harness(harness, beacon_joined_seen))

    assert harness.gain.calls[:2] == [("set_gain", 1.0), ("start_fade", FadeDirection.OUT)]
