# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio
import struct
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

import pytest

import orchestrator.publish_loop as publish_loop_mod
from audio.crossfade import CrossfadeEngine
from audio.decoder import FFmpegDecoder
from audio.frames import DecodeFrame
from audio.playlist import PlaylistSource
from orchestrator.enums.fade import FadeDirection
from orchestrator.publish_loop import PublishLoop


SAMPLES_PER_FRAME = 4
BYTES_PER_FRAME = SAMPLES_PER_FRAME * 2
SAMPLE_VALUE = 10_000


def frame_bytes(value: int = SAMPLE_VALUE) -> bytes:
    return struct.pack(f"<{SAMPLES_PER_FRAME}h", *([value] * SAMPLES_PER_FRAME))


def first_sample(frame: DecodeFrame) -> int:
    return struct.unpack_from("<h", frame.pcm_bytes)[0]


# ---------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------

class FakeProc:
    def __init__(self, path: str, chunks: list[bytes], returncode: int = 0) -> None:
        self.path = path
        self._chunks = chunks
        self._final_returncode = returncode
        self.returncode: int | None = None
        self.terminated = False
        self.closed = False

    async def chunks(self):
        for chunk in self._chunks:
            if self.terminated:
                return
            await asyncio.sleep(0)
            yield chunk

    def terminate(self) -> None:
        self.terminated = True

    async def close(self) -> int | None:
        self.closed = True
        self.returncode = -15 if self.terminated else self._final_returncode
        return self.returncode


class FakeDecoder:
    def __init__(self, frames_per_file: int, *, split: int = 3, fail_paths: tuple[str, ...] = ()) -> None:
        self.frames_per_file = frames_per_file
        self.split = split
        self.fail_paths = fail_paths
        self.spawned: list[FakeProc] = []

    async def spawn(self, path: str) -> FakeProc:
        if path.endswith(self.fail_paths):
            raise FileNotFoundError(path)
        data = frame_bytes() * self.frames_per_file
        # Irregular chunking so frames straddle reads
        chunks = [data[i : i + BYTES_PER_FRAME * 2 + self.split]
                  for i in range(0, len(data), BYTES_PER_FRAME * 2 + self.split)]
        proc = FakeProc(path, chunks)
        self.spawned.append(proc)
        return proc


class FakeSink:
    def __init__(self, on_frame: Callable[[DecodeFrame, int], Any] | None = None) -> None:
        self.frames: list[DecodeFrame] = []
        self.on_frame = on_frame

    async def capture_frame(self, frame: DecodeFrame) -> None:
        self.frames.append(frame)
        if self.on_frame is not None:
            self.on_frame(frame, len(self.frames))
        await asyncio.sleep(0)


def make_loop(
    directory: Path,
    decoder: FakeDecoder,
    *,
    max_fade_frames: int = 100,
    rescan_interval_s: float = 0.01,
) -> tuple[PublishLoop, CrossfadeEngine]:
    engine = CrossfadeEngine(max_fade_frames=max_fade_frames)
    loop = PublishLoop(
        engine=engine,
        playlist=PlaylistSource(str(directory)),
        decoder=decoder,  # type: ignore[arg-type]
        sample_rate_hz=200,
        samples_per_frame=SAMPLES_PER_FRAME,
        rescan_interval_s=rescan_interval_s,
    )
    return loop, engine


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)
    await asyncio.wait_for(poll(), timeout)


def run(coro: Awaitable[Any]) -> Any:
    return asyncio.run(coro)  # type: ignore[arg-type]


# ---------------------------------------------------------------------
# Playback
# ---------------------------------------------------------------------

def test_single_file_plays_at_full_gain_and_loops(tmp_path: Path):
    (tmp_path / "only.ogg").write_bytes(b"")
    decoder = FakeDecoder(frames_per_file=3)

    async def scenario() -> FakeSink:
        loop, _ = make_loop(tmp_path, decoder)
        sink = FakeSink(lambda _f, n: loop.stop() if n == 6 else None)
        loop.attach_sink(sink)
        loop.start()
        await loop.join()
        return sink

    sink = run(scenario())

    assert len(sink.frames) == 6
    assert all(f.pcm_bytes == frame_bytes() for f in sink.frames)
    assert [f.sequence_num for f in sink.frames] == [1, 2, 3, 1, 2, 3]
    assert [p.path for p in decoder.spawned] == [str(tmp_path / "only.ogg")] * 2
    assert all(p.closed for p in decoder.spawned)


def test_fade_out_to_silence_stops_loop(tmp_path: Path):
    (tmp_path / "long.ogg").write_bytes(b"")
    decoder = FakeDecoder(frames_per_file=500)

    async def scenario() -> tuple[FakeSink, PublishLoop]:
        loop, engine = make_loop(tmp_path, decoder, max_fade_frames=100)

        def on_frame(_frame: DecodeFrame, n: int) -> None:
            if n == 20:
                engine.start_fade(FadeDirection.OUT)

        sink = FakeSink(on_frame)
        loop.attach_sink(sink)
        loop.start()
        await loop.join()
        return sink, loop

    sink, loop = run(scenario())

    assert len(sink.frames) == 120
    faded = [first_sample(f) for f in sink.frames[20:]]
    assert all(a > b for a, b in zip(faded, faded[1:]))
    assert sink.frames[-1].pcm_bytes == bytes(BYTES_PER_FRAME)
    assert not loop.running
    assert decoder.spawned[0].terminated


def test_empty_playlist_warns_and_retries(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    events: list[dict[str, Any]] = []
    monkeypatch.setattr(publish_loop_mod, "log_event", events.append)
    decoder = FakeDecoder(frames_per_file=3)

    async def scenario() -> None:
        loop, _ = make_loop(tmp_path, decoder, rescan_interval_s=0.005)
        loop.attach_sink(FakeSink())
        loop.start()
        await wait_until(lambda: sum(e["event_type"] == "PLAYLIST_EMPTY" for e in events) >= 3)
        loop.stop()
        await loop.join()

    run(scenario())

    empties = [e for e in events if e["event_type"] == "PLAYLIST_EMPTY"]
    assert len(empties) >= 3
    assert all(e["level"] == "WARNING" for e in empties)
    assert decoder.spawned == []


def test_new_generation_supersedes_old(tmp_path: Path):
    (tmp_path / "a.ogg").write_bytes(b"")
    decoder = FakeDecoder(frames_per_file=50)

    async def scenario() -> FakeSink:
        loop, _ = make_loop(tmp_path, decoder)

        def on_frame(frame: DecodeFrame, n: int) -> None:
            if n == 5:
                loop.start()
            elif frame.generation == 2 and n >= 15:
                loop.stop()

        sink = FakeSink(on_frame)
        loop.attach_sink(sink)
        loop.start()
        await loop.join()
        return sink

    sink = run(scenario())

    generations = [f.generation for f in sink.frames]
    first_new = generations.index(2)
    assert generations[:first_new] == [1] * first_new
    assert all(g == 2 for g in generations[first_new:])
    assert decoder.spawned[0].terminated


def test_transport_error_abandons_file_and_continues(tmp_path: Path):
    (tmp_path / "a.ogg").write_bytes(b"")
    (tmp_path / "b.ogg").write_bytes(b"")
    decoder = FakeDecoder(frames_per_file=5)

    class FlakySink(FakeSink):
        async def capture_frame(self, frame: DecodeFrame) -> None:
            if len(self.frames) == 2 and not getattr(self, "failed", False):
                self.failed = True
                raise RuntimeError("transport gone")
            await super().capture_frame(frame)

    async def scenario() -> FlakySink:
        loop, _ = make_loop(tmp_path, decoder)
        sink = FlakySink(lambda _f, n: loop.stop() if n == 7 else None)
        loop.attach_sink(sink)
        loop.start()
        await loop.join()
        return sink

    sink = run(scenario())

    a, b = decoder.spawned[:2]
    assert a.path.endswith("a.ogg") and b.path.endswith("b.ogg")
    assert a.terminated
    assert len(sink.frames) == 7
    assert [f.sequence_num for f in sink.frames] == [1, 2, 1, 2, 3, 4, 5]


def test_spawn_failure_skips_to_next_file(tmp_path: Path):
    (tmp_path / "a-broken.ogg").write_bytes(b"")
    (tmp_path / "b-good.ogg").write_bytes(b"")
    decoder = FakeDecoder(frames_per_file=2, fail_paths=("a-broken.ogg",))

    async def scenario() -> FakeSink:
        loop, _ = make_loop(tmp_path, decoder)
        sink = FakeSink(lambda _f, n: loop.stop() if n == 2 else None)
        loop.attach_sink(sink)
        loop.start()
        await loop.join()
        return sink

    sink = run(scenario())

    assert len(sink.frames) == 2
    assert [p.path for p in decoder.spawned] == [str(tmp_path / "b-good.ogg")]


def test_stop_is_idempotent_and_running_reflects_state(tmp_path: Path):
    decoder = FakeDecoder(frames_per_file=1)

    async def scenario() -> None:
        loop, _ = make_loop(tmp_path, decoder)
        assert not loop.running
        generation = loop.start()
        assert generation == 1
        assert loop.running
        loop.stop()
        loop.stop()
        assert not loop.running
        await loop.join()

    run(scenario())


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
def test_decoder_nonzero_exit_after_output_is_logged(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    events: list[dict[str, Any]] = []
    monkeypatch.setattr(publish_loop_mod, "log_event", events.append)
    music = tmp_path / "music"
    music.mkdir()
    (music / "a.ogg").write_bytes(b"")
    script = tmp_path / "fake-ffmpeg"
    script.write_text("#!/bin/sh\nhead -c 24 /dev/zero\nexit 1\n", encoding="utf-8")
    script.chmod(0o755)

    def failures() -> list[dict[str, Any]]:
        return [e for e in events if e["event_type"] == "DECODER_FAILED"]

    async def scenario() -> FakeSink:
        loop, _ = make_loop(music, FFmpegDecoder(ffmpeg_bin=str(script), sample_rate_hz=200))  # type: ignore[arg-type]
        sink = FakeSink()
        loop.attach_sink(sink)
        loop.start()
        await wait_until(lambda: len(failures()) >= 5, timeout=10.0)
        loop.stop()
        await loop.join()
        return sink

    sink = run(scenario())

    # Every pass that ran to its natural end reported the exit status.
    assert len(failures()) >= 5
    assert all(e["returncode"] == 1 and e["frames_sent"] == 3 for e in failures())
    assert len(sink.frames) >= 15
