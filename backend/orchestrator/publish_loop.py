"""
Publish loop.

Responsibilities:
- Walk the playlist forever, decoding one file at a time
- Slice decoded bytes into exact frames, apply the crossfade gain,
  and submit each frame to the attached sink
- Stop at frame boundaries when its generation is cancelled or superseded

Non-responsibilities:
- NO presence decisions (reducer)
- NO room connection management (supervisor attaches/detaches the sink)

Invariant:
- At most one generation is current. A superseded generation never
  submits a frame after the check that follows its last submission, so
  no stale frame can follow the new generation's first frame.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from audio.crossfade import CrossfadeEngine
from audio.decoder import DecoderProcess, FFmpegDecoder
from audio.frame_generator import FrameSlicer
from audio.frames import DecodeFrame
from audio.playlist import PlaylistSource
from constants import AUDIO_CHANNELS, AUDIO_SAMPLE_WIDTH_BYTES
from observability.logger import log_event
from observability.metrics import timed
from orchestrator.cancellation import CancellationContext
from orchestrator.generation import PublishGeneration


class FrameSink(Protocol):
    async def capture_frame(self, frame: DecodeFrame) -> None: ...


class PublishLoop:
    """
    Generation-gated frame producer.

    start() always arms a new generation; the previous one (if any) is
    cancelled first and its decoder terminated. stop() cancels the current
    generation without arming another.
    """

    def __init__(
        self,
        *,
        engine: CrossfadeEngine,
        playlist: PlaylistSource,
        decoder: FFmpegDecoder,
        sample_rate_hz: int,
        samples_per_frame: int,
        rescan_interval_s: float,
    ) -> None:
        self._engine = engine
        self._playlist = playlist
        self._decoder = decoder
        self._sample_rate_hz = sample_rate_hz
        self._samples_per_frame = samples_per_frame
        self._bytes_per_frame = samples_per_frame * AUDIO_CHANNELS * AUDIO_SAMPLE_WIDTH_BYTES
        self._rescan_interval_s = rescan_interval_s

        self._generation = PublishGeneration()
        self._ctx: CancellationContext | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._sink: FrameSink | None = None

        engine.on_fade_out_complete = self.stop

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation.value

    @property
    def running(self) -> bool:
        """True while an uncancelled generation is armed."""
        return self._ctx is not None and self._ctx.is_current()

    # ------------------------------------------------------------------
    # Sink
    # ------------------------------------------------------------------

    def attach_sink(self, sink: FrameSink) -> None:
        self._sink = sink

    def detach_sink(self) -> None:
        self._sink = None

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self) -> int:
        """Arm a new generation and spawn its worker. Returns the generation."""
        if self._ctx is not None:
            self._ctx.cancel()

        generation = self._generation.advance()
        ctx = CancellationContext(generation=generation, counter=self._generation)
        self._ctx = ctx

        task = asyncio.create_task(self._run(ctx), name=f"publish-loop-{generation}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        log_event({
            "event_type": "PUBLISH_LOOP_STARTED",
            "generation": generation,
            "gain": round(self._engine.gain, 4),
        })
        return generation

    def stop(self) -> None:
        """Cancel the current generation. Idempotent."""
        ctx = self._ctx
        if ctx is None or ctx.cancelled:
            return
        ctx.cancel()
        log_event({
            "event_type": "PUBLISH_LOOP_STOP_REQUESTED",
            "generation": ctx.generation,
        })

    async def join(self) -> None:
        """Wait for every worker task (current and superseded) to exit."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    async def shutdown(self, timeout_s: float) -> None:
        """stop() then join(); workers still alive after timeout_s are cancelled."""
        self.stop()
        try:
            await asyncio.wait_for(self.join(), timeout=timeout_s)
        except asyncio.TimeoutError:
            for task in list(self._tasks):
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    async def _run(self, ctx: CancellationContext) -> None:
        try:
            while ctx.is_current():
                entries = self._playlist.scan()
                if not entries:
                    log_event({
                        "level": "WARNING",
                        "event_type": "PLAYLIST_EMPTY",
                        "directory": self._playlist.directory,
                        "retry_in_ms": int(self._rescan_interval_s * 1000),
                    })
                    if await ctx.sleep(self._rescan_interval_s):
                        break
                    continue

                frames_this_pass = 0
                for path in entries:
                    if not ctx.is_current():
                        break
                    frames_this_pass += await self._play_file(ctx, path)

                # Every file failed before producing audio: back off
                # instead of spinning on the event loop.
                if frames_this_pass == 0 and ctx.is_current():
                    log_event({
                        "level": "WARNING",
                        "event_type": "PLAYLIST_PASS_SILENT",
                        "directory": self._playlist.directory,
                        "files": len(entries),
                        "retry_in_ms": int(self._rescan_interval_s * 1000),
                    })
                    if await ctx.sleep(self._rescan_interval_s):
                        break
        finally:
            log_event({
                "event_type": "PUBLISH_LOOP_EXITED",
                "generation": ctx.generation,
            })

    async def _play_file(self, ctx: CancellationContext, path: str) -> int:
        """Play one file. Returns the number of frames submitted."""
        try:
            proc = await self._decoder.spawn(path)
        except OSError as e:
            log_event({
                "level": "ERROR",
                "event_type": "DECODER_SPAWN_FAILED",
                "path": path,
                "error": repr(e),
            })
            return 0

        ctx.add_callback(proc.terminate)
        with timed("file_playback", details={"path": path, "generation": ctx.generation}) as fields:
            frames_sent = 0
            outcome = "completed"
            try:
                frames_sent, outcome = await self._stream_file(ctx, proc)
            except asyncio.CancelledError:
                outcome = "cancelled"
                proc.terminate()
                raise
            finally:
                ctx.remove_callback(proc.terminate)
                returncode = await proc.close()
                fields["frames_sent"] = frames_sent
                fields["outcome"] = outcome
                fields["returncode"] = returncode

        if returncode not in (0, None) and not proc.terminated:
            log_event({
                "level": "ERROR",
                "event_type": "DECODER_FAILED",
                "path": path,
                "returncode": returncode,
                "frames_sent": frames_sent,
            })
        return frames_sent

    async def _stream_file(
        self, ctx: CancellationContext, proc: DecoderProcess
    ) -> tuple[int, str]:
        slicer = FrameSlicer(bytes_per_frame=self._bytes_per_frame)
        sequence = 0
        try:
            async for chunk in proc.chunks():
                for window in slicer.feed(chunk):
                    if not ctx.is_current():
                        return sequence, "cancelled"

                    sink = self._sink
                    if sink is None:
                        log_event({
                            "level": "WARNING",
                            "event_type": "PUBLISH_NO_SINK",
                            "path": proc.path,
                            "generation": ctx.generation,
                        })
                        proc.terminate()
                        return sequence, "no_sink"

                    sequence += 1
                    frame = DecodeFrame(
                        sequence_num=sequence,
                        pcm_bytes=self._engine.apply(window),
                        sample_rate_hz=self._sample_rate_hz,
                        samples_per_channel=self._samples_per_frame,
                        generation=ctx.generation,
                    )
                    try:
                        await sink.capture_frame(frame)
                    except Exception as e:  # pylint: disable=broad-exception-caught
                        log_event({
                            "level": "ERROR",
                            "event_type": "PUBLISH_CAPTURE_FAILED",
                            "path": proc.path,
                            "generation": ctx.generation,
                            "sequence_num": sequence,
                            "error": repr(e),
                        })
                        proc.terminate()
                        return sequence - 1, "transport_error"

                    if not ctx.is_current():
                        return sequence, "cancelled"
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "level": "ERROR",
                "event_type": "DECODER_READ_FAILED",
                "path": proc.path,
                "error": repr(e),
            })
            proc.terminate()
            return sequence, "read_error"

        if slicer.leftover:
            log_event({
                "level": "DEBUG",
                "event_type": "DECODER_TRAILING_BYTES_DROPPED",
                "path": proc.path,
                "bytes": len(slicer.leftover),
            })
        return sequence, "completed"
