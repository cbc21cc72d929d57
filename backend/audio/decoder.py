"""
Audio decoder subprocess.

Responsibilities:
- Spawn the external decoder for one file, converting any input format
  to raw PCM16 little-endian mono at the configured sample rate
- Expose stdout as an async stream of raw byte chunks
- Drain stderr into warning logs so the pipe never fills
- Terminate / kill the process on request

Non-responsibilities:
- NO frame slicing (audio.frame_generator)
- NO gain (audio.crossfade)
- NO decision about when to stop (publish loop / cancellation context)
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Sequence

from constants import (
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_FORMAT,
    DECODER_READ_SIZE_BYTES,
    DECODER_TERMINATE_GRACE_S,
    DEFAULT_FFMPEG_BIN,
    DEFAULT_SAMPLE_RATE_HZ,
)
from observability.logger import log_event


class DecoderProcess:
    """
    One running decoder.

    terminate() is synchronous so it can run from a cancellation hook;
    close() is the async cleanup that guarantees the process is reaped.
    """

    def __init__(
        self,
        proc: asyncio.subprocess.Process,
        *,
        path: str,
        read_size: int = DECODER_READ_SIZE_BYTES,
        grace_s: float = DECODER_TERMINATE_GRACE_S,
    ) -> None:
        self._proc = proc
        self._path = path
        self._read_size = read_size
        self._grace_s = grace_s
        self._terminated = False
        self._stderr_task: asyncio.Task[None] | None = None
        if proc.stderr is not None:
            self._stderr_task = asyncio.create_task(self._drain_stderr(proc.stderr))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def path(self) -> str:
        return self._path

    @property
    def pid(self) -> int | None:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    @property
    def terminated(self) -> bool:
        """True once terminate() was requested by us."""
        return self._terminated

    # ------------------------------------------------------------------
    # Stream
    # ------------------------------------------------------------------

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield raw stdout chunks until EOF."""
        stdout = self._proc.stdout
        if stdout is None:
            return
        while True:
            chunk = await stdout.read(self._read_size)
            if not chunk:
                return
            yield chunk

    async def wait(self) -> int:
        return await self._proc.wait()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def terminate(self) -> None:
        """Send SIGTERM once. Safe to call repeatedly or after exit."""
        if self._terminated:
            return
        self._terminated = True
        if self._proc.returncode is not None:
            return
        try:
            self._proc.terminate()
        except ProcessLookupError:
            pass

    async def close(self) -> int | None:
        """
        Ensure the process has exited and stderr is drained.

        A process that was not asked to stop gets the grace period to
        exit on its own, so its real exit status is kept. A still-running
        process is then terminated, given the grace period again, and
        killed.
        """
        if self._proc.returncode is None and not self._terminated:
            try:
                await asyncio.wait_for(self._proc.wait(), timeout=self._grace_s)
            except asyncio.TimeoutError:
                pass

        if self._proc.returncode is None:
            self.terminate()
            try:
                await asyncio.wait_for(self._proc.wait(), timeout=self._grace_s)
            except asyncio.TimeoutError:
                log_event({
                    "level": "WARNING",
                    "event_type": "DECODER_KILL",
                    "path": self._path,
                    "pid": self._proc.pid,
                })
                try:
                    self._proc.kill()
                except ProcessLookupError:
                    pass
                await self._proc.wait()

        if self._stderr_task is not None:
            try:
                await asyncio.wait_for(self._stderr_task, timeout=self._grace_s)
            except asyncio.TimeoutError:
                self._stderr_task.cancel()
        return self._proc.returncode

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _drain_stderr(self, stream: asyncio.StreamReader) -> None:
        while True:
            line = await stream.readline()
            if not line:
                return
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                log_event({
                    "level": "WARNING",
                    "event_type": "DECODER_STDERR",
                    "path": self._path,
                    "line": text,
                })


class FFmpegDecoder:
    """Factory for ffmpeg decoder processes with a fixed output format."""

    def __init__(
        self,
        *,
        ffmpeg_bin: str = DEFAULT_FFMPEG_BIN,
        sample_rate_hz: int = DEFAULT_SAMPLE_RATE_HZ,
        channels: int = AUDIO_CHANNELS,
        read_size: int = DECODER_READ_SIZE_BYTES,
    ) -> None:
        self._ffmpeg_bin = ffmpeg_bin
        self._sample_rate_hz = sample_rate_hz
        self._channels = channels
        self._read_size = read_size

    def build_args(self, path: str) -> Sequence[str]:
        return [
            self._ffmpeg_bin,
            "-hide_banner",
            "-loglevel", "error",
            "-i", path,
            "-f", AUDIO_SAMPLE_FORMAT,
            "-ar", str(self._sample_rate_hz),
            "-ac", str(self._channels),
            "pipe:1",
        ]

    async def spawn(self, path: str) -> DecoderProcess:
        """
        Start decoding `path`.

        Raises:
            OSError if the binary cannot be executed.
        """
        proc = await asyncio.create_subprocess_exec(
            *self.build_args(path),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        log_event({
            "level": "DEBUG",
            "event_type": "DECODER_SPAWNED",
            "path": path,
            "pid": proc.pid,
        })
        return DecoderProcess(proc, path=path, read_size=self._read_size)
