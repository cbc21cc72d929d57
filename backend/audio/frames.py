"""
Audio frame primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass

from constants import AUDIO_CHANNELS, AUDIO_SAMPLE_WIDTH_BYTES


@dataclass(frozen=True)
class DecodeFrame:
    """
    Canonical audio frame handed to the room transport.

    sequence_num:
        Monotonic per-file sequence number (starts at 1 for each file).
        Used for ordering checks and debugging only.

    pcm_bytes:
        Raw PCM16 little-endian mono bytes, already gain-scaled.
        Length MUST equal samples_per_channel * num_channels * 2.

    generation:
        Publish generation that produced the frame. Frames from a
        superseded generation must never reach the transport after the
        new generation's first frame.
    """
    sequence_num: int
    pcm_bytes: bytes
    sample_rate_hz: int
    samples_per_channel: int
    generation: int
    num_channels: int = AUDIO_CHANNELS

    def __post_init__(self) -> None:
        expected = self.samples_per_channel * self.num_channels * AUDIO_SAMPLE_WIDTH_BYTES
        if len(self.pcm_bytes) != expected:
            raise ValueError(
                f"DecodeFrame expects {expected} PCM bytes, got {len(self.pcm_bytes)}"
            )
