"""PCM gain utilities."""
import numpy as np

from constants import PCM16_MAX, PCM16_MIN


def apply_gain(pcm_bytes: bytes, gain: float) -> bytes:
    """
    Scale PCM16 little-endian mono samples by gain in [0.0, 1.0].

    Always returns a new bytes object. The input is copied before it is
    reinterpreted as samples, so callers may pass a bytearray or memoryview
    that the I/O layer will later reuse.

    - gain >= 1.0: unchanged copy
    - gain <= 0.0: silence of the same length
    - otherwise: scaled, rounded to nearest, clipped to the int16 range
    """
    owned = bytes(pcm_bytes)
    if len(owned) % 2 != 0:
        raise ValueError(f"PCM16 buffer must have even length, got {len(owned)}")

    if gain >= 1.0:
        return owned
    if gain <= 0.0:
        return bytes(len(owned))

    samples = np.frombuffer(owned, dtype="<i2").astype(np.float64)
    scaled = np.round(samples * gain)
    return np.clip(scaled, PCM16_MIN, PCM16_MAX).astype("<i2").tobytes()
