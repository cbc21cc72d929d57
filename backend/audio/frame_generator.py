"""
PCM frame slicing.

Purpose:
- Convert the decoder's arbitrarily-sized stdout reads into fixed-size
  PCM16 frames for gain scaling and submission to the room transport.

Invariants:
- PCM16 signed, little-endian, mono
- Every emitted frame is exactly bytes_per_frame long
- Partial reads are buffered; the remainder is kept for the next feed
  (no data loss, no duplication)
- Every emitted frame is a separately-allocated bytes object, never a
  view into the slicer's working buffer
"""

from __future__ import annotations


class FrameSlicer:
    """
    Incremental fixed-size frame slicer.

    feed() appends a chunk and returns every complete frame now available;
    leftover holds the bytes waiting for the next chunk.
    """

    def __init__(self, *, bytes_per_frame: int) -> None:
        if bytes_per_frame <= 0:
            raise ValueError("bytes_per_frame must be > 0")
        self._bytes_per_frame = bytes_per_frame
        self._buffer = bytearray()

    @property
    def bytes_per_frame(self) -> int:
        return self._bytes_per_frame

    @property
    def leftover(self) -> bytes:
        """Bytes buffered but not yet emitted (always < bytes_per_frame)."""
        return bytes(self._buffer)

    def feed(self, chunk: bytes) -> list[bytes]:
        if chunk:
            self._buffer.extend(chunk)

        n = self._bytes_per_frame
        whole = len(self._buffer) // n
        if whole == 0:
            return []

        end = whole * n
        # Owned copies: the buffer is compacted right after.
        frames = [bytes(self._buffer[offset : offset + n]) for offset in range(0, end, n)]
        del self._buffer[:end]
        return frames
