"""Prebuffer — bounded holding queue for audio received before a recognizer exists.

Clients often start streaming microphone audio before their ``start`` message
has been acknowledged, and opening a backend session has cold-start latency.
The prebuffer keeps the most recent audio so that nothing said during that
window is lost, while capping memory per connection.

Invariants:
- Cumulative size never exceeds ``max_bytes``.
- Eviction always removes whole chunks from the head (oldest first); a chunk
  is never split. A single chunk larger than the cap is evicted entirely.
- Draining replays chunks in exactly the order they were pushed.

No threading or locking: owned by one connection in the asyncio event loop.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from voxgate._audio_constants import DEFAULT_PREBUFFER_MAX_BYTES

if TYPE_CHECKING:
    from collections.abc import Callable


class PrebufferQueue:
    """FIFO of audio chunks with a byte-capacity cap.

    Args:
        max_bytes: Maximum cumulative size held (default: 96000 bytes,
            about 3s of 16kHz mono PCM16).
    """

    __slots__ = ("_chunks", "_evicted_bytes", "_max_bytes", "_size_bytes")

    def __init__(self, max_bytes: int = DEFAULT_PREBUFFER_MAX_BYTES) -> None:
        if max_bytes <= 0:
            msg = f"max_bytes must be positive, got {max_bytes}"
            raise ValueError(msg)
        self._max_bytes = max_bytes
        self._chunks: deque[bytes] = deque()
        self._size_bytes = 0
        self._evicted_bytes = 0

    @property
    def max_bytes(self) -> int:
        """Byte capacity."""
        return self._max_bytes

    @property
    def size_bytes(self) -> int:
        """Cumulative size of the chunks currently held."""
        return self._size_bytes

    @property
    def evicted_bytes(self) -> int:
        """Total bytes discarded by overflow since creation."""
        return self._evicted_bytes

    def __len__(self) -> int:
        return len(self._chunks)

    def __bool__(self) -> bool:
        return bool(self._chunks)

    def push(self, chunk: bytes) -> int:
        """Append a chunk to the tail, evicting from the head while over cap.

        Returns:
            Number of bytes evicted by this push (0 when nothing was dropped).
        """
        self._chunks.append(chunk)
        self._size_bytes += len(chunk)

        evicted = 0
        while self._size_bytes > self._max_bytes and self._chunks:
            oldest = self._chunks.popleft()
            self._size_bytes -= len(oldest)
            evicted += len(oldest)

        self._evicted_bytes += evicted
        return evicted

    def drain_into(self, write: Callable[[bytes], object]) -> int:
        """Write every held chunk, oldest first, then empty the queue.

        Args:
            write: Callable receiving each chunk (typically the recognizer's
                safe write). Its return value is ignored.

        Returns:
            Number of bytes drained.
        """
        drained = 0
        while self._chunks:
            chunk = self._chunks.popleft()
            self._size_bytes -= len(chunk)
            drained += len(chunk)
            write(chunk)
        return drained

    def clear(self) -> None:
        """Discard everything held."""
        self._chunks.clear()
        self._size_bytes = 0
