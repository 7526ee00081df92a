"""Mock backend — deterministic transcripts without any cloud dependency.

Used for local development and demos (``VOXGATE_BACKEND=mock``). For every
``window_ms`` of audio received it emits a partial hypothesis, and when the
stream is closed it emits one final result summarizing the audio length.
Silent windows are reported like any other: the mock does not inspect samples.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from voxgate._audio_constants import BYTES_PER_SAMPLE_INT16
from voxgate._types import TranscriptResult
from voxgate.backends.interface import BackendSession, SpeechBackend
from voxgate.exceptions import BackendWriteError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from voxgate.session.config_state import RecognitionConfig


class MockSpeechBackend(SpeechBackend):
    """Opens :class:`MockSpeechSession` instances."""

    name = "mock"

    def __init__(self, window_ms: int = 500) -> None:
        if window_ms <= 0:
            msg = f"window_ms must be positive, got {window_ms}"
            raise ValueError(msg)
        self._window_ms = window_ms

    async def open(self, config: RecognitionConfig) -> BackendSession:
        return MockSpeechSession(
            language_code=config.language_code,
            sample_rate_hz=config.sample_rate_hz,
            window_ms=self._window_ms,
        )


class MockSpeechSession(BackendSession):
    def __init__(self, *, language_code: str, sample_rate_hz: int, window_ms: int) -> None:
        self._language_code = language_code
        self._window_bytes = sample_rate_hz * BYTES_PER_SAMPLE_INT16 * window_ms // 1000
        self._window_ms = window_ms
        self._pending = 0
        self._windows = 0
        self._closed = False
        self._events: asyncio.Queue[TranscriptResult | None] = asyncio.Queue()

    def write(self, chunk: bytes) -> bool:
        if self._closed:
            raise BackendWriteError("mock stream already closed")
        self._pending += len(chunk)
        while self._pending >= self._window_bytes:
            self._pending -= self._window_bytes
            self._windows += 1
            self._events.put_nowait(TranscriptResult(text=self._describe(), is_final=False))
        return True

    def _describe(self) -> str:
        return f"[{self._language_code}] {self._windows * self._window_ms} ms of audio"

    async def results(self) -> AsyncIterator[TranscriptResult]:
        while True:
            item = await self._events.get()
            if item is None:
                return
            yield item

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._windows:
            self._events.put_nowait(TranscriptResult(text=self._describe(), is_final=True))
        self._events.put_nowait(None)
