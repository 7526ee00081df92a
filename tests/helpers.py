"""Shared test helpers for gateway session tests.

Usage:
    from tests.helpers import (
        EventRecorder,
        FakeBackendSession,
        FakeSpeechBackend,
        make_pcm,
    )
"""

from __future__ import annotations

import asyncio
import struct
from typing import TYPE_CHECKING, Any

from voxgate._types import TranscriptResult
from voxgate.backends.interface import BackendSession, SpeechBackend
from voxgate.exceptions import BackendOpenError, BackendStreamError, BackendWriteError
from voxgate.server.models.events import serialize_event

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from voxgate.server.models.events import ServerEvent
    from voxgate.session.config_state import RecognitionConfig

# 20ms of 16kHz mono PCM16
FRAME_SAMPLES = 320


def make_pcm(n_samples: int = FRAME_SAMPLES, value: int = 0) -> bytes:
    """Generate little-endian PCM16 bytes with ``n_samples`` samples of ``value``."""
    return struct.pack(f"<{n_samples}h", *([value] * n_samples))


def partial(text: str) -> TranscriptResult:
    return TranscriptResult(text=text, is_final=False)


def final(text: str) -> TranscriptResult:
    return TranscriptResult(text=text, is_final=True)


class EventRecorder:
    """Async ``send_event`` stand-in that keeps the wire form of every event."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    async def __call__(self, event: ServerEvent) -> None:
        self.events.append(serialize_event(event))

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [e for e in self.events if e.get("type") == event_type]

    def status_messages(self) -> list[str]:
        return [e["message"] for e in self.of_type("status")]

    def error_messages(self) -> list[str]:
        return [e["message"] for e in self.of_type("error")]


class FakeBackendSession(BackendSession):
    """Scriptable backend session.

    Args:
        script: Results emitted once ``emit_after_bytes`` bytes were written.
        emit_after_bytes: Written bytes needed before the script is emitted.
        end_after_script: End the results stream right after the script.
        fail_with: Raise ``BackendStreamError`` with this reason after the script.
        accept_writes: Value returned by ``write`` (False simulates backpressure).
    """

    def __init__(
        self,
        *,
        script: Sequence[TranscriptResult] = (),
        emit_after_bytes: int = 1,
        end_after_script: bool = False,
        fail_with: str | None = None,
        accept_writes: bool = True,
    ) -> None:
        self.written: list[bytes] = []
        self.close_calls = 0
        self.closed = False
        self._script = list(script)
        self._emit_after_bytes = emit_after_bytes
        self._end_after_script = end_after_script
        self._fail_with = fail_with
        self._accept_writes = accept_writes
        self._script_emitted = False
        self._queue: asyncio.Queue[TranscriptResult | BaseException | None] = asyncio.Queue()

    @property
    def written_bytes(self) -> bytes:
        return b"".join(self.written)

    def write(self, chunk: bytes) -> bool:
        if self.closed:
            raise BackendWriteError("fake stream closed")
        self.written.append(chunk)
        if not self._script_emitted and len(self.written_bytes) >= self._emit_after_bytes:
            self._emit_script()
        return self._accept_writes

    def _emit_script(self) -> None:
        self._script_emitted = True
        for result in self._script:
            self._queue.put_nowait(result)
        if self._fail_with is not None:
            self._queue.put_nowait(BackendStreamError(self._fail_with))
        elif self._end_after_script:
            self._queue.put_nowait(None)

    def push(self, result: TranscriptResult) -> None:
        """Emit one result immediately."""
        self._queue.put_nowait(result)

    def end(self) -> None:
        """Finish the results stream as the service would."""
        self._queue.put_nowait(None)

    def fail(self, reason: str) -> None:
        self._queue.put_nowait(BackendStreamError(reason))

    async def results(self) -> AsyncIterator[TranscriptResult]:
        while True:
            item = await self._queue.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def close(self) -> None:
        self.close_calls += 1
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(None)


class FakeSpeechBackend(SpeechBackend):
    """Backend producing :class:`FakeBackendSession` instances.

    Args:
        fail_open_times: Number of initial ``open`` calls that raise.
        session_kwargs: Passed to every ``FakeBackendSession``.
    """

    name = "fake"

    def __init__(self, *, fail_open_times: int = 0, **session_kwargs: Any) -> None:
        self.fail_open_times = fail_open_times
        self.session_kwargs = session_kwargs
        self.sessions: list[FakeBackendSession] = []
        self.configs: list[RecognitionConfig] = []
        self.open_calls = 0
        self.aclose_calls = 0
        self.open_gate: asyncio.Event | None = None

    @property
    def last_session(self) -> FakeBackendSession:
        return self.sessions[-1]

    async def open(self, config: RecognitionConfig) -> BackendSession:
        self.open_calls += 1
        self.configs.append(config)
        if self.open_gate is not None:
            await self.open_gate.wait()
        if self.fail_open_times > 0:
            self.fail_open_times -= 1
            raise BackendOpenError(self.name, "service unavailable")
        session = FakeBackendSession(**self.session_kwargs)
        self.sessions.append(session)
        return session

    async def aclose(self) -> None:
        self.aclose_calls += 1
