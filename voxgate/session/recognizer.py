"""RecognizerSessionManager — lifecycle of the backend session of one connection.

Owns at most one backend streaming session at a time and guarantees:

- Opening is idempotent. Concurrent triggers (``start`` message, first audio
  chunk) share a single in-flight open; ``recognizer-started`` is emitted
  once per opened session.
- Opening runs in its own task, so audio keeps landing in the prebuffer
  while the backend cold-starts.
- On success the ACTIVE flip and the prebuffer drain happen with no await in
  between: a live frame can never overtake buffered audio.
- The backend session is closed exactly once, whether by ``stop()``, by the
  backend ending on its own, or by the transport going away.

Failures never propagate to the receive loop. They are logged and reported
to the client as ``error`` / ``status`` events.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from voxgate._audio_constants import DEFAULT_DRAIN_TIMEOUT_S
from voxgate._types import RecognizerState, StartReason
from voxgate.logging import get_logger
from voxgate.server.models.events import ErrorEvent, StatusEvent
from voxgate.session.metrics import (
    backend_write_failures_total,
    recognizer_endings_total,
    recognizer_opens_total,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from voxgate._types import TranscriptResult
    from voxgate.backends.interface import BackendSession, SpeechBackend
    from voxgate.server.models.events import ServerEvent
    from voxgate.session.config_state import SessionConfigState
    from voxgate.session.prebuffer import PrebufferQueue

logger = get_logger("session.recognizer")


class RecognizerSessionManager:
    """Opens, feeds and closes the backend session of one connection.

    Args:
        backend: Backend used to open streaming sessions.
        config_state: Connection config; snapshotted at each open.
        prebuffer: Audio held while no session is active.
        send_event: Coroutine delivering an event to the client.
        on_result: Coroutine receiving each backend result (the relay).
        drain_timeout_s: Max seconds ``stop()`` waits for trailing results.
        on_state_change: Optional callback invoked after each state change.
    """

    def __init__(
        self,
        *,
        backend: SpeechBackend,
        config_state: SessionConfigState,
        prebuffer: PrebufferQueue,
        send_event: Callable[[ServerEvent], Awaitable[None]],
        on_result: Callable[[TranscriptResult], Awaitable[object]],
        drain_timeout_s: float = DEFAULT_DRAIN_TIMEOUT_S,
        on_state_change: Callable[[RecognizerState], None] | None = None,
    ) -> None:
        self._backend = backend
        self._config_state = config_state
        self._prebuffer = prebuffer
        self._send_event = send_event
        self._on_result = on_result
        self._drain_timeout_s = drain_timeout_s
        self._on_state_change = on_state_change

        self._state = RecognizerState.IDLE
        self._handle: BackendSession | None = None
        self._open_task: asyncio.Task[bool] | None = None
        self._consumer_task: asyncio.Task[None] | None = None
        self._backend_ended = False
        self._sessions_opened = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> RecognizerState:
        return self._state

    @property
    def is_active(self) -> bool:
        """True when audio can be written straight to the backend."""
        return self._state is RecognizerState.ACTIVE and self._handle is not None

    @property
    def is_opening(self) -> bool:
        return self._open_task is not None and not self._open_task.done()

    @property
    def backend_ended(self) -> bool:
        """True once a session ended on the backend side (until the next open)."""
        return self._backend_ended

    @property
    def sessions_opened(self) -> int:
        return self._sessions_opened

    def _set_state(self, state: RecognizerState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        logger.debug(
            "recognizer_state_changed",
            previous=previous.value,
            state=state.value,
        )
        if self._on_state_change is not None:
            self._on_state_change(state)

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    def start_in_background(self, reason: StartReason) -> asyncio.Task[bool] | None:
        """Schedule a backend open unless one is active or already in flight.

        Returns:
            The (possibly shared) open task, or None when nothing needs to
            happen: a session is active, the manager is closed, or audio
            asked for a restart after the backend ended.
        """
        if self._state in (RecognizerState.ACTIVE, RecognizerState.CLOSED):
            return None
        if reason is StartReason.AUDIO and self._backend_ended:
            return None
        if self._open_task is not None and not self._open_task.done():
            return self._open_task

        self._open_task = asyncio.create_task(self._open(reason))
        return self._open_task

    async def ensure_started(self, reason: StartReason) -> bool:
        """Open a session if needed and wait for the outcome.

        Returns:
            True if a session is active afterwards.
        """
        task = self.start_in_background(reason)
        if task is None:
            return self.is_active
        # Shielded: a cancelled waiter must not abort an open shared with others.
        return await asyncio.shield(task)

    async def _open(self, reason: StartReason) -> bool:
        config = self._config_state.snapshot()
        resume_state = RecognizerState.ENDED if self._backend_ended else RecognizerState.IDLE
        self._set_state(RecognizerState.OPENING)

        logger.info(
            "recognizer_opening",
            reason=reason.value,
            backend=self._backend.name,
            language=config.language_code,
            sample_rate=config.sample_rate_hz,
        )

        try:
            handle = await self._backend.open(config)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            recognizer_opens_total.labels(result="error").inc()
            logger.warning(
                "recognizer_start_failed",
                reason=reason.value,
                error=str(exc),
            )
            if self._state is not RecognizerState.CLOSED:
                self._set_state(resume_state)
            await self._send_event(ErrorEvent(message=f"recognizer-start-failed: {exc}"))
            return False

        if self._state is RecognizerState.CLOSED:
            await self._close_handle(handle)
            return False

        self._handle = handle
        self._backend_ended = False
        self._sessions_opened += 1
        recognizer_opens_total.labels(result="ok").inc()

        # No await between ACTIVE and the end of the drain.
        self._state = RecognizerState.ACTIVE
        drained = self._prebuffer.drain_into(self.write)
        logger.info(
            "recognizer_started",
            reason=reason.value,
            drained_bytes=drained,
        )
        if self._on_state_change is not None:
            self._on_state_change(RecognizerState.ACTIVE)

        await self._send_event(
            StatusEvent(
                message="recognizer-started",
                lang=config.language_code,
                sample_rate=config.sample_rate_hz,
            )
        )

        if self._handle is handle and self._state is RecognizerState.ACTIVE:
            self._consumer_task = asyncio.create_task(self._consume(handle))
        return True

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    def write(self, chunk: bytes) -> bool:
        """Forward a chunk to the active session.

        Backpressure and write errors are logged and counted, never raised.

        Returns:
            True if the backend accepted the chunk.
        """
        handle = self._handle
        if handle is None or self._state is not RecognizerState.ACTIVE:
            return False

        try:
            accepted = handle.write(chunk)
        except Exception as exc:
            backend_write_failures_total.labels(kind="error").inc()
            logger.warning(
                "backend_write_failed",
                size_bytes=len(chunk),
                error=str(exc),
            )
            return False

        if not accepted:
            backend_write_failures_total.labels(kind="backpressure").inc()
            logger.warning(
                "backend_backpressure",
                size_bytes=len(chunk),
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def _consume(self, handle: BackendSession) -> None:
        """Background task: relay backend results until the stream finishes."""
        try:
            async for result in handle.results():
                await self._on_result(result)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._state is RecognizerState.CLOSED:
                logger.debug(
                    "backend_stream_error_after_stop",
                    error=str(exc),
                )
                return
            recognizer_endings_total.labels(reason="error").inc()
            logger.warning(
                "backend_stream_error",
                error=str(exc),
            )
            await self._mark_ended(handle)
            await self._send_event(ErrorEvent(message=str(exc)))
            return

        if self._state is RecognizerState.CLOSED:
            return
        recognizer_endings_total.labels(reason="ended").inc()
        logger.info("recognizer_ended")
        await self._mark_ended(handle)
        await self._send_event(StatusEvent(message="recognizer-ended"))

    async def _mark_ended(self, handle: BackendSession) -> None:
        if self._handle is not handle:
            return
        self._handle = None
        self._backend_ended = True
        self._set_state(RecognizerState.ENDED)
        await self._close_handle(handle)

    async def _close_handle(self, handle: BackendSession) -> None:
        try:
            await handle.close()
        except Exception as exc:
            logger.warning(
                "backend_close_failed",
                error=str(exc),
            )

    # ------------------------------------------------------------------
    # Stop
    # ------------------------------------------------------------------

    async def stop(self, *, notify: bool = True) -> None:
        """Stop recognition. Idempotent.

        Cancels an in-flight open, half-closes the active backend session,
        waits up to ``drain_timeout_s`` for trailing results to be relayed,
        and clears the prebuffer. No audio is written afterwards.

        Args:
            notify: Emit ``status recognizer-stopped`` (False when the client
                is already gone).
        """
        if self._state is RecognizerState.CLOSED:
            return

        had_session = self._handle is not None
        self._state = RecognizerState.CLOSED

        open_task = self._open_task
        self._open_task = None
        if open_task is not None and not open_task.done():
            open_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await open_task

        handle = self._handle
        self._handle = None
        if handle is not None:
            await self._close_handle(handle)

        consumer = self._consumer_task
        self._consumer_task = None
        if consumer is not None and not consumer.done():
            try:
                await asyncio.wait_for(consumer, timeout=self._drain_timeout_s)
            except asyncio.TimeoutError:  # noqa: UP041
                logger.warning(
                    "recognizer_drain_timeout",
                    timeout=self._drain_timeout_s,
                )
                consumer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await consumer

        if had_session:
            recognizer_endings_total.labels(reason="stopped").inc()
        self._prebuffer.clear()

        logger.info(
            "recognizer_stopped",
            had_session=had_session,
        )
        if self._on_state_change is not None:
            self._on_state_change(RecognizerState.CLOSED)
        if notify:
            await self._send_event(StatusEvent(message="recognizer-stopped"))
