"""ConnectionHandler — per-connection orchestration.

Ties together, for one WebSocket client, the connection state machine, the
session config, the prebuffer, the recognizer session manager and the
transcript relay. Transport-agnostic: it only receives decoded audio chunks
and typed commands, and emits events through ``send_event``. The WebSocket
route owns the socket and the receive loop.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from voxgate._audio_constants import (
    BYTES_PER_SAMPLE_INT16,
    DEFAULT_DRAIN_TIMEOUT_S,
    DEFAULT_PREBUFFER_MAX_BYTES,
)
from voxgate._types import ConnectionState, RecognizerState, StartReason
from voxgate.logging import get_logger
from voxgate.server.models.events import (
    ConfigCommand,
    HelloEvent,
    StartCommand,
    StatusEvent,
    StopCommand,
)
from voxgate.server.relay import TranscriptRelay
from voxgate.session.config_state import (
    SessionConfigState,
    update_from_config_command,
    update_from_start_config,
)
from voxgate.session.metrics import prebuffer_evicted_bytes_total
from voxgate.session.prebuffer import PrebufferQueue
from voxgate.session.recognizer import RecognizerSessionManager
from voxgate.session.state_machine import ConnectionStateMachine

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from voxgate.backends.interface import SpeechBackend
    from voxgate.server.models.events import ClientCommand, ServerEvent
    from voxgate.session.config_state import RecognitionDefaults

logger = get_logger("server.connection")

# Connection state reached when the recognizer enters a given state.
_RECOGNIZER_TO_CONNECTION: dict[RecognizerState, ConnectionState] = {
    RecognizerState.ACTIVE: ConnectionState.STREAMING,
    RecognizerState.IDLE: ConnectionState.BUFFERING,
    RecognizerState.ENDED: ConnectionState.BUFFERING,
    RecognizerState.CLOSED: ConnectionState.CLOSED,
}


class ConnectionHandler:
    """State and behaviour of one gateway client.

    Args:
        connection_id: Identifier sent in the ``hello`` event.
        backend: Shared speech backend.
        defaults: Process-wide recognition defaults.
        send_event: Coroutine delivering an event to the client.
        prebuffer_max_bytes: Prebuffer capacity.
        drain_timeout_s: Max seconds to wait for trailing results on stop.
    """

    def __init__(
        self,
        *,
        connection_id: str,
        backend: SpeechBackend,
        defaults: RecognitionDefaults | None,
        send_event: Callable[[ServerEvent], Awaitable[None]],
        prebuffer_max_bytes: int = DEFAULT_PREBUFFER_MAX_BYTES,
        drain_timeout_s: float = DEFAULT_DRAIN_TIMEOUT_S,
    ) -> None:
        self._connection_id = connection_id
        self._send_event = send_event
        self._machine = ConnectionStateMachine(on_transition=self._log_transition)
        self._config = SessionConfigState(defaults)
        self._prebuffer = PrebufferQueue(prebuffer_max_bytes)
        self._relay = TranscriptRelay(send_event)
        self._manager = RecognizerSessionManager(
            backend=backend,
            config_state=self._config,
            prebuffer=self._prebuffer,
            send_event=send_event,
            on_result=self._relay.relay,
            drain_timeout_s=drain_timeout_s,
            on_state_change=self._on_recognizer_state,
        )
        self._overflow_warned = False
        self.last_activity = time.monotonic()

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def state(self) -> ConnectionState:
        return self._machine.state

    @property
    def is_closed(self) -> bool:
        return self._machine.is_closed

    @property
    def config(self) -> SessionConfigState:
        return self._config

    @property
    def prebuffer(self) -> PrebufferQueue:
        return self._prebuffer

    @property
    def recognizer(self) -> RecognizerSessionManager:
        return self._manager

    # ------------------------------------------------------------------
    # State plumbing
    # ------------------------------------------------------------------

    def _log_transition(self, previous: ConnectionState, target: ConnectionState) -> None:
        logger.debug(
            "connection_state_changed",
            previous=previous.value,
            state=target.value,
        )

    def _advance(self, target: ConnectionState) -> None:
        if self._machine.can_transition(target):
            self._machine.transition(target)

    def _on_recognizer_state(self, state: RecognizerState) -> None:
        if state is RecognizerState.ACTIVE:
            self._overflow_warned = False
        target = _RECOGNIZER_TO_CONNECTION.get(state)
        if target is not None:
            self._advance(target)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def greet(self) -> None:
        """Send the ``hello`` event. Called once, right after accept."""
        await self._send_event(HelloEvent(connection_id=self._connection_id))

    def handle_audio(self, chunk: bytes) -> None:
        """Route one PCM16 chunk to the backend or to the prebuffer."""
        if self._machine.is_closed:
            return
        self.last_activity = time.monotonic()

        if len(chunk) % BYTES_PER_SAMPLE_INT16:
            logger.debug("odd_length_chunk_trimmed", size_bytes=len(chunk))
            chunk = chunk[: len(chunk) - len(chunk) % BYTES_PER_SAMPLE_INT16]
        if not chunk:
            return

        if self._manager.is_active:
            self._manager.write(chunk)
            return

        evicted = self._prebuffer.push(chunk)
        if evicted:
            prebuffer_evicted_bytes_total.inc(evicted)
            # Warn once per buffering period; the counter tracks the rest.
            log = logger.debug if self._overflow_warned else logger.warning
            self._overflow_warned = True
            log(
                "prebuffer_overflow",
                evicted_bytes=evicted,
                evicted_total=self._prebuffer.evicted_bytes,
                max_bytes=self._prebuffer.max_bytes,
            )
        self._advance(ConnectionState.BUFFERING)
        self._manager.start_in_background(StartReason.AUDIO)

    async def handle_command(self, command: ClientCommand) -> None:
        """Apply a validated control message."""
        if self._machine.is_closed:
            logger.debug("command_ignored_closed", command_type=command.type)
            return
        self.last_activity = time.monotonic()

        if isinstance(command, ConfigCommand):
            await self._handle_config(command)
        elif isinstance(command, StartCommand):
            await self._handle_start(command)
        elif isinstance(command, StopCommand):
            await self._handle_stop()

    async def _handle_config(self, command: ConfigCommand) -> None:
        current = self._config.apply(update_from_config_command(command))
        self._advance(ConnectionState.CONFIGURED)
        logger.info(
            "config_applied",
            language=current.language_code,
            sample_rate=current.sample_rate_hz,
            hints=len(current.phrase_hints),
        )
        await self._send_event(StatusEvent(message="config-ack", cfg=current.to_effective()))

    async def _handle_start(self, command: StartCommand) -> None:
        logger.info("start_requested", with_config=command.config is not None)
        if command.config is not None:
            current = self._config.apply(update_from_start_config(command.config))
            await self._send_event(
                StatusEvent(message="start-config-ack", cfg=current.to_effective())
            )
        self._manager.start_in_background(StartReason.START)

    async def _handle_stop(self) -> None:
        logger.info("stop_requested")
        await self._manager.stop()
        self._advance(ConnectionState.CLOSED)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Release the connection after the transport went away. Idempotent."""
        await self._manager.stop(notify=False)
        self._prebuffer.clear()
        self._advance(ConnectionState.CLOSED)
