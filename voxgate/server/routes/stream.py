"""WS /ws and /stream — real-time audio transcription endpoint."""

from __future__ import annotations

import asyncio
import contextlib
import time
import uuid
from typing import TYPE_CHECKING

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from voxgate.logging import bind_connection, get_logger
from voxgate.server.connection import ConnectionHandler
from voxgate.server.models.events import ErrorEvent, StatusEvent, serialize_event
from voxgate.server.ws_protocol import (
    AudioFrameResult,
    CommandResult,
    ErrorResult,
    dispatch_message,
)
from voxgate.session.metrics import active_connections

if TYPE_CHECKING:
    from voxgate.server.models.events import ServerEvent

logger = get_logger("server.stream")

router = APIRouter(tags=["Streaming"])


async def _send_event(websocket: WebSocket, event: ServerEvent) -> None:
    """Send a JSON event to the client if the socket is still connected.

    Args:
        websocket: WebSocket connection.
        event: Server->client event.
    """
    if websocket.client_state == WebSocketState.CONNECTED:
        try:
            await websocket.send_json(serialize_event(event))
        except (WebSocketDisconnect, RuntimeError, OSError):
            logger.debug("send_event_failed", event_model=type(event).__name__)
    else:
        logger.debug("send_event_skipped_not_connected", event_model=type(event).__name__)


async def _idle_monitor(
    websocket: WebSocket,
    handler: ConnectionHandler,
    idle_timeout_s: float,
    check_interval_s: float,
) -> str:
    """Background task closing the socket after ``idle_timeout_s`` without input.

    Returns:
        Close reason ("idle_timeout" or "client_disconnect").
    """
    while True:
        await asyncio.sleep(check_interval_s)

        if websocket.client_state != WebSocketState.CONNECTED:
            return "client_disconnect"

        if time.monotonic() - handler.last_activity > idle_timeout_s:
            logger.info("idle_timeout", timeout_s=idle_timeout_s)
            await handler.close()
            await _send_event(websocket, StatusEvent(message="idle-timeout"))
            with contextlib.suppress(WebSocketDisconnect, RuntimeError, OSError):
                await websocket.close(code=1000, reason="idle-timeout")
            return "idle_timeout"


def _build_handler(websocket: WebSocket, connection_id: str) -> ConnectionHandler:
    state = websocket.app.state

    async def send(event: ServerEvent) -> None:
        await _send_event(websocket, event)

    return ConnectionHandler(
        connection_id=connection_id,
        backend=state.backend,
        defaults=state.recognition_defaults,
        send_event=send,
        prebuffer_max_bytes=state.prebuffer_max_bytes,
        drain_timeout_s=state.drain_timeout_s,
    )


@router.websocket("/ws")
@router.websocket("/stream")
async def stream_endpoint(websocket: WebSocket) -> None:
    """Bidirectional transcription stream.

    Client -> server: binary PCM16 LE mono frames; JSON ``config``,
    ``start`` and ``stop`` control messages.
    Server -> client: ``hello``, ``status``, ``transcript`` (typed and
    legacy shapes) and ``error`` events.
    """
    connection_id = f"conn_{uuid.uuid4().hex[:12]}"
    with bind_connection(connection_id):
        await _serve_connection(websocket, connection_id)


async def _serve_connection(websocket: WebSocket, connection_id: str) -> None:
    state = websocket.app.state
    max_frame_size: int = state.ws_max_frame_size_bytes
    idle_timeout_s: float | None = state.ws_idle_timeout_s

    await websocket.accept()
    active_connections.inc()
    client = websocket.client
    logger.info(
        "connection_accepted",
        path=websocket.url.path,
        client=f"{client.host}:{client.port}" if client else None,
    )

    handler = _build_handler(websocket, connection_id)
    await handler.greet()

    monitor_task: asyncio.Task[str] | None = None
    if idle_timeout_s is not None:
        monitor_task = asyncio.create_task(
            _idle_monitor(websocket, handler, idle_timeout_s, state.ws_check_interval_s)
        )

    # --- Main loop ---
    try:
        while True:
            message = await websocket.receive()

            if message.get("type") == "websocket.disconnect":
                break

            result = dispatch_message(message)
            if result is None:
                continue

            if isinstance(result, ErrorResult):
                await _send_event(websocket, result.event)
                continue

            if isinstance(result, AudioFrameResult):
                if len(result.data) > max_frame_size:
                    logger.warning(
                        "frame_too_large",
                        size_bytes=len(result.data),
                        max_bytes=max_frame_size,
                    )
                    await _send_event(websocket, ErrorEvent(message="frame-too-large"))
                    continue
                handler.handle_audio(result.data)
                continue

            if isinstance(result, CommandResult):
                await handler.handle_command(result.command)

    except WebSocketDisconnect:
        logger.info("client_disconnected")
    except Exception:
        logger.exception("connection_error")
        await _send_event(websocket, ErrorEvent(message="internal-error"))
        with contextlib.suppress(WebSocketDisconnect, RuntimeError, OSError):
            await websocket.close(code=1011, reason="internal-error")
    finally:
        await handler.close()

        reason = "client_disconnect"
        if monitor_task is not None:
            monitor_task.cancel()
            try:
                reason = await monitor_task
            except asyncio.CancelledError:
                pass

        active_connections.dec()
        logger.info("connection_closed", reason=reason, state=handler.state.value)
