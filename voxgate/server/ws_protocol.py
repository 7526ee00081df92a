"""Protocol handler for WebSocket message dispatch.

Receives raw WebSocket messages (dict with 'bytes' or 'text') and returns
a typed result: audio bytes, parsed command, or error event.

Control frames are lenient: text that is not a JSON object, or whose
``type`` is missing or unknown, is logged and ignored. Only a recognized
command with invalid fields is reported back to the client.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import pydantic

from voxgate.logging import get_logger
from voxgate.server.models.events import ConfigCommand, ErrorEvent, StartCommand, StopCommand

if TYPE_CHECKING:
    from collections.abc import Mapping

    from voxgate.server.models.events import ClientCommand

logger = get_logger("server.ws_protocol")

# Mapping of type -> command class
_COMMAND_TYPES: dict[str, type[ClientCommand]] = {
    "config": ConfigCommand,
    "start": StartCommand,
    "stop": StopCommand,
}


@dataclass(frozen=True, slots=True)
class AudioFrameResult:
    """Dispatch result: binary audio frame."""

    data: bytes


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Dispatch result: parsed JSON command."""

    command: ClientCommand


@dataclass(frozen=True, slots=True)
class ErrorResult:
    """Dispatch result: error to report to the client."""

    event: ErrorEvent


# Union type for dispatch result
DispatchResult = AudioFrameResult | CommandResult | ErrorResult


def dispatch_message(message: Mapping[str, Any]) -> DispatchResult | None:
    """Dispatch raw WebSocket message to typed result.

    Args:
        message: Raw dict from ``websocket.receive()`` with 'bytes' or 'text' keys.

    Returns:
        ``AudioFrameResult`` for binary frames, ``CommandResult`` for valid
        commands, ``ErrorResult`` for invalid commands and frames carrying
        neither bytes nor text, or ``None`` for ignored text.
    """
    # Binary frame: audio data
    raw_bytes = message.get("bytes")
    if raw_bytes is not None:
        return AudioFrameResult(data=bytes(raw_bytes))

    # Text frame: JSON command
    raw_text = message.get("text")
    if raw_text is not None:
        return _parse_command(str(raw_text))

    logger.warning("unknown_frame", keys=sorted(message.keys()))
    return ErrorResult(event=ErrorEvent(message="unknown-frame"))


def _parse_command(raw_text: str) -> CommandResult | ErrorResult | None:
    """Parse JSON text into a typed command.

    Flow:
        1. Deserialize JSON (must be an object).
        2. Extract ``type`` field and look up the command class.
        3. Validate against the Pydantic model.
    """
    # 1. Parse JSON
    try:
        data = json.loads(raw_text)
    except ValueError as exc:
        logger.warning("malformed_control_frame", error=str(exc), raw=raw_text[:200])
        return None

    if not isinstance(data, dict):
        logger.warning("malformed_control_frame", json_type=type(data).__name__)
        return None

    # 2. Extract type
    command_type = data.get("type")
    command_class = _COMMAND_TYPES.get(command_type) if isinstance(command_type, str) else None
    if command_class is None:
        logger.info("control_frame_ignored", command_type=command_type)
        return None

    # 3. Validate with Pydantic model
    try:
        command = command_class.model_validate(data)
    except pydantic.ValidationError as exc:
        logger.warning(
            "command_validation_error",
            command_type=command_type,
            error=str(exc),
        )
        return ErrorResult(event=ErrorEvent(message=f"invalid-config: {_summarize(exc)}"))

    return CommandResult(command=command)


def _summarize(exc: pydantic.ValidationError) -> str:
    """Compact ``field: reason`` list of a validation error."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "message"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)
