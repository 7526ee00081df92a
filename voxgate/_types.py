"""Core types for Voxgate.

Enums and dataclasses shared by the session layer, the backend adapters and
the WebSocket server. Changes here affect the entire gateway.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ConnectionState(Enum):
    """State of one client connection.

    Valid transitions:
        INIT -> CONFIGURED (config message)
        INIT/CONFIGURED -> BUFFERING (audio before a live recognizer)
        INIT/CONFIGURED/BUFFERING -> STREAMING (recognizer opened)
        INIT/CONFIGURED -> BUFFERING (recognizer open failed)
        STREAMING -> BUFFERING (backend stream ended)
        Any -> CLOSED (stop, disconnect, transport error)
    """

    INIT = "init"
    CONFIGURED = "configured"
    BUFFERING = "buffering"
    STREAMING = "streaming"
    CLOSED = "closed"


class RecognizerState(Enum):
    """Lifecycle of the backend recognition session owned by a connection."""

    IDLE = "idle"
    OPENING = "opening"
    ACTIVE = "active"
    ENDED = "ended"
    CLOSED = "closed"


class StartReason(Enum):
    """What asked the recognizer manager to open a backend session."""

    START = "start"
    AUDIO = "audio"


@dataclass(frozen=True, slots=True)
class TranscriptResult:
    """One recognition hypothesis emitted by a backend.

    ``text`` is the top alternative. Partial results may still be revised;
    final results will not.
    """

    text: str
    is_final: bool
