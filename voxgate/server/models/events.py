"""Pydantic models for the gateway WebSocket protocol.

Defines all server->client events and client->server commands. Wire field
names are camelCase (``sampleRate``, ``altLangs``...) for compatibility with
existing browser clients; Python attributes are snake_case with aliases.

Events are serialized with ``by_alias=True, exclude_none=True`` so optional
fields never show up as ``null`` on the wire.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from voxgate._audio_constants import MAX_SAMPLE_RATE, MIN_SAMPLE_RATE

# ---------------------------------------------------------------------------
# Shared models
# ---------------------------------------------------------------------------


class EffectiveConfig(BaseModel):
    """Recognition config echoed back to the client in acks."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    lang: str
    sample_rate: int = Field(serialization_alias="sampleRate")
    format: str
    punctuation: bool
    hints: list[str]
    alt_langs: list[str] = Field(serialization_alias="altLangs")


# ---------------------------------------------------------------------------
# Server -> Client events
# ---------------------------------------------------------------------------

StatusMessage = Literal[
    "config-ack",
    "start-config-ack",
    "recognizer-started",
    "recognizer-stopped",
    "recognizer-ended",
    "idle-timeout",
]


class HelloEvent(BaseModel):
    """Emitted once when the WebSocket is accepted."""

    model_config = ConfigDict(frozen=True)

    type: Literal["hello"] = "hello"
    msg: str = "ws connected"
    connection_id: str


class StatusEvent(BaseModel):
    """Lifecycle notification (acks, recognizer start/stop/end)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["status"] = "status"
    message: StatusMessage
    lang: str | None = None
    sample_rate: int | None = Field(default=None, serialization_alias="sampleRate")
    cfg: EffectiveConfig | None = None


class TranscriptEvent(BaseModel):
    """Typed transcript envelope. ``partial`` is always ``not final``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["transcript"] = "transcript"
    final: bool
    text: str
    partial: bool


class LegacyTranscriptEvent(BaseModel):
    """Flat transcript envelope kept for older clients.

    Exactly one of ``final`` / ``partial`` is set.
    """

    model_config = ConfigDict(frozen=True)

    final: Literal[True] | None = None
    partial: Literal[True] | None = None
    text: str


class ErrorEvent(BaseModel):
    """Recoverable error reported to the client. The connection stays open."""

    model_config = ConfigDict(frozen=True)

    type: Literal["error"] = "error"
    message: str


# ---------------------------------------------------------------------------
# Client -> Server commands
# ---------------------------------------------------------------------------


class ConfigCommand(BaseModel):
    """Flat ``config`` message. Every field is optional (shallow merge)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    type: Literal["config"] = "config"
    lang: str | None = Field(default=None, min_length=1)
    sample_rate: int | None = Field(
        default=None, alias="sampleRate", ge=MIN_SAMPLE_RATE, le=MAX_SAMPLE_RATE
    )
    format: str | None = None
    hints: list[str] | None = None
    alt_langs: list[str] | None = Field(default=None, alias="altLangs")
    punctuation: bool | None = None


class SpeechContext(BaseModel):
    """Phrase-hint group inside a nested ``start.config``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    phrases: list[str] = Field(default_factory=list)


class StartRecognitionConfig(BaseModel):
    """Nested ``config`` object carried by a ``start`` message."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    language_code: str | None = Field(default=None, alias="languageCode", min_length=1)
    sample_rate_hertz: int | None = Field(
        default=None, alias="sampleRateHertz", ge=MIN_SAMPLE_RATE, le=MAX_SAMPLE_RATE
    )
    enable_automatic_punctuation: bool | None = Field(
        default=None, alias="enableAutomaticPunctuation"
    )
    speech_contexts: list[SpeechContext] | None = Field(default=None, alias="speechContexts")
    alternative_language_codes: list[str] | None = Field(
        default=None, alias="alternativeLanguageCodes"
    )


class StartCommand(BaseModel):
    """Starts recognition, optionally applying a nested config first."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["start"] = "start"
    config: StartRecognitionConfig | None = None


class StopCommand(BaseModel):
    """Stops recognition and closes the connection state machine."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["stop"] = "stop"


# ---------------------------------------------------------------------------
# Union types for dispatch
# ---------------------------------------------------------------------------

ServerEvent = HelloEvent | StatusEvent | TranscriptEvent | LegacyTranscriptEvent | ErrorEvent

ClientCommand = ConfigCommand | StartCommand | StopCommand


def serialize_event(event: ServerEvent) -> dict[str, object]:
    """Return the JSON-ready wire form of a server event."""
    return event.model_dump(mode="json", by_alias=True, exclude_none=True)
