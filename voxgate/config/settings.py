"""Centralized configuration via pydantic-settings.

All ``VOXGATE_*`` environment variables are read, validated, and exposed here.
The recognition defaults also accept the unprefixed names used by the
Cloud Run deployment (``DEFAULT_LANG``, ``LANG_HINTS``, ``PORT``...).
Logging env vars (``VOXGATE_LOG_FORMAT``, ``VOXGATE_LOG_LEVEL``) are
excluded; they are read by ``voxgate.logging`` at bootstrap.

Usage::

    from voxgate.config.settings import get_settings

    settings = get_settings()
    print(settings.server.port)                  # int, validated
    print(settings.recognition.phrase_hints_list) # list[str]

``.env`` files in the working directory are loaded automatically.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from voxgate._audio_constants import (
    DEFAULT_DRAIN_TIMEOUT_S,
    DEFAULT_PREBUFFER_MAX_BYTES,
    DEFAULT_SAMPLE_RATE,
    MAX_ALTERNATIVE_LANGUAGES,
    MAX_SAMPLE_RATE,
    MIN_SAMPLE_RATE,
)


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class ServerSettings(BaseSettings):
    """HTTP server and WebSocket settings."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    host: str = Field(default="0.0.0.0", validation_alias="VOXGATE_HOST")
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("VOXGATE_PORT", "PORT"),
    )
    ws_max_frame_size_bytes: int = Field(
        default=1_048_576, ge=1024, validation_alias="VOXGATE_MAX_WS_FRAME_SIZE_BYTES"
    )
    ws_idle_timeout_s: float | None = Field(
        default=None, gt=0, validation_alias="VOXGATE_WS_IDLE_TIMEOUT_S"
    )
    ws_check_interval_s: float = Field(
        default=5.0, gt=0, validation_alias="VOXGATE_WS_CHECK_INTERVAL_S"
    )
    cors_origins: str = Field(default="", validation_alias="VOXGATE_CORS_ORIGINS")

    @property
    def cors_origins_list(self) -> list[str]:
        """CORS origins as a list (parsed from comma-separated string)."""
        return _split_csv(self.cors_origins)

    @model_validator(mode="after")
    def _check_lt_idle(self) -> ServerSettings:
        if self.ws_idle_timeout_s is not None and self.ws_check_interval_s > self.ws_idle_timeout_s:
            msg = "ws_check_interval_s must be <= ws_idle_timeout_s"
            raise ValueError(msg)
        return self


class RecognitionSettings(BaseSettings):
    """Process-wide recognition defaults applied to every new connection."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    default_language: str = Field(
        default="en-IN",
        min_length=1,
        validation_alias=AliasChoices("VOXGATE_DEFAULT_LANG", "DEFAULT_LANG"),
    )
    sample_rate_hz: int = Field(
        default=DEFAULT_SAMPLE_RATE,
        ge=MIN_SAMPLE_RATE,
        le=MAX_SAMPLE_RATE,
        validation_alias=AliasChoices("VOXGATE_SAMPLE_RATE_HZ", "SAMPLE_RATE_HZ"),
    )
    model: str | None = Field(
        default=None,
        validation_alias=AliasChoices("VOXGATE_SPEECH_MODEL", "SPEECH_MODEL"),
    )
    phrase_hints: str = Field(
        default="",
        validation_alias=AliasChoices("VOXGATE_LANG_HINTS", "LANG_HINTS"),
    )
    enable_punctuation: bool = Field(
        default=True,
        validation_alias=AliasChoices("VOXGATE_ENABLE_PUNCTUATION", "ENABLE_PUNCTUATION"),
    )
    alternative_languages: str = Field(
        default="",
        validation_alias=AliasChoices("VOXGATE_ALT_LANGS", "ALT_LANGS"),
    )

    @property
    def phrase_hints_list(self) -> list[str]:
        """Default phrase hints (parsed from comma-separated string)."""
        return _split_csv(self.phrase_hints)

    @property
    def alternative_languages_list(self) -> list[str]:
        """Default alternate languages, capped at three entries."""
        return _split_csv(self.alternative_languages)[:MAX_ALTERNATIVE_LANGUAGES]


class SessionSettings(BaseSettings):
    """Per-connection session tuning (prebuffer, teardown)."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    prebuffer_max_bytes: int = Field(
        default=DEFAULT_PREBUFFER_MAX_BYTES,
        ge=2,
        le=16 * 1024 * 1024,
        validation_alias="VOXGATE_PREBUFFER_MAX_BYTES",
    )
    drain_timeout_s: float = Field(
        default=DEFAULT_DRAIN_TIMEOUT_S,
        gt=0,
        le=60,
        validation_alias="VOXGATE_SESSION_DRAIN_TIMEOUT_S",
    )


class BackendSettings(BaseSettings):
    """Speech-recognition backend selection."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    provider: str = Field(default="google", validation_alias="VOXGATE_BACKEND")
    google_endpoint: str | None = Field(default=None, validation_alias="VOXGATE_GOOGLE_ENDPOINT")
    mock_window_ms: int = Field(
        default=500, ge=20, le=10_000, validation_alias="VOXGATE_MOCK_WINDOW_MS"
    )

    @model_validator(mode="after")
    def _validate_provider(self) -> BackendSettings:
        valid = {"google", "mock"}
        normalized = self.provider.lower()
        if normalized not in valid:
            msg = f"provider must be one of {valid}, got {self.provider!r}"
            raise ValueError(msg)
        object.__setattr__(self, "provider", normalized)
        return self


class VoxgateSettings(BaseSettings):
    """Root settings — aggregates all subsystem settings.

    Loads ``.env`` from the current directory when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    server: ServerSettings = Field(default_factory=ServerSettings)
    recognition: RecognitionSettings = Field(default_factory=RecognitionSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)


@lru_cache(maxsize=1)
def get_settings() -> VoxgateSettings:
    """Return the singleton ``VoxgateSettings`` instance.

    The result is cached; subsequent calls return the same object.
    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    return VoxgateSettings()
