"""Speech-recognition backends and the factory that selects one from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from voxgate.backends.interface import BackendSession, SpeechBackend
from voxgate.exceptions import ConfigError

if TYPE_CHECKING:
    from voxgate.config.settings import BackendSettings


def create_backend(settings: BackendSettings) -> SpeechBackend:
    """Build the backend named by ``settings.provider``.

    The Google client library is imported lazily, on the first session open.
    """
    if settings.provider == "mock":
        from voxgate.backends.mock import MockSpeechBackend

        return MockSpeechBackend(window_ms=settings.mock_window_ms)

    if settings.provider == "google":
        from voxgate.backends.google_speech import GoogleSpeechBackend

        return GoogleSpeechBackend(endpoint=settings.google_endpoint)

    msg = f"Unknown speech backend: '{settings.provider}'"
    raise ConfigError(msg)


__all__ = ["BackendSession", "SpeechBackend", "create_backend"]
