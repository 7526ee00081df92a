"""Shared fixtures for all tests."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

# Ensure repo root is on sys.path so tests can import the `voxgate` package
# when running pytest from the repository root without an editable install.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from tests.helpers import EventRecorder, FakeSpeechBackend  # noqa: E402
from voxgate.config.settings import get_settings  # noqa: E402
from voxgate.session.config_state import RecognitionDefaults  # noqa: E402

_VOXGATE_ENV_VARS = (
    "PORT",
    "DEFAULT_LANG",
    "SAMPLE_RATE_HZ",
    "SPEECH_MODEL",
    "LANG_HINTS",
    "ENABLE_PUNCTUATION",
    "ALT_LANGS",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep the host environment and the settings cache out of every test."""
    for name in list(os.environ):
        if name.startswith("VOXGATE_") or name in _VOXGATE_ENV_VARS:
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def recorder() -> EventRecorder:
    """Collects events sent to the client."""
    return EventRecorder()


@pytest.fixture
def fake_backend() -> FakeSpeechBackend:
    """Backend that records writes and emits nothing unless scripted."""
    return FakeSpeechBackend()


@pytest.fixture
def defaults() -> RecognitionDefaults:
    """Recognition defaults used by most session tests."""
    return RecognitionDefaults(
        language_code="en-IN",
        sample_rate_hz=16000,
        enable_punctuation=True,
        phrase_hints=("inventory", "invoice"),
        alternative_language_codes=("hi-IN",),
    )
