"""Tests for the Google Cloud Speech adapter, using an in-memory speech module."""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace
from typing import Any

import pytest

from voxgate._types import TranscriptResult
from voxgate.backends.google_speech import (
    GoogleSpeechBackend,
    build_streaming_config,
    extract_result,
)
from voxgate.exceptions import BackendOpenError, BackendStreamError, BackendWriteError
from voxgate.session.config_state import RecognitionConfig


class _Message:
    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        for key, value in kwargs.items():
            setattr(self, key, value)


class _RecognitionConfig(_Message):
    class AudioEncoding:
        LINEAR16 = "LINEAR16"


def _response(text: str, *, is_final: bool) -> SimpleNamespace:
    alternative = SimpleNamespace(transcript=text)
    return SimpleNamespace(results=[SimpleNamespace(is_final=is_final, alternatives=[alternative])])


class _FakeSpeechClient:
    """Echoes one partial per audio request and a final when the stream ends."""

    def __init__(
        self,
        *,
        client_options: dict[str, str] | None = None,
        fail_with: str | None = None,
        gate: threading.Event | None = None,
    ) -> None:
        self.client_options = client_options
        self.fail_with = fail_with
        self.gate = gate
        self.audio: list[bytes] = []
        self.config: Any = None
        self.transport = SimpleNamespace(closed=False)
        self.transport.close = lambda: setattr(self.transport, "closed", True)

    def streaming_recognize(self, *, config: Any, requests: Any) -> Any:
        self.config = config
        if self.gate is not None:
            self.gate.wait(timeout=5)
        for request in requests:
            self.audio.append(request.audio_content)
            yield _response(f"{len(self.audio)} chunks", is_final=False)
        if self.fail_with is not None:
            raise RuntimeError(self.fail_with)
        yield SimpleNamespace(results=[])
        yield _response("all done", is_final=True)


def _speech_module(**client_kwargs: Any) -> SimpleNamespace:
    created: list[_FakeSpeechClient] = []

    def speech_client(client_options: dict[str, str] | None = None) -> _FakeSpeechClient:
        client = _FakeSpeechClient(client_options=client_options, **client_kwargs)
        created.append(client)
        return client

    return SimpleNamespace(
        RecognitionConfig=_RecognitionConfig,
        SpeechContext=_Message,
        StreamingRecognitionConfig=_Message,
        StreamingRecognizeRequest=_Message,
        SpeechClient=speech_client,
        created=created,
    )


def _config(**overrides: Any) -> RecognitionConfig:
    values: dict[str, Any] = {
        "language_code": "en-IN",
        "sample_rate_hz": 16000,
        "enable_punctuation": True,
    }
    values.update(overrides)
    return RecognitionConfig(**values)


async def _collect(session: Any) -> list[TranscriptResult]:
    return [result async for result in session.results()]


class TestBuildStreamingConfig:
    def test_minimal_config(self) -> None:
        streaming = build_streaming_config(_speech_module(), _config())

        assert streaming.interim_results is True
        assert streaming.single_utterance is False
        assert streaming.config.kwargs == {
            "encoding": "LINEAR16",
            "sample_rate_hertz": 16000,
            "language_code": "en-IN",
            "enable_automatic_punctuation": True,
        }

    def test_hints_alternates_and_model(self) -> None:
        streaming = build_streaming_config(
            _speech_module(),
            _config(
                phrase_hints=("atta", "dal"),
                alternative_language_codes=("hi-IN",),
                model="latest_long",
            ),
        )
        recognition = streaming.config
        assert recognition.model == "latest_long"
        assert recognition.speech_contexts[0].phrases == ["atta", "dal"]
        assert recognition.alternative_language_codes == ["hi-IN"]


class TestExtractResult:
    def test_first_result_top_alternative(self) -> None:
        response = SimpleNamespace(
            results=[
                SimpleNamespace(
                    is_final=True,
                    alternatives=[
                        SimpleNamespace(transcript="best"),
                        SimpleNamespace(transcript="second"),
                    ],
                ),
                SimpleNamespace(is_final=False, alternatives=[SimpleNamespace(transcript="x")]),
            ]
        )
        assert extract_result(response) == TranscriptResult(text="best", is_final=True)

    def test_no_results(self) -> None:
        assert extract_result(SimpleNamespace(results=[])) is None

    def test_no_alternatives_gives_empty_text(self) -> None:
        response = SimpleNamespace(results=[SimpleNamespace(is_final=False, alternatives=[])])
        assert extract_result(response) == TranscriptResult(text="", is_final=False)


class TestGoogleSpeechBackend:
    async def test_stream_round_trip(self) -> None:
        speech = _speech_module()
        backend = GoogleSpeechBackend(speech=speech)

        session = await backend.open(_config())
        assert session.write(b"ab") is True
        assert session.write(b"cd") is True
        await session.close()
        results = await _collect(session)

        assert results == [
            TranscriptResult(text="1 chunks", is_final=False),
            TranscriptResult(text="2 chunks", is_final=False),
            TranscriptResult(text="all done", is_final=True),
        ]
        client = speech.created[0]
        assert client.audio == [b"ab", b"cd"]
        assert client.config.config.language_code == "en-IN"

    async def test_client_is_reused_across_sessions(self) -> None:
        speech = _speech_module()
        backend = GoogleSpeechBackend(speech=speech)

        for _ in range(2):
            session = await backend.open(_config())
            await session.close()
            await _collect(session)

        assert len(speech.created) == 1

    async def test_endpoint_override(self) -> None:
        speech = _speech_module()
        backend = GoogleSpeechBackend(endpoint="eu-speech.googleapis.com", speech=speech)

        session = await backend.open(_config())
        await session.close()
        await _collect(session)

        assert speech.created[0].client_options == {"api_endpoint": "eu-speech.googleapis.com"}

    async def test_open_failure_is_wrapped(self) -> None:
        def broken_client(client_options: Any = None) -> Any:
            raise RuntimeError("no credentials")

        speech = _speech_module()
        speech.SpeechClient = broken_client
        backend = GoogleSpeechBackend(speech=speech)

        with pytest.raises(BackendOpenError, match="no credentials"):
            await backend.open(_config())

    async def test_stream_error_is_raised_from_results(self) -> None:
        backend = GoogleSpeechBackend(speech=_speech_module(fail_with="deadline exceeded"))

        session = await backend.open(_config())
        session.write(b"ab")
        await session.close()

        received: list[TranscriptResult] = []
        with pytest.raises(BackendStreamError, match="deadline exceeded"):
            async for result in session.results():
                received.append(result)
        assert received == [TranscriptResult(text="1 chunks", is_final=False)]

    async def test_write_after_close_raises(self) -> None:
        backend = GoogleSpeechBackend(speech=_speech_module())
        session = await backend.open(_config())
        await session.close()
        await session.close()

        with pytest.raises(BackendWriteError):
            session.write(b"ab")
        await _collect(session)

    async def test_full_queue_signals_backpressure(self) -> None:
        gate = threading.Event()
        speech = _speech_module(gate=gate)
        backend = GoogleSpeechBackend(speech=speech)
        session = await backend.open(_config())

        accepted = [session.write(b"\x00\x00") for _ in range(501)]
        assert all(accepted[:500])
        assert accepted[500] is False

        await session.close()
        gate.set()
        results = await _collect(session)
        assert results[-1] == TranscriptResult(text="all done", is_final=True)

    async def test_aclose_closes_transport(self) -> None:
        speech = _speech_module()
        backend = GoogleSpeechBackend(speech=speech)
        session = await backend.open(_config())
        await session.close()
        await _collect(session)

        client = speech.created[0]
        await backend.aclose()

        assert client.transport.closed is True

    async def test_live_sessions_do_not_use_the_default_executor(self) -> None:
        loop = asyncio.get_running_loop()
        loop.set_default_executor(ThreadPoolExecutor(max_workers=2))
        speech = _speech_module()
        backend = GoogleSpeechBackend(speech=speech)

        sessions = [
            await asyncio.wait_for(backend.open(_config()), timeout=2) for _ in range(6)
        ]
        assert all(session.is_running for session in sessions)

        for session in sessions:
            session.write(b"ab")
            await session.close()
        for session in sessions:
            results = await asyncio.wait_for(_collect(session), timeout=2)
            assert results[-1] == TranscriptResult(text="all done", is_final=True)
        assert len(speech.created) == 1
