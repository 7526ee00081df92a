"""Google Cloud Speech-to-Text (v1) streaming backend.

``SpeechClient.streaming_recognize`` is a blocking gRPC call that consumes a
request iterator and yields responses. Each session runs the call in its own
daemon thread, and the ``SpeechClient`` is built once, on the first open:

- ``write()`` puts audio requests on a bounded ``queue.Queue`` (never blocks;
  a full queue is reported as backpressure and the chunk is dropped);
- responses are converted to :class:`TranscriptResult` in the stream thread
  and marshalled onto the event loop with ``call_soon_threadsafe``;
- ``close()`` enqueues a sentinel, which ends the request iterator so the
  service flushes its last results and finishes the response stream.

Only the first result of each response is relayed, using its top alternative.
"""

from __future__ import annotations

import asyncio
import contextlib
import queue
import threading
from typing import TYPE_CHECKING, Any

from voxgate._types import TranscriptResult
from voxgate.backends.interface import BackendSession, SpeechBackend
from voxgate.exceptions import BackendOpenError, BackendStreamError, BackendWriteError
from voxgate.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from voxgate.session.config_state import RecognitionConfig

logger = get_logger("backends.google_speech")

# ~10s of 20ms frames waiting for the gRPC stream before writes are refused.
_MAX_PENDING_REQUESTS = 500

_END = object()


def build_streaming_config(speech: Any, config: RecognitionConfig) -> Any:
    """Translate a canonical config into a ``StreamingRecognitionConfig``."""
    kwargs: dict[str, Any] = {
        "encoding": speech.RecognitionConfig.AudioEncoding.LINEAR16,
        "sample_rate_hertz": config.sample_rate_hz,
        "language_code": config.language_code,
        "enable_automatic_punctuation": config.enable_punctuation,
    }
    if config.model:
        kwargs["model"] = config.model
    if config.phrase_hints:
        kwargs["speech_contexts"] = [speech.SpeechContext(phrases=list(config.phrase_hints))]
    if config.alternative_language_codes:
        kwargs["alternative_language_codes"] = list(config.alternative_language_codes)

    return speech.StreamingRecognitionConfig(
        config=speech.RecognitionConfig(**kwargs),
        interim_results=True,
        single_utterance=False,
    )


def extract_result(response: Any) -> TranscriptResult | None:
    """Top alternative of the first result in a streaming response, if any."""
    results = getattr(response, "results", None) or []
    if not results:
        return None
    first = results[0]
    alternatives = getattr(first, "alternatives", None) or []
    text = str(getattr(alternatives[0], "transcript", "") or "") if alternatives else ""
    return TranscriptResult(text=text, is_final=bool(getattr(first, "is_final", False)))


class GoogleSpeechBackend(SpeechBackend):
    """Opens Google Cloud Speech v1 streaming sessions.

    Args:
        endpoint: Optional API endpoint override (regional endpoints).
        client: Pre-built ``SpeechClient`` (tests, custom credentials).
        speech: The ``google.cloud.speech`` module (injectable for tests).
    """

    name = "google"

    def __init__(
        self,
        endpoint: str | None = None,
        client: Any | None = None,
        speech: Any | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._client = client
        self._speech = speech

    def _load(self) -> tuple[Any, Any]:
        if self._speech is None:
            from google.cloud import speech

            self._speech = speech
        if self._client is None:
            client_options = {"api_endpoint": self._endpoint} if self._endpoint else None
            self._client = self._speech.SpeechClient(client_options=client_options)
        return self._speech, self._client

    async def open(self, config: RecognitionConfig) -> BackendSession:
        try:
            speech, client = self._load()
            streaming_config = build_streaming_config(speech, config)
        except Exception as exc:
            raise BackendOpenError(self.name, str(exc)) from exc

        session = GoogleSpeechSession(speech=speech, client=client, streaming_config=streaming_config)
        session.start()
        logger.info(
            "google_stream_opened",
            language=config.language_code,
            sample_rate=config.sample_rate_hz,
            hints=len(config.phrase_hints),
            alt_langs=list(config.alternative_language_codes),
        )
        return session

    async def aclose(self) -> None:
        transport = getattr(self._client, "transport", None)
        if transport is not None:
            transport.close()
        self._client = None


class GoogleSpeechSession(BackendSession):
    """One ``streaming_recognize`` call running in its own daemon thread."""

    def __init__(self, *, speech: Any, client: Any, streaming_config: Any) -> None:
        self._speech = speech
        self._client = client
        self._streaming_config = streaming_config
        self._requests: queue.Queue[object] = queue.Queue(maxsize=_MAX_PENDING_REQUESTS)
        self._events: asyncio.Queue[TranscriptResult | BaseException | None] = asyncio.Queue()
        self._thread: threading.Thread | None = None
        self._closed = False

    def start(self) -> None:
        loop = asyncio.get_running_loop()

        def _emit(item: TranscriptResult | BaseException | None) -> None:
            # The loop may already be gone when the connection was torn down.
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(self._events.put_nowait, item)

        def _run() -> None:
            try:
                responses = self._client.streaming_recognize(
                    config=self._streaming_config,
                    requests=self._request_iter(),
                )
                for response in responses:
                    result = extract_result(response)
                    if result is not None:
                        _emit(result)
            except Exception as exc:
                _emit(exc)
            finally:
                _emit(None)

        self._thread = threading.Thread(target=_run, name="google-stt-stream", daemon=True)
        self._thread.start()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _request_iter(self) -> Iterator[Any]:
        while True:
            item = self._requests.get()
            if item is _END:
                return
            yield self._speech.StreamingRecognizeRequest(audio_content=item)

    def write(self, chunk: bytes) -> bool:
        if self._closed:
            raise BackendWriteError("stream already closed")
        try:
            self._requests.put_nowait(chunk)
        except queue.Full:
            return False
        return True

    async def results(self) -> AsyncIterator[TranscriptResult]:
        while True:
            item = await self._events.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise BackendStreamError(str(item)) from item
            yield item

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # The sentinel must get through even if the queue is full of audio.
        while True:
            try:
                self._requests.put_nowait(_END)
                break
            except queue.Full:
                with contextlib.suppress(queue.Empty):
                    self._requests.get_nowait()
