"""Abstract interface for speech-recognition backends.

Every backend (Google Cloud Speech, the local mock, test fakes) implements
this contract to plug into the gateway. The recognizer session manager talks
to backends exclusively through it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from voxgate._types import TranscriptResult
    from voxgate.session.config_state import RecognitionConfig


class BackendSession(ABC):
    """One open streaming recognition session."""

    @abstractmethod
    def write(self, chunk: bytes) -> bool:
        """Hand a PCM16 chunk to the stream without blocking.

        Returns:
            False if the backend signals it cannot accept more data right now.
            The caller logs this and carries on; audio is never re-sent.

        Raises:
            BackendWriteError: If the stream is no longer writable.
        """
        ...

    @abstractmethod
    def results(self) -> AsyncIterator[TranscriptResult]:
        """Yield recognition results in the order the backend produced them.

        The iterator finishes when the stream ends normally and raises
        ``BackendStreamError`` when it fails. Long stretches without results
        (silence) are normal.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Half-close the stream: no more audio, let pending results flush.

        Idempotent.
        """
        ...


class SpeechBackend(ABC):
    """Factory of streaming recognition sessions."""

    name: str = "backend"

    @abstractmethod
    async def open(self, config: RecognitionConfig) -> BackendSession:
        """Open a streaming session for ``config``.

        May take noticeable wall-clock time (cold start).

        Raises:
            BackendOpenError: If the session cannot be opened.
        """
        ...

    async def aclose(self) -> None:  # noqa: B027
        """Release process-wide resources (clients, channels). Optional."""
