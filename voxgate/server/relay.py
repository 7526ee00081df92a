"""Transcript relay — backend results to client messages.

One internal type (:class:`TranscriptResult`) and two serializers at the
boundary, because deployed clients parse either shape:

- typed:  ``{"type": "transcript", "final": b, "text": t, "partial": not b}``
- legacy: ``{"final": true, "text": t}`` or ``{"partial": true, "text": t}``

Each non-empty result produces exactly one pair (typed first). Empty results
produce nothing. There is no batching, coalescing or deduplication: the
caller awaits :meth:`TranscriptRelay.relay` for each result in backend order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from voxgate.logging import get_logger
from voxgate.server.models.events import LegacyTranscriptEvent, TranscriptEvent
from voxgate.session.metrics import transcripts_total

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from voxgate._types import TranscriptResult
    from voxgate.server.models.events import ServerEvent

logger = get_logger("server.relay")


def to_typed_event(result: TranscriptResult) -> TranscriptEvent:
    return TranscriptEvent(final=result.is_final, text=result.text, partial=not result.is_final)


def to_legacy_event(result: TranscriptResult) -> LegacyTranscriptEvent:
    if result.is_final:
        return LegacyTranscriptEvent(final=True, text=result.text)
    return LegacyTranscriptEvent(partial=True, text=result.text)


class TranscriptRelay:
    """Forwards backend results to one client connection.

    Args:
        send_event: Coroutine that delivers one event to the client.
    """

    def __init__(
        self,
        send_event: Callable[[ServerEvent], Awaitable[None]],
    ) -> None:
        self._send_event = send_event
        self._relayed = 0
        self._suppressed = 0

    @property
    def relayed(self) -> int:
        """Results forwarded so far."""
        return self._relayed

    @property
    def suppressed(self) -> int:
        """Empty results dropped so far."""
        return self._suppressed

    async def relay(self, result: TranscriptResult) -> bool:
        """Send the typed and legacy forms of ``result``.

        Returns:
            True if the result was forwarded, False if it was empty.
        """
        if not result.text:
            self._suppressed += 1
            logger.debug("empty_transcript_suppressed")
            return False

        await self._send_event(to_typed_event(result))
        await self._send_event(to_legacy_event(result))

        self._relayed += 1
        transcripts_total.labels(kind="final" if result.is_final else "partial").inc()
        logger.debug(
            "transcript_relayed",
            final=result.is_final,
            text_len=len(result.text),
        )
        return True
