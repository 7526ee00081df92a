"""Session config state — negotiated recognition parameters for one connection.

Clients speak two control dialects:

- a flat ``config`` message (``lang``, ``sampleRate``, ``hints``, ``altLangs``,
  ``punctuation``, ``format``);
- a ``start`` message with a nested ``config`` shaped like a cloud speech
  request (``languageCode``, ``sampleRateHertz``, ``enableAutomaticPunctuation``,
  ``speechContexts[].phrases``, ``alternativeLanguageCodes``).

Both are normalized into a single :class:`ConfigUpdate` by
:func:`update_from_config_command` / :func:`update_from_start_config`, and
merged into :class:`SessionConfigState`. Nothing past this module sees the
wire shapes: the recognizer only ever receives an immutable
:class:`RecognitionConfig` snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from voxgate._audio_constants import (
    ACK_PHRASE_HINTS_PREVIEW,
    BACKEND_ENCODING,
    DEFAULT_SAMPLE_RATE,
    MAX_ALTERNATIVE_LANGUAGES,
    MAX_PHRASE_HINTS,
    PCM16_FORMAT,
)
from voxgate.logging import get_logger
from voxgate.server.models.events import EffectiveConfig

if TYPE_CHECKING:
    from voxgate.config.settings import RecognitionSettings
    from voxgate.server.models.events import ConfigCommand, StartRecognitionConfig

logger = get_logger("session.config_state")


@dataclass(frozen=True, slots=True)
class RecognitionDefaults:
    """Process-wide recognition defaults.

    Built once at startup and shared read-only by every connection.
    """

    language_code: str = "en-IN"
    sample_rate_hz: int = DEFAULT_SAMPLE_RATE
    enable_punctuation: bool = True
    phrase_hints: tuple[str, ...] = ()
    alternative_language_codes: tuple[str, ...] = ()
    model: str | None = None

    @classmethod
    def from_settings(cls, settings: RecognitionSettings) -> RecognitionDefaults:
        return cls(
            language_code=settings.default_language,
            sample_rate_hz=settings.sample_rate_hz,
            enable_punctuation=settings.enable_punctuation,
            phrase_hints=tuple(settings.phrase_hints_list[:MAX_PHRASE_HINTS]),
            alternative_language_codes=tuple(
                settings.alternative_languages_list[:MAX_ALTERNATIVE_LANGUAGES]
            ),
            model=settings.model,
        )


@dataclass(frozen=True, slots=True)
class RecognitionConfig:
    """Canonical recognition parameters handed to a backend adapter."""

    language_code: str
    sample_rate_hz: int
    enable_punctuation: bool
    phrase_hints: tuple[str, ...] = ()
    alternative_language_codes: tuple[str, ...] = ()
    model: str | None = None
    encoding: str = BACKEND_ENCODING

    def to_effective(self, *, hints_preview: int | None = ACK_PHRASE_HINTS_PREVIEW) -> EffectiveConfig:
        """Wire form used in acks. Hints are truncated to ``hints_preview`` entries."""
        hints = list(self.phrase_hints)
        if hints_preview is not None:
            hints = hints[:hints_preview]
        return EffectiveConfig(
            lang=self.language_code,
            sample_rate=self.sample_rate_hz,
            format=PCM16_FORMAT,
            punctuation=self.enable_punctuation,
            hints=hints,
            alt_langs=list(self.alternative_language_codes),
        )


@dataclass(frozen=True, slots=True)
class ConfigUpdate:
    """Dialect-independent partial config. ``None`` means "keep current"."""

    language_code: str | None = None
    sample_rate_hz: int | None = None
    enable_punctuation: bool | None = None
    phrase_hints: tuple[str, ...] | None = None
    alternative_language_codes: tuple[str, ...] | None = None

    @property
    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.language_code,
                self.sample_rate_hz,
                self.enable_punctuation,
                self.phrase_hints,
                self.alternative_language_codes,
            )
        )


def update_from_config_command(cmd: ConfigCommand) -> ConfigUpdate:
    """Normalize a flat ``config`` message."""
    if cmd.format is not None and cmd.format.lower() != PCM16_FORMAT:
        logger.warning("unsupported_audio_format_ignored", requested=cmd.format)
    return ConfigUpdate(
        language_code=cmd.lang,
        sample_rate_hz=cmd.sample_rate,
        enable_punctuation=cmd.punctuation,
        phrase_hints=tuple(cmd.hints) if cmd.hints is not None else None,
        alternative_language_codes=tuple(cmd.alt_langs) if cmd.alt_langs is not None else None,
    )


def update_from_start_config(cfg: StartRecognitionConfig) -> ConfigUpdate:
    """Normalize the nested ``start.config`` object.

    Phrases of every speech context are flattened in order.
    """
    hints: tuple[str, ...] | None = None
    if cfg.speech_contexts is not None:
        hints = tuple(phrase for ctx in cfg.speech_contexts for phrase in ctx.phrases)
    return ConfigUpdate(
        language_code=cfg.language_code,
        sample_rate_hz=cfg.sample_rate_hertz,
        enable_punctuation=cfg.enable_automatic_punctuation,
        phrase_hints=hints,
        alternative_language_codes=(
            tuple(cfg.alternative_language_codes)
            if cfg.alternative_language_codes is not None
            else None
        ),
    )


class SessionConfigState:
    """Mutable recognition config of one connection.

    Starts from :class:`RecognitionDefaults`; each :meth:`apply` is a shallow
    merge. :meth:`snapshot` returns an immutable copy, taken by the recognizer
    manager when it opens a backend session.
    """

    def __init__(self, defaults: RecognitionDefaults | None = None) -> None:
        defaults = defaults or RecognitionDefaults()
        self._default_hints = defaults.phrase_hints[:MAX_PHRASE_HINTS]
        self._current = RecognitionConfig(
            language_code=defaults.language_code,
            sample_rate_hz=defaults.sample_rate_hz,
            enable_punctuation=defaults.enable_punctuation,
            phrase_hints=self._default_hints,
            alternative_language_codes=defaults.alternative_language_codes[
                :MAX_ALTERNATIVE_LANGUAGES
            ],
            model=defaults.model,
        )

    @property
    def current(self) -> RecognitionConfig:
        return self._current

    def apply(self, update: ConfigUpdate) -> RecognitionConfig:
        """Merge ``update`` into the current config and return the result.

        An empty hint list falls back to the process default hints.
        """
        changes: dict[str, object] = {}
        if update.language_code is not None:
            changes["language_code"] = update.language_code
        if update.sample_rate_hz is not None:
            changes["sample_rate_hz"] = update.sample_rate_hz
        if update.enable_punctuation is not None:
            changes["enable_punctuation"] = update.enable_punctuation
        if update.phrase_hints == ():
            changes["phrase_hints"] = self._default_hints
        elif update.phrase_hints is not None:
            if len(update.phrase_hints) > MAX_PHRASE_HINTS:
                logger.info(
                    "phrase_hints_truncated",
                    received=len(update.phrase_hints),
                    kept=MAX_PHRASE_HINTS,
                )
            changes["phrase_hints"] = update.phrase_hints[:MAX_PHRASE_HINTS]
        if update.alternative_language_codes is not None:
            changes["alternative_language_codes"] = update.alternative_language_codes[
                :MAX_ALTERNATIVE_LANGUAGES
            ]

        if changes:
            self._current = replace(self._current, **changes)  # type: ignore[arg-type]
        return self._current

    def snapshot(self) -> RecognitionConfig:
        """Frozen copy for a session start.

        ``RecognitionConfig`` is immutable, so later :meth:`apply` calls
        replace ``_current`` without touching snapshots already handed out.
        """
        return self._current
