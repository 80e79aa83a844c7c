"""Error taxonomy shared by the pipeline stages and the HTTP layer."""

from __future__ import annotations

from typing import List, Optional


class AudioInsightError(Exception):
    """Base class for every error raised by audio-insight components.

    ``detail`` holds the diagnostic text meant for server-side logs. It must
    never be forwarded verbatim to API clients.
    """

    def __init__(self, message: str, *, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.detail = detail


class ConfigurationError(AudioInsightError):
    """Raised at startup when a provider or backend cannot be built."""


class ValidationError(AudioInsightError):
    """The inbound request is missing audio or a usable instruction."""


class PayloadTooLargeError(ValidationError):
    """The uploaded audio exceeds the configured byte limit."""


class ConversionError(AudioInsightError):
    """Input audio could not be decoded into canonical PCM WAV."""


class AudioTooLongError(ConversionError):
    """Decoded audio is longer than the configured maximum duration."""


class RecognitionError(AudioInsightError):
    """The speech backend could not produce a transcript."""


class GenerationError(AudioInsightError):
    """The language-model backend failed at transport or auth level."""


class PipelineError(AudioInsightError):
    """Terminal failure of one orchestration run.

    Wraps the stage error in ``cause`` and carries the generic message that is
    safe to show to callers.
    """

    def __init__(
        self,
        stage: str,
        public_message: str,
        *,
        cause: AudioInsightError,
        timed_out: bool = False,
        transcription: Optional[str] = None,
        history: Optional[List[str]] = None,
    ) -> None:
        super().__init__(public_message, detail=cause.detail or str(cause))
        self.stage = stage
        self.public_message = public_message
        self.cause = cause
        self.timed_out = timed_out
        self.transcription = transcription
        self.history = list(history or [])


__all__ = [
    "AudioInsightError",
    "ConfigurationError",
    "ValidationError",
    "PayloadTooLargeError",
    "ConversionError",
    "AudioTooLongError",
    "RecognitionError",
    "GenerationError",
    "PipelineError",
]
