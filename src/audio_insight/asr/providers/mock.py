from __future__ import annotations

from ...audio.types import CanonicalAudio
from ..types import AsrOptions, RecognitionOutcome, RecognitionReason
from .base import AsrProvider


class MockAsrProvider(AsrProvider):
    name = "mock"

    def __init__(self, text: str = "transcription simulée") -> None:
        self._text = text

    async def recognize_once(self, *, audio: CanonicalAudio, options: AsrOptions) -> RecognitionOutcome:
        reason = RecognitionReason.RECOGNIZED if self._text else RecognitionReason.SILENCE
        return RecognitionOutcome(
            reason=reason,
            text=self._text,
            duration_seconds=audio.metadata.duration_seconds,
        )
