from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

RECOGNITION_FALLBACK_MESSAGE = "La reconnaissance a échoué."


class RecognitionReason(str, Enum):
    RECOGNIZED = "recognized"
    SILENCE = "silence"
    NO_MATCH = "no_match"


@dataclass(slots=True)
class AsrOptions:
    language: str
    sample_rate: Optional[int] = None


@dataclass(slots=True)
class RecognitionOutcome:
    """Tagged result of a single recognize-once call."""

    reason: RecognitionReason
    text: str = ""
    detail: Optional[str] = None
    duration_seconds: Optional[float] = None


@dataclass(slots=True)
class Transcription:
    text: str
    provider: str
    reason: RecognitionReason = RecognitionReason.RECOGNIZED
    duration_seconds: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return not self.text
