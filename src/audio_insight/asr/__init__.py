"""Speech recognition for audio-insight."""

from .service import TranscriptionClient
from .types import AsrOptions, RecognitionOutcome, RecognitionReason, Transcription

__all__ = [
    "TranscriptionClient",
    "AsrOptions",
    "RecognitionOutcome",
    "RecognitionReason",
    "Transcription",
]
