"""Speech-recognition provider implementations."""

from .azure import AzureSpeechProvider
from .base import AsrProvider
from .mock import MockAsrProvider
from .whisper import WhisperAsrProvider

__all__ = [
    "AsrProvider",
    "AzureSpeechProvider",
    "MockAsrProvider",
    "WhisperAsrProvider",
]
