from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class AudioAsset:
    """Raw audio payload supplied by clients."""

    data: bytes
    content_type: str
    filename: Optional[str] = None

    @property
    def hint(self) -> Optional[str]:
        return self.filename or self.content_type or None


@dataclass(slots=True)
class AudioMetadata:
    """Format facts read back from a normalized WAV stream."""

    sample_rate: int
    channels: int
    sample_width: int
    frames: int

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return float(self.frames) / float(self.sample_rate)


@dataclass(slots=True)
class CanonicalAudio:
    """WAV bytes holding mono 16 kHz PCM s16le samples."""

    wav: bytes
    metadata: AudioMetadata
    source_format: Optional[str] = None
