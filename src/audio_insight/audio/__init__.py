"""Audio ingestion and normalization."""

from .base import AudioNormalizer, check_riff_integrity, read_wav_metadata
from .factory import build_normalizer
from .ffmpeg_normalizer import FfmpegNormalizer
from .ingest import AudioIngestor, IngestLimits
from .soundfile_normalizer import SoundfileNormalizer
from .types import AudioAsset, AudioMetadata, CanonicalAudio

__all__ = [
    "AudioIngestor",
    "IngestLimits",
    "AudioNormalizer",
    "FfmpegNormalizer",
    "SoundfileNormalizer",
    "build_normalizer",
    "read_wav_metadata",
    "check_riff_integrity",
    "AudioAsset",
    "AudioMetadata",
    "CanonicalAudio",
]
