from __future__ import annotations

from ..errors import ConfigurationError
from ..settings import AudioSettings
from .base import AudioNormalizer
from .ffmpeg_normalizer import FfmpegNormalizer
from .soundfile_normalizer import SoundfileNormalizer


def build_normalizer(cfg: AudioSettings) -> AudioNormalizer:
    """Select the normalizer backend named in the audio settings."""

    backend = (cfg.normalizer or "ffmpeg").strip().lower()
    if backend in {"ffmpeg", "process"}:
        return FfmpegNormalizer(
            binary=cfg.ffmpeg_binary,
            temp_dir=cfg.temp_dir,
            target_sample_rate=cfg.target_sample_rate,
            target_channels=cfg.target_channels,
            max_duration_seconds=cfg.max_duration_seconds,
        )
    if backend in {"soundfile", "in-process", "inprocess"}:
        return SoundfileNormalizer(
            target_sample_rate=cfg.target_sample_rate,
            target_channels=cfg.target_channels,
            max_duration_seconds=cfg.max_duration_seconds,
        )
    raise ConfigurationError(f"unsupported normalizer backend: {cfg.normalizer}")
