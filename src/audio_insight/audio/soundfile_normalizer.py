from __future__ import annotations

import asyncio
import io
from typing import Optional, Tuple

try:  # pragma: no cover - optional dependency guard
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore[assignment]

try:  # pragma: no cover - optional dependency guard
    import soundfile as sf
except Exception:  # pragma: no cover
    sf = None  # type: ignore[assignment]

try:  # pragma: no cover - optional dependency guard
    import resampy
except Exception:  # pragma: no cover
    resampy = None  # type: ignore[assignment]

from ..errors import ConfigurationError, ConversionError
from .base import AudioNormalizer


class SoundfileNormalizer(AudioNormalizer):
    """In-process normalizer: libsndfile decode, numpy mix-down, resampy resample.

    Nothing touches the filesystem. Only formats libsndfile understands are
    accepted (wav, flac, ogg/vorbis, and mp3 on recent builds).
    """

    name = "soundfile"

    def __init__(
        self,
        *,
        target_sample_rate: int = 16000,
        target_channels: int = 1,
        max_duration_seconds: Optional[float] = None,
    ) -> None:
        if np is None or sf is None or resampy is None:
            raise ConfigurationError("numpy, soundfile and resampy must be installed to use SoundfileNormalizer")
        super().__init__(
            target_sample_rate=target_sample_rate,
            target_channels=target_channels,
            max_duration_seconds=max_duration_seconds,
        )

    async def _convert(self, data: bytes, hint: Optional[str]) -> bytes:
        return await asyncio.to_thread(self._convert_sync, data)

    def _convert_sync(self, data: bytes) -> bytes:
        pcm, sample_rate = self._decode(data)
        if pcm.shape[1] != self._target_channels:
            pcm = self._mix_down(pcm)
        if sample_rate != self._target_sample_rate:
            pcm = self._resample(pcm, sample_rate, self._target_sample_rate)
        pcm_int16 = np.ascontiguousarray((pcm * 32768.0).clip(-32768, 32767).astype("<i2"))

        buffer = io.BytesIO()
        sf.write(buffer, pcm_int16, self._target_sample_rate, subtype="PCM_16", format="WAV")
        return buffer.getvalue()

    def _decode(self, data: bytes) -> Tuple["np.ndarray", int]:
        try:
            audio_array, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
        except (RuntimeError, ValueError, TypeError) as exc:
            raise ConversionError("unsupported audio encoding", detail=str(exc)) from exc
        if audio_array.size == 0:
            raise ConversionError("decoder produced no audio", detail="0 frames decoded")
        return audio_array, int(sample_rate)

    def _mix_down(self, pcm: "np.ndarray") -> "np.ndarray":
        return np.mean(pcm, axis=1, keepdims=True, dtype=np.float32).astype(np.float32)

    def _resample(self, pcm: "np.ndarray", source_rate: int, target_rate: int) -> "np.ndarray":
        resampled = resampy.resample(pcm[:, 0], source_rate, target_rate)
        return resampled[:, None].astype(np.float32)
