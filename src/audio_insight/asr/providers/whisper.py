from __future__ import annotations

import asyncio
import io
import threading
import wave
from typing import Iterable, Optional

from ...audio.types import CanonicalAudio
from ...errors import ConfigurationError, RecognitionError
from ..types import AsrOptions, RecognitionOutcome, RecognitionReason
from .base import AsrProvider

try:  # pragma: no cover - optional dependency
    from faster_whisper import WhisperModel
except Exception:  # pragma: no cover - guard for environments without faster-whisper
    WhisperModel = None  # type: ignore[assignment]

try:  # pragma: no cover - optional dependency
    import numpy as np
except Exception:  # pragma: no cover - guard numpy import
    np = None  # type: ignore[assignment]


def whisper_language(tag: Optional[str]) -> Optional[str]:
    """Whisper expects bare ISO-639-1 codes: ``fr-FR`` becomes ``fr``."""

    if not tag:
        return None
    primary = tag.replace("_", "-").split("-", 1)[0].strip().lower()
    return primary or None


class WhisperAsrProvider(AsrProvider):
    """ASR provider backed by a local faster-whisper model."""

    name = "whisper"

    def __init__(
        self,
        *,
        model: str = "base",
        device: str = "auto",
        compute_type: str = "int8",
        beam_size: int = 1,
        cache_dir: Optional[str] = None,
    ) -> None:
        if WhisperModel is None:
            raise ConfigurationError("faster-whisper must be installed to use WhisperAsrProvider")
        if np is None:
            raise ConfigurationError("numpy must be installed to use WhisperAsrProvider")

        self._model_name = model
        self._device = device
        self._compute_type = compute_type
        self._beam_size = max(1, beam_size)
        self._cache_dir = cache_dir

        self._model: WhisperModel | None = None
        self._model_lock = threading.Lock()

    async def recognize_once(self, *, audio: CanonicalAudio, options: AsrOptions) -> RecognitionOutcome:
        try:
            segments, info = await asyncio.to_thread(
                self._run_transcribe,
                audio.wav,
                whisper_language(options.language),
            )
        except RecognitionError:
            raise
        except Exception as exc:
            raise RecognitionError("local whisper transcription failed", detail=repr(exc)) from exc

        text_parts = [(getattr(segment, "text", "") or "").strip() for segment in segments]
        text = " ".join(part for part in text_parts if part).strip()
        duration = getattr(info, "duration", None)
        if not text:
            return RecognitionOutcome(reason=RecognitionReason.SILENCE, duration_seconds=duration)
        return RecognitionOutcome(reason=RecognitionReason.RECOGNIZED, text=text, duration_seconds=duration)

    def _run_transcribe(self, wav_bytes: bytes, language: Optional[str]) -> tuple[Iterable[object], object]:
        model = self._ensure_model()
        audio_array = self._wav_to_float(wav_bytes)
        segments, info = model.transcribe(
            audio_array,
            language=language,
            beam_size=self._beam_size,
            temperature=0.0,
            without_timestamps=True,
            task="transcribe",
        )
        return list(segments), info

    def _ensure_model(self) -> WhisperModel:
        if self._model is None:
            with self._model_lock:
                if self._model is None:
                    self._model = WhisperModel(
                        self._model_name,
                        device=self._device,
                        compute_type=self._compute_type,
                        download_root=self._cache_dir,
                    )
        return self._model

    def _wav_to_float(self, wav_bytes: bytes) -> "np.ndarray":
        with wave.open(io.BytesIO(wav_bytes), "rb") as reader:
            frames = reader.readframes(reader.getnframes())
        if not frames:
            return np.zeros(0, dtype=np.float32)
        pcm_array = np.frombuffer(frames, dtype="<i2").astype(np.float32)
        # Normalize 16-bit PCM to [-1, 1]
        pcm_array /= 32768.0
        return pcm_array
