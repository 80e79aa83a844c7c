from __future__ import annotations

import logging
from typing import Optional

from ..audio.types import CanonicalAudio
from ..errors import ConfigurationError, RecognitionError
from ..settings import AsrSettings
from .providers.azure import AzureSpeechProvider
from .providers.base import AsrProvider
from .providers.mock import MockAsrProvider
from .providers.whisper import WhisperAsrProvider
from .types import RECOGNITION_FALLBACK_MESSAGE, AsrOptions, RecognitionReason, Transcription

logger = logging.getLogger(__name__)


class TranscriptionClient:
    """Runs recognize-once calls against the configured speech provider."""

    def __init__(self, *, provider: Optional[AsrProvider] = None, language: str = "fr-FR") -> None:
        self._provider = provider or MockAsrProvider()
        self._language = language

    @classmethod
    def from_settings(cls, cfg: AsrSettings) -> "TranscriptionClient":
        provider_name = (cfg.provider or "mock").strip().lower()
        provider: AsrProvider
        if provider_name in {"mock", "fake"}:
            provider = MockAsrProvider()
        elif provider_name in {"azure", "azure-rest"}:
            provider = AzureSpeechProvider(
                subscription_key=cfg.azure_key,
                region=cfg.azure_region,
                endpoint=cfg.azure_endpoint,
                timeout=cfg.timeout,
            )
        elif provider_name in {"whisper", "faster-whisper"}:
            provider = WhisperAsrProvider(
                model=cfg.whisper_model,
                device=cfg.whisper_device,
                compute_type=cfg.whisper_compute_type,
                beam_size=cfg.whisper_beam_size,
                cache_dir=cfg.whisper_cache_dir,
            )
        else:
            raise ConfigurationError(f"unsupported ASR provider: {cfg.provider}")
        return cls(provider=provider, language=cfg.language)

    async def transcribe(self, audio: CanonicalAudio, language: Optional[str] = None) -> Transcription:
        """Recognize the clip and return its trimmed text.

        Silence yields an empty transcription; a no-match result raises
        ``RecognitionError``.
        """

        options = AsrOptions(
            language=language or self._language,
            sample_rate=audio.metadata.sample_rate,
        )
        try:
            outcome = await self._provider.recognize_once(audio=audio, options=options)
        except RecognitionError:
            raise
        except Exception as exc:
            logger.warning(
                "asr.provider.unexpected_error",
                extra={"provider": self._provider.name, "error": repr(exc)},
            )
            raise RecognitionError(RECOGNITION_FALLBACK_MESSAGE, detail=repr(exc)) from exc

        if outcome.reason is RecognitionReason.NO_MATCH:
            raise RecognitionError(
                "no speech could be recognized",
                detail=outcome.detail or RECOGNITION_FALLBACK_MESSAGE,
            )

        text = (outcome.text or "").strip()
        if not text:
            logger.info("asr.empty_transcript", extra={"provider": self._provider.name, "reason": outcome.reason.value})
        return Transcription(
            text=text,
            provider=self._provider.name,
            reason=outcome.reason,
            duration_seconds=outcome.duration_seconds,
        )

    async def close(self) -> None:
        await self._provider.close()

    @property
    def provider(self) -> AsrProvider:
        return self._provider

    @property
    def language(self) -> str:
        return self._language
