from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ...audio.types import CanonicalAudio
from ...errors import ConfigurationError, RecognitionError
from ..types import RECOGNITION_FALLBACK_MESSAGE, AsrOptions, RecognitionOutcome, RecognitionReason
from .base import AsrProvider

logger = logging.getLogger(__name__)

# Short-audio REST endpoint: one request, one final result.
_REGION_URL = "https://{region}.stt.speech.microsoft.com/speech/recognition/conversation/cognitiveservices/v1"
_TICKS_PER_SECOND = 10_000_000


def _ticks_to_seconds(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)):
        return float(value) / _TICKS_PER_SECOND
    return None


def _response_detail(resp: httpx.Response) -> str:
    text = (resp.text or "").strip()
    return text[:500] if text else resp.reason_phrase or f"HTTP {resp.status_code}"


class AzureSpeechProvider(AsrProvider):
    """Azure Speech recognize-once over the REST API for short audio."""

    name = "azure"

    def __init__(
        self,
        *,
        subscription_key: Optional[str],
        region: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not subscription_key:
            raise ConfigurationError("AZURE_SPEECH_KEY is required for the azure ASR provider")
        if not endpoint and not region:
            raise ConfigurationError("AZURE_SPEECH_REGION or AZURE_SPEECH_ENDPOINT is required for the azure ASR provider")
        self._key = subscription_key
        self._url = endpoint or _REGION_URL.format(region=region)
        self._timeout = httpx.Timeout(timeout, connect=min(timeout, 10.0))
        self._transport = transport

    @property
    def url(self) -> str:
        return self._url

    async def recognize_once(self, *, audio: CanonicalAudio, options: AsrOptions) -> RecognitionOutcome:
        sample_rate = options.sample_rate or audio.metadata.sample_rate
        headers = {
            "Ocp-Apim-Subscription-Key": self._key,
            "Content-Type": f"audio/wav; codecs=audio/pcm; samplerate={sample_rate}",
            "Accept": "application/json",
        }
        params = {"language": options.language, "format": "simple"}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._url, params=params, headers=headers, content=audio.wav)
        except httpx.TimeoutException as exc:
            logger.warning("asr.azure.timeout", extra={"error": repr(exc)})
            raise RecognitionError("speech backend timed out", detail=repr(exc)) from exc
        except httpx.HTTPError as exc:
            logger.warning("asr.azure.transport_error", extra={"error": repr(exc)})
            raise RecognitionError("speech backend unreachable", detail=repr(exc)) from exc

        if resp.status_code in (401, 403):
            raise RecognitionError("speech backend rejected the credentials", detail=_response_detail(resp))
        if resp.status_code >= 400:
            raise RecognitionError(
                f"speech backend returned HTTP {resp.status_code}",
                detail=_response_detail(resp),
            )

        try:
            payload: Dict[str, Any] = resp.json()
        except ValueError as exc:
            raise RecognitionError("speech backend returned invalid JSON", detail=_response_detail(resp)) from exc

        status = str(payload.get("RecognitionStatus") or "")
        duration = _ticks_to_seconds(payload.get("Duration"))
        logger.info("asr.azure.result", extra={"status": status, "language": options.language})

        if status == "Success":
            return RecognitionOutcome(
                reason=RecognitionReason.RECOGNIZED,
                text=str(payload.get("DisplayText") or ""),
                duration_seconds=duration,
            )
        if status == "InitialSilenceTimeout":
            return RecognitionOutcome(reason=RecognitionReason.SILENCE, detail=status, duration_seconds=duration)
        if status in {"NoMatch", "BabbleTimeout"}:
            return RecognitionOutcome(reason=RecognitionReason.NO_MATCH, detail=status, duration_seconds=duration)

        detail = payload.get("ErrorDetails") or payload.get("error") or RECOGNITION_FALLBACK_MESSAGE
        logger.warning("asr.azure.error", extra={"status": status, "detail": str(detail)})
        raise RecognitionError("speech backend reported an error", detail=str(detail))
