from __future__ import annotations

"""Request orchestration: normalize, transcribe, then generate an insight."""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

from .asr import TranscriptionClient
from .audio import AudioNormalizer, build_normalizer
from .audio.types import AudioAsset
from .errors import (
    AudioInsightError,
    ConversionError,
    GenerationError,
    PipelineError,
    RecognitionError,
    ValidationError,
)
from .insight_service import InsightGenerator
from .settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

NORMALIZE_FAILED = "no valid audio could be read from the upload"
TRANSCRIBE_FAILED = "transcription failed"
GENERATE_FAILED = "analysis failed"


class PipelineState(str, Enum):
    RECEIVED = "received"
    NORMALIZED = "normalized"
    TRANSCRIBED = "transcribed"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class StageTimeouts:
    normalize: Optional[float] = 60.0
    transcribe: Optional[float] = 60.0
    generate: Optional[float] = 60.0


@dataclass(slots=True)
class PipelineRun:
    request_id: str
    state: PipelineState = PipelineState.RECEIVED
    history: List[str] = field(default_factory=lambda: [PipelineState.RECEIVED.value])

    def advance(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state.value)
        logger.debug("pipeline.state", extra={"request_id": self.request_id, "state": state.value})


@dataclass(slots=True)
class PipelineResult:
    transcription: str
    insight: str
    stats: Dict[str, Any]
    history: List[str]

    def to_payload(self) -> Dict[str, Any]:
        return {"transcription": self.transcription, "insight": self.insight, "stats": self.stats}


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def validate_request(asset: Optional[AudioAsset], instruction: Optional[str]) -> str:
    """Reject requests without audio or with a blank instruction; return the instruction."""

    if asset is None or not asset.data:
        raise ValidationError("audio file is required")
    if not isinstance(instruction, str) or not instruction.strip():
        raise ValidationError("instruction is required")
    return instruction


class PipelineOrchestrator:
    """Runs the three stages for one request and classifies their failures.

    Stages run strictly in sequence and are never retried. Each stage owns its
    temporary resources, so by the time an error reaches this class nothing is
    left to clean up here.
    """

    def __init__(
        self,
        *,
        normalizer: AudioNormalizer,
        transcriber: TranscriptionClient,
        generator: InsightGenerator,
        timeouts: Optional[StageTimeouts] = None,
        expose_partial_transcription: bool = False,
    ) -> None:
        self._normalizer = normalizer
        self._transcriber = transcriber
        self._generator = generator
        self._timeouts = timeouts or StageTimeouts()
        self._expose_partial = expose_partial_transcription

    @classmethod
    def from_settings(cls, cfg: Settings) -> "PipelineOrchestrator":
        return cls(
            normalizer=build_normalizer(cfg.audio),
            transcriber=TranscriptionClient.from_settings(cfg.asr),
            generator=InsightGenerator.from_settings(cfg),
            timeouts=StageTimeouts(
                normalize=cfg.audio.timeout,
                transcribe=cfg.asr.timeout,
                generate=cfg.llm.timeout,
            ),
            expose_partial_transcription=cfg.pipeline.expose_partial_transcription,
        )

    @property
    def normalizer(self) -> AudioNormalizer:
        return self._normalizer

    @property
    def transcriber(self) -> TranscriptionClient:
        return self._transcriber

    @property
    def generator(self) -> InsightGenerator:
        return self._generator

    async def run(
        self,
        asset: Optional[AudioAsset],
        instruction: Optional[str],
        *,
        request_id: Optional[str] = None,
    ) -> PipelineResult:
        instruction_text = validate_request(asset, instruction)
        run = PipelineRun(request_id=request_id or new_request_id())
        started = time.perf_counter()
        logger.info(
            "pipeline.start",
            extra={"request_id": run.request_id, "input_bytes": len(asset.data), "hint": asset.hint},
        )

        stage_started = time.perf_counter()
        canonical = await self._stage(
            run,
            "normalize",
            ConversionError,
            NORMALIZE_FAILED,
            self._timeouts.normalize,
            lambda: self._normalizer.normalize(asset.data, asset.hint),
        )
        normalize_ms = _elapsed_ms(stage_started)
        run.advance(PipelineState.NORMALIZED)
        audio_duration = canonical.metadata.duration_seconds

        stage_started = time.perf_counter()
        transcription = await self._stage(
            run,
            "transcribe",
            RecognitionError,
            TRANSCRIBE_FAILED,
            self._timeouts.transcribe,
            lambda: self._transcriber.transcribe(canonical),
        )
        transcribe_ms = _elapsed_ms(stage_started)
        run.advance(PipelineState.TRANSCRIBED)

        stage_started = time.perf_counter()
        insight = await self._stage(
            run,
            "generate",
            GenerationError,
            GENERATE_FAILED,
            self._timeouts.generate,
            lambda: self._generator.generate(transcription.text, instruction_text),
            transcription=transcription.text,
        )
        generate_ms = _elapsed_ms(stage_started)
        run.advance(PipelineState.COMPLETED)

        stats = {
            "request_id": run.request_id,
            "normalize": {
                "backend": self._normalizer.name,
                "latency_ms": normalize_ms,
                "duration_seconds": round(audio_duration, 3),
            },
            "transcribe": {
                "provider": transcription.provider,
                "language": self._transcriber.language,
                "latency_ms": transcribe_ms,
                "empty": transcription.is_empty,
            },
            "generate": {
                "backend": insight.backend,
                "latency_ms": generate_ms,
                "fallback": insight.used_fallback,
            },
            "total_latency_ms": _elapsed_ms(started),
        }
        logger.info("pipeline.complete", extra={"request_id": run.request_id, "total_latency_ms": stats["total_latency_ms"]})
        return PipelineResult(
            transcription=transcription.text,
            insight=insight.text,
            stats=stats,
            history=list(run.history),
        )

    async def _stage(
        self,
        run: PipelineRun,
        stage: str,
        error_type: Type[AudioInsightError],
        public_message: str,
        timeout: Optional[float],
        call: Callable[[], Awaitable[T]],
        *,
        transcription: Optional[str] = None,
    ) -> T:
        try:
            async with asyncio.timeout(timeout):
                return await call()
        except TimeoutError as exc:
            cause = error_type(f"{stage} stage timed out", detail=f"exceeded {timeout}s")
            raise self._fail(run, stage, public_message, cause, timed_out=True, transcription=transcription) from exc
        except error_type as exc:
            raise self._fail(run, stage, public_message, exc, transcription=transcription) from exc

    def _fail(
        self,
        run: PipelineRun,
        stage: str,
        public_message: str,
        cause: AudioInsightError,
        *,
        timed_out: bool = False,
        transcription: Optional[str] = None,
    ) -> PipelineError:
        run.advance(PipelineState.FAILED)
        logger.warning(
            "pipeline.stage.failed",
            extra={
                "request_id": run.request_id,
                "stage": stage,
                "error_type": type(cause).__name__,
                "error": str(cause),
                "detail": cause.detail,
                "timed_out": timed_out,
            },
        )
        return PipelineError(
            stage,
            public_message,
            cause=cause,
            timed_out=timed_out,
            transcription=transcription if self._expose_partial else None,
            history=run.history,
        )

    async def close(self) -> None:
        await self._transcriber.close()
        await self._generator.close()


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000.0, 1)


__all__ = [
    "PipelineOrchestrator",
    "PipelineResult",
    "PipelineRun",
    "PipelineState",
    "StageTimeouts",
    "validate_request",
    "new_request_id",
]
