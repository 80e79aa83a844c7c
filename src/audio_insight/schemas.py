from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


# -----------------------------
# Response models
# -----------------------------
class NormalizeStats(BaseModel):
    backend: str
    latency_ms: float = Field(ge=0)
    duration_seconds: float = Field(ge=0)


class TranscribeStats(BaseModel):
    provider: str
    language: str
    latency_ms: float = Field(ge=0)
    empty: bool = False


class GenerateStats(BaseModel):
    backend: str
    latency_ms: float = Field(ge=0)
    fallback: bool = False


class ProcessStats(BaseModel):
    request_id: str
    normalize: NormalizeStats
    transcribe: TranscribeStats
    generate: GenerateStats
    total_latency_ms: float = Field(ge=0)


class ProcessAudioResponse(BaseModel):
    transcription: str
    insight: str
    stats: ProcessStats


class ErrorResponse(BaseModel):
    error: str
    stage: Optional[str] = None
    transcription: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str
    version: str
    normalizer: str
    asr_provider: str
    language: str
    insight_backend: str
