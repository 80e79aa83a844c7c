from __future__ import annotations

"""Runtime configuration helpers for audio-insight."""

import os
from dataclasses import dataclass

_BOOL_TRUTHY = {"1", "true", "yes", "on"}

DEFAULT_SYSTEM_PROMPT = "Vous êtes un assistant qui analyse des transcriptions audio."
DEFAULT_FALLBACK_REPLY = "Désolé, je n'ai pas pu générer de réponse."


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _BOOL_TRUTHY


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _env_optional_float(name: str) -> float | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _env_str(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class ServiceSettings:
    name: str
    log_level: str
    log_format: str
    port: int


@dataclass(frozen=True)
class AudioSettings:
    max_bytes: int
    normalizer: str
    ffmpeg_binary: str
    temp_dir: str | None
    max_duration_seconds: float | None
    timeout: float
    target_sample_rate: int
    target_channels: int


@dataclass(frozen=True)
class AsrSettings:
    provider: str
    language: str
    timeout: float
    azure_key: str | None
    azure_region: str | None
    azure_endpoint: str | None
    whisper_model: str
    whisper_device: str
    whisper_compute_type: str
    whisper_beam_size: int
    whisper_cache_dir: str | None


@dataclass(frozen=True)
class OpenAISettings:
    api_key: str | None
    organization: str | None
    base_url: str | None


@dataclass(frozen=True)
class LLMSettings:
    backend: str
    model: str
    temperature: float
    max_tokens: int
    timeout: float
    system_prompt: str
    fallback_reply: str


@dataclass(frozen=True)
class PipelineSettings:
    expose_partial_transcription: bool


@dataclass(frozen=True)
class Settings:
    service: ServiceSettings
    audio: AudioSettings
    asr: AsrSettings
    openai: OpenAISettings
    llm: LLMSettings
    pipeline: PipelineSettings


def load_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""

    service_settings = ServiceSettings(
        name=os.getenv("SERVICE_NAME", "audio-insight"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_format=os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
        port=_env_int("PORT", 8100),
    )

    audio_settings = AudioSettings(
        max_bytes=_env_int("AUDIO_MAX_BYTES", 25 * 1024 * 1024),
        normalizer=os.getenv("NORMALIZER_BACKEND", "ffmpeg"),
        ffmpeg_binary=os.getenv("FFMPEG_BINARY", "ffmpeg"),
        temp_dir=_env_str("NORMALIZER_TEMP_DIR"),
        max_duration_seconds=_env_optional_float("NORMALIZER_MAX_DURATION_SECONDS"),
        timeout=_env_float("NORMALIZER_TIMEOUT_SECONDS", 60.0),
        target_sample_rate=16000,
        target_channels=1,
    )

    asr_settings = AsrSettings(
        provider=os.getenv("ASR_PROVIDER", "mock"),
        language=os.getenv("ASR_LANGUAGE", "fr-FR"),
        timeout=_env_float("ASR_TIMEOUT_SECONDS", 60.0),
        azure_key=_env_str("AZURE_SPEECH_KEY"),
        azure_region=_env_str("AZURE_SPEECH_REGION"),
        azure_endpoint=_env_str("AZURE_SPEECH_ENDPOINT"),
        whisper_model=os.getenv("ASR_WHISPER_MODEL", "base"),
        whisper_device=os.getenv("ASR_WHISPER_DEVICE", "auto"),
        whisper_compute_type=os.getenv("ASR_WHISPER_COMPUTE_TYPE", "int8"),
        whisper_beam_size=_env_int("ASR_WHISPER_BEAM_SIZE", 1),
        whisper_cache_dir=_env_str("ASR_WHISPER_CACHE_DIR"),
    )

    openai_settings = OpenAISettings(
        api_key=_env_str("OPENAI_API_KEY"),
        organization=_env_str("OPENAI_ORG_ID"),
        base_url=_env_str("OPENAI_BASE_URL"),
    )

    llm_settings = LLMSettings(
        backend=os.getenv("INSIGHT_BACKEND", "mock"),
        model=os.getenv("LLM_MODEL", "gpt-4"),
        temperature=_env_float("LLM_TEMPERATURE", 0.7),
        max_tokens=_env_int("LLM_MAX_TOKENS", 1024),
        timeout=_env_float("LLM_TIMEOUT_SECONDS", 60.0),
        system_prompt=os.getenv("LLM_SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT),
        fallback_reply=os.getenv("LLM_FALLBACK_REPLY", DEFAULT_FALLBACK_REPLY),
    )

    pipeline_settings = PipelineSettings(
        expose_partial_transcription=_env_bool("PIPELINE_EXPOSE_PARTIAL_TRANSCRIPTION", False),
    )

    return Settings(
        service=service_settings,
        audio=audio_settings,
        asr=asr_settings,
        openai=openai_settings,
        llm=llm_settings,
        pipeline=pipeline_settings,
    )


__all__ = [
    "Settings",
    "ServiceSettings",
    "AudioSettings",
    "AsrSettings",
    "OpenAISettings",
    "LLMSettings",
    "PipelineSettings",
    "DEFAULT_SYSTEM_PROMPT",
    "DEFAULT_FALLBACK_REPLY",
    "load_settings",
]
