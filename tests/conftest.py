import io
import math
import shutil
import struct
import wave

import pytest

from audio_insight.settings import (
    DEFAULT_FALLBACK_REPLY,
    DEFAULT_SYSTEM_PROMPT,
    AsrSettings,
    AudioSettings,
    LLMSettings,
    OpenAISettings,
    PipelineSettings,
    ServiceSettings,
    Settings,
)


def make_wav(
    seconds: float = 0.5,
    *,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
    frequency: float = 440.0,
) -> bytes:
    """Build a small sine-tone WAV clip in memory."""

    frames = int(seconds * sample_rate)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as writer:
        writer.setnchannels(channels)
        writer.setsampwidth(sample_width)
        writer.setframerate(sample_rate)
        samples = bytearray()
        for i in range(frames):
            value = int(8000 * math.sin(2 * math.pi * frequency * i / sample_rate))
            if sample_width == 2:
                samples += struct.pack("<h", value) * channels
            else:
                samples += bytes([(value >> 8) + 128 & 0xFF]) * channels
        writer.writeframes(bytes(samples))
    return buffer.getvalue()


def build_settings(**overrides) -> Settings:
    audio = AudioSettings(
        max_bytes=overrides.pop("max_bytes", 1024 * 1024),
        normalizer=overrides.pop("normalizer", "ffmpeg"),
        ffmpeg_binary="ffmpeg",
        temp_dir=overrides.pop("temp_dir", None),
        max_duration_seconds=overrides.pop("max_duration_seconds", None),
        timeout=60.0,
        target_sample_rate=16000,
        target_channels=1,
    )
    asr = AsrSettings(
        provider=overrides.pop("asr_provider", "mock"),
        language="fr-FR",
        timeout=60.0,
        azure_key=None,
        azure_region=None,
        azure_endpoint=None,
        whisper_model="base",
        whisper_device="auto",
        whisper_compute_type="int8",
        whisper_beam_size=1,
        whisper_cache_dir=None,
    )
    llm = LLMSettings(
        backend=overrides.pop("insight_backend", "mock"),
        model="gpt-4",
        temperature=0.7,
        max_tokens=256,
        timeout=60.0,
        system_prompt=DEFAULT_SYSTEM_PROMPT,
        fallback_reply=DEFAULT_FALLBACK_REPLY,
    )
    settings = Settings(
        service=ServiceSettings(name="audio-insight-test", log_level="INFO", log_format="%(message)s", port=8100),
        audio=audio,
        asr=asr,
        openai=OpenAISettings(api_key=overrides.pop("openai_api_key", None), organization=None, base_url=None),
        llm=llm,
        pipeline=PipelineSettings(expose_partial_transcription=overrides.pop("expose_partial", False)),
    )
    assert not overrides, f"unknown overrides: {sorted(overrides)}"
    return settings


@pytest.fixture
def wav_bytes() -> bytes:
    return make_wav()


@pytest.fixture
def requires_ffmpeg():
    if shutil.which("ffmpeg") is None:
        pytest.skip("ffmpeg binary not available")


@pytest.fixture
def wav_factory():
    return make_wav


@pytest.fixture
def settings_factory():
    return build_settings
