from __future__ import annotations

import abc
import io
import logging
import struct
import wave
from typing import Optional

from ..errors import AudioTooLongError, ConversionError
from .types import AudioMetadata, CanonicalAudio

logger = logging.getLogger(__name__)

CANONICAL_SAMPLE_WIDTH = 2  # bytes, PCM s16le

_RIFF_HEADER = struct.Struct("<4sI4s")
_CHUNK_HEADER = struct.Struct("<4sI")
# Streaming writers leave the size unset.
_UNKNOWN_CHUNK_SIZE = 0xFFFFFFFF


def check_riff_integrity(data: bytes) -> None:
    """Raise ``ConversionError`` when a RIFF/WAVE body is shorter than its header declares.

    Non-WAV payloads pass through untouched; the decoder judges those.
    """

    if len(data) < _RIFF_HEADER.size:
        return
    riff, _, form = _RIFF_HEADER.unpack_from(data, 0)
    if riff != b"RIFF" or form != b"WAVE":
        return

    offset = _RIFF_HEADER.size
    while offset + _CHUNK_HEADER.size <= len(data):
        chunk_id, size = _CHUNK_HEADER.unpack_from(data, offset)
        body_start = offset + _CHUNK_HEADER.size
        if chunk_id == b"data":
            available = len(data) - body_start
            if size != _UNKNOWN_CHUNK_SIZE and available < size:
                raise ConversionError(
                    "audio payload is truncated",
                    detail=f"data chunk declares {size} bytes, {available} present",
                )
            return
        offset = body_start + size + (size & 1)
    raise ConversionError("audio payload is truncated", detail="no complete data chunk found")


def read_wav_metadata(wav_bytes: bytes) -> AudioMetadata:
    """Parse a WAV header and return the format facts it declares."""

    try:
        with wave.open(io.BytesIO(wav_bytes), "rb") as reader:
            return AudioMetadata(
                sample_rate=reader.getframerate(),
                channels=reader.getnchannels(),
                sample_width=reader.getsampwidth(),
                frames=reader.getnframes(),
            )
    except (wave.Error, EOFError) as exc:
        raise ConversionError("decoder produced an unreadable WAV stream", detail=str(exc)) from exc


class AudioNormalizer(abc.ABC):
    """Converts arbitrary audio bytes into canonical mono 16 kHz PCM WAV."""

    name: str

    def __init__(
        self,
        *,
        target_sample_rate: int = 16000,
        target_channels: int = 1,
        max_duration_seconds: Optional[float] = None,
    ) -> None:
        self._target_sample_rate = target_sample_rate
        self._target_channels = target_channels
        self._max_duration_seconds = max_duration_seconds

    async def normalize(self, data: bytes, hint: Optional[str] = None) -> CanonicalAudio:
        if not data:
            raise ConversionError("no audio data received", detail="empty input")
        check_riff_integrity(data)
        wav_bytes = await self._convert(data, hint)
        metadata = self._validate(wav_bytes)
        logger.info(
            "normalizer.complete",
            extra={
                "backend": self.name,
                "hint": hint,
                "input_bytes": len(data),
                "output_bytes": len(wav_bytes),
                "duration_seconds": round(metadata.duration_seconds, 3),
            },
        )
        return CanonicalAudio(wav=wav_bytes, metadata=metadata, source_format=hint)

    @abc.abstractmethod
    async def _convert(self, data: bytes, hint: Optional[str]) -> bytes:
        """Decode ``data`` and return canonical WAV bytes."""
        raise NotImplementedError

    def _validate(self, wav_bytes: bytes) -> AudioMetadata:
        check_riff_integrity(wav_bytes)
        metadata = read_wav_metadata(wav_bytes)
        if (
            metadata.sample_rate != self._target_sample_rate
            or metadata.channels != self._target_channels
            or metadata.sample_width != CANONICAL_SAMPLE_WIDTH
        ):
            raise ConversionError(
                "decoder produced audio in an unexpected format",
                detail=(
                    f"rate={metadata.sample_rate} channels={metadata.channels} "
                    f"width={metadata.sample_width}"
                ),
            )
        if metadata.frames <= 0:
            raise ConversionError("decoder produced no audio", detail="0 frames decoded")
        if self._max_duration_seconds and metadata.duration_seconds > self._max_duration_seconds:
            raise AudioTooLongError(
                "audio duration exceeds configured limit",
                detail=f"{metadata.duration_seconds:.1f}s > {self._max_duration_seconds:.1f}s",
            )
        return metadata
