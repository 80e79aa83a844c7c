from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import re
import tempfile
from asyncio import subprocess as aio_subprocess
from typing import Optional

from ..errors import ConfigurationError, ConversionError
from .base import AudioNormalizer

logger = logging.getLogger(__name__)

_CONTENT_TYPE_SUFFIXES = {
    "audio/webm": ".webm",
    "video/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/wave": ".wav",
    "audio/mp4": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/aac": ".aac",
    "audio/flac": ".flac",
}
_SAFE_SUFFIX = re.compile(r"^\.[A-Za-z0-9]{1,8}$")
_MAX_DIAGNOSTIC_CHARS = 2000


def suffix_for_hint(hint: Optional[str]) -> str:
    """Pick a file suffix for the temp input so ffmpeg can detect the format from the extension."""

    if not hint:
        return ""
    value = hint.strip().lower()
    base_type = value.split(";", 1)[0].strip()
    if base_type in _CONTENT_TYPE_SUFFIXES:
        return _CONTENT_TYPE_SUFFIXES[base_type]
    suffix = os.path.splitext(os.path.basename(value))[1]
    return suffix if _SAFE_SUFFIX.match(suffix) else ""


def scrub_diagnostic(text: str, workdir: str) -> str:
    """Strip temp locations from decoder output and keep only its tail."""

    cleaned = text.replace(workdir, "<tmp>").strip()
    if len(cleaned) > _MAX_DIAGNOSTIC_CHARS:
        cleaned = cleaned[-_MAX_DIAGNOSTIC_CHARS:]
    return cleaned


class FfmpegNormalizer(AudioNormalizer):
    """Normalizer backed by the ffmpeg binary and a per-call temp directory."""

    name = "ffmpeg"

    def __init__(
        self,
        *,
        binary: str = "ffmpeg",
        temp_dir: Optional[str] = None,
        target_sample_rate: int = 16000,
        target_channels: int = 1,
        max_duration_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(
            target_sample_rate=target_sample_rate,
            target_channels=target_channels,
            max_duration_seconds=max_duration_seconds,
        )
        self._binary = binary
        self._temp_dir = temp_dir

    def build_command(self, input_path: str, output_path: str) -> list[str]:
        return [
            self._binary,
            "-nostdin",
            "-hide_banner",
            "-loglevel",
            "error",
            "-y",
            "-xerror",
            "-err_detect",
            "explode",
            "-i",
            input_path,
            "-vn",
            "-ar",
            str(self._target_sample_rate),
            "-ac",
            str(self._target_channels),
            "-acodec",
            "pcm_s16le",
            "-f",
            "wav",
            output_path,
        ]

    async def _convert(self, data: bytes, hint: Optional[str]) -> bytes:
        # One directory per call; removed on every exit path, cancellation included.
        with tempfile.TemporaryDirectory(prefix="audio-insight-", dir=self._temp_dir) as workdir:
            input_path = os.path.join(workdir, f"input{suffix_for_hint(hint)}")
            output_path = os.path.join(workdir, "output.wav")
            with open(input_path, "wb") as fh:
                fh.write(data)

            returncode, stderr = await self._run(self.build_command(input_path, output_path))
            diagnostic = scrub_diagnostic(stderr.decode("utf-8", errors="ignore"), workdir)

            if returncode != 0:
                logger.warning(
                    "normalizer.ffmpeg.failed",
                    extra={"returncode": returncode, "diagnostic": diagnostic},
                )
                raise ConversionError(
                    "ffmpeg could not decode the audio",
                    detail=diagnostic or f"ffmpeg exited with status {returncode}",
                )
            if not os.path.exists(output_path):
                raise ConversionError(
                    "ffmpeg produced no output",
                    detail=diagnostic or "output file missing",
                )
            with open(output_path, "rb") as fh:
                return fh.read()

    async def _run(self, args: list[str]) -> tuple[int, bytes]:
        try:
            process = await aio_subprocess.create_subprocess_exec(
                *args,
                stdin=aio_subprocess.DEVNULL,
                stdout=aio_subprocess.DEVNULL,
                stderr=aio_subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise ConfigurationError(f"ffmpeg binary is not usable: {self._binary}", detail=str(exc)) from exc

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            # Stage timeout or client disconnect: do not leave the decoder running.
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
            raise
        return process.returncode if process.returncode is not None else -1, stderr or b""
