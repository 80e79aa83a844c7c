from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..errors import PayloadTooLargeError, ValidationError
from .types import AudioAsset


@dataclass(slots=True)
class IngestLimits:
    max_bytes: int


class AudioIngestor:
    """Turns inbound uploads into AudioAsset objects."""

    def __init__(self, *, limits: IngestLimits) -> None:
        self._limits = limits

    async def from_bytes(self, *, data: bytes, content_type: str, filename: Optional[str] = None) -> AudioAsset:
        if not data:
            raise ValidationError("audio file is empty")
        self._enforce_size(len(data))
        return AudioAsset(data=data, content_type=content_type, filename=filename)

    async def from_upload(
        self,
        *,
        file_reader: Callable[[], Awaitable[bytes]],
        content_type: str,
        filename: Optional[str] = None,
    ) -> AudioAsset:
        data = await file_reader()
        return await self.from_bytes(data=data, content_type=content_type, filename=filename)

    def _enforce_size(self, size: int) -> None:
        if size > self._limits.max_bytes:
            raise PayloadTooLargeError(
                "audio payload exceeds configured size limit",
                detail=f"{size} bytes > {self._limits.max_bytes}",
            )
