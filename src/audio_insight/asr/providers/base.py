from __future__ import annotations

import abc

from ...audio.types import CanonicalAudio
from ..types import AsrOptions, RecognitionOutcome


class AsrProvider(abc.ABC):
    """Interface for speech-recognition backends."""

    name: str

    @abc.abstractmethod
    async def recognize_once(self, *, audio: CanonicalAudio, options: AsrOptions) -> RecognitionOutcome:
        """Submit the whole clip and wait for exactly one recognition result.

        Implementations raise ``RecognitionError`` for transport, auth and
        backend errors and report no-match or silence through the outcome.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release long-lived resources held by the provider."""
        return None
