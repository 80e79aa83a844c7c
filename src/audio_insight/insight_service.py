from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Sequence

from .errors import ConfigurationError, GenerationError
from .llm_client import ChatMessage, MockChatClient, OpenAIChatClient
from .settings import DEFAULT_FALLBACK_REPLY, DEFAULT_SYSTEM_PROMPT, Settings

logger = logging.getLogger(__name__)


class ChatClient(Protocol):
    name: str

    async def complete(self, messages: Sequence[ChatMessage], **kwargs: Any) -> Optional[str]: ...

    async def close(self) -> None: ...


@dataclass(slots=True)
class Insight:
    text: str
    backend: str
    used_fallback: bool = False


class InsightGenerator:
    """Asks the language model to analyse a transcription per the user's instruction."""

    def __init__(
        self,
        *,
        chat_client: Optional[ChatClient] = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        fallback_reply: str = DEFAULT_FALLBACK_REPLY,
    ) -> None:
        self._chat_client: ChatClient = chat_client or MockChatClient()
        self._system_prompt = system_prompt
        self._fallback_reply = fallback_reply or DEFAULT_FALLBACK_REPLY

    @classmethod
    def from_settings(cls, cfg: Settings) -> "InsightGenerator":
        backend = (cfg.llm.backend or "mock").strip().lower()
        chat_client: ChatClient
        if backend in {"mock", "fake"}:
            chat_client = MockChatClient()
        elif backend == "openai":
            chat_client = OpenAIChatClient(cfg.openai, cfg.llm)
        else:
            raise ConfigurationError(f"unsupported insight backend: {cfg.llm.backend}")
        return cls(
            chat_client=chat_client,
            system_prompt=cfg.llm.system_prompt,
            fallback_reply=cfg.llm.fallback_reply,
        )

    def build_messages(self, transcription: str, instruction: str) -> List[ChatMessage]:
        return [
            {"role": "system", "content": self._system_prompt},
            {"role": "user", "content": f"{instruction}\n\nTranscription: {transcription}"},
        ]

    async def generate(self, transcription: str, instruction: str) -> Insight:
        messages = self.build_messages(transcription, instruction)
        try:
            content = await self._chat_client.complete(messages)
        except GenerationError:
            raise
        except Exception as exc:
            logger.warning(
                "insight.backend.unexpected_error",
                extra={"backend": self._chat_client.name, "error": repr(exc)},
            )
            raise GenerationError("language model request failed", detail=repr(exc)) from exc

        if not isinstance(content, str) or not content.strip():
            # Empty content still counts as a successful call.
            logger.warning("insight.fallback", extra={"backend": self._chat_client.name})
            return Insight(text=self._fallback_reply, backend=self._chat_client.name, used_fallback=True)
        return Insight(text=content, backend=self._chat_client.name)

    async def close(self) -> None:
        await self._chat_client.close()

    @property
    def backend_name(self) -> str:
        return self._chat_client.name
