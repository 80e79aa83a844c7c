from __future__ import annotations

"""Chat-completion client wrappers for audio-insight."""

import logging
from collections.abc import Sequence
from typing import Any, Dict, Optional

from openai import APITimeoutError, AsyncOpenAI, OpenAIError

from .errors import ConfigurationError, GenerationError
from .settings import LLMSettings, OpenAISettings

logger = logging.getLogger(__name__)

ChatMessage = Dict[str, Any]


class OpenAIChatClient:
    """Thin wrapper around AsyncOpenAI issuing one non-streaming completion per call."""

    name = "openai"

    def __init__(
        self,
        openai_cfg: OpenAISettings,
        llm_cfg: LLMSettings,
        *,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._openai_cfg = openai_cfg
        self._llm_cfg = llm_cfg
        if client is None:
            if not openai_cfg.api_key:
                raise ConfigurationError("OPENAI_API_KEY is required for the openai insight backend")
            self._client = AsyncOpenAI(
                api_key=openai_cfg.api_key,
                base_url=openai_cfg.base_url,
                organization=openai_cfg.organization,
                timeout=llm_cfg.timeout,
                max_retries=0,
            )
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Optional[str]:
        """Return the first choice's text, or ``None`` when the model sent no content."""

        cfg = self._llm_cfg
        params: Dict[str, Any] = {
            "model": model or cfg.model,
            "messages": list(messages),
            "temperature": temperature if temperature is not None else cfg.temperature,
            "max_tokens": max_tokens if max_tokens is not None else cfg.max_tokens,
        }

        try:
            resp = await self._client.chat.completions.create(**params)
        except APITimeoutError as exc:
            logger.warning("llm.complete.timeout", extra={"model": params["model"], "error": repr(exc)})
            raise GenerationError("language model request timed out", detail=repr(exc)) from exc
        except OpenAIError as exc:
            logger.warning("llm.complete.error", extra={"model": params["model"], "error": repr(exc)})
            raise GenerationError("language model request failed", detail=repr(exc)) from exc

        logger.info(
            "llm.complete",
            extra={
                "model": params["model"],
                "temperature": params["temperature"],
                "max_tokens": params["max_tokens"],
            },
        )
        choices = getattr(resp, "choices", None) or []
        if not choices:
            return None
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None) if message is not None else None
        return content if isinstance(content, str) else None


class MockChatClient:
    """Offline stand-in that echoes a short analysis of the user message."""

    name = "mock"

    def __init__(self, reply: Optional[str] = None) -> None:
        self._reply = reply

    async def close(self) -> None:
        return None

    async def complete(self, messages: Sequence[ChatMessage], **_: Any) -> Optional[str]:
        if self._reply is not None:
            return self._reply
        user_text = ""
        for message in messages:
            if message.get("role") == "user":
                user_text = str(message.get("content") or "")
        words = len(user_text.split())
        return f"Analyse simulée ({words} mots reçus)."


__all__ = ["OpenAIChatClient", "MockChatClient", "ChatMessage"]
