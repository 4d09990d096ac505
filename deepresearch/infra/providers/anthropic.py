"""Anthropic LLM provider using the anthropic SDK."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import anthropic

from deepresearch.models.provider import LLMConfig, LLMMessage

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicProvider:
    """Streams Messages API completions. System messages become the `system` field."""

    def __init__(self, api_key: str = "", model: str = "") -> None:
        self._client = anthropic.AsyncAnthropic(api_key=api_key or None)
        self._default_model = model or DEFAULT_MODEL

    def _build_kwargs(self, messages: list[LLMMessage], config: LLMConfig) -> dict:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        kwargs: dict = {
            "model": config.model or self._default_model,
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
            "messages": [m.to_dict() for m in messages if m.role != "system"],
        }
        if system:
            kwargs["system"] = system
        if config.stop_sequences:
            kwargs["stop_sequences"] = list(config.stop_sequences)
        return kwargs

    async def stream(
        self,
        messages: list[LLMMessage],
        config: LLMConfig | None = None,
    ) -> AsyncIterator[str]:
        kwargs = self._build_kwargs(messages, config or LLMConfig())
        logger.debug("Streaming from Anthropic model: %s", kwargs["model"])

        async with self._client.messages.stream(**kwargs) as stream:
            async for text in stream.text_stream:
                yield text

    async def close(self) -> None:
        await self._client.close()
