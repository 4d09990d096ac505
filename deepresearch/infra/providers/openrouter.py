"""OpenRouter LLM provider using httpx."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator

import httpx

from deepresearch.models.provider import LLMConfig, LLMMessage

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "anthropic/claude-sonnet-4"


def _sse_delta(line: str) -> str | None:
    """Text carried by one `data:` line of an OpenAI-style event stream."""
    if not line.startswith("data: "):
        return None
    try:
        event = json.loads(line[len("data: "):])
        return event["choices"][0]["delta"].get("content") or None
    except (json.JSONDecodeError, KeyError, IndexError, TypeError, AttributeError):
        return None


class OpenRouterProvider:
    """Streams chat completions from OpenRouter's OpenAI-compatible endpoint."""

    def __init__(self, api_key: str = "", model: str = "", base_url: str = "") -> None:
        self._default_model = model or DEFAULT_MODEL
        self._client = httpx.AsyncClient(
            base_url=base_url or OPENROUTER_BASE_URL,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=httpx.Timeout(120.0, connect=10.0),
        )

    def _resolve_model(self, model: str) -> str:
        # OpenRouter ids look like "vendor/model"; anything else is a
        # native id meant for another provider in the fallback chain.
        return model if "/" in model else self._default_model

    async def stream(
        self,
        messages: list[LLMMessage],
        config: LLMConfig | None = None,
    ) -> AsyncIterator[str]:
        config = config or LLMConfig()
        payload: dict = {
            "model": self._resolve_model(config.model),
            "messages": [m.to_dict() for m in messages],
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
            "stream": True,
        }
        if config.stop_sequences:
            payload["stop"] = list(config.stop_sequences)

        logger.debug("Streaming from OpenRouter model: %s", payload["model"])
        async with self._client.stream("POST", "/chat/completions", json=payload) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if line == "data: [DONE]":
                    break
                if text := _sse_delta(line):
                    yield text

    async def close(self) -> None:
        await self._client.aclose()
