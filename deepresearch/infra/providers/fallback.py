"""Provider chain that moves on to the next provider when one fails."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from deepresearch.models.provider import LLMConfig, LLMMessage

logger = logging.getLogger(__name__)


class FallbackProvider:
    """Streams from the first provider that starts producing text.

    Once a chunk has reached the caller the stream is committed to that
    provider, and a later failure propagates instead of restarting elsewhere.
    """

    def __init__(self, providers: list, names: list[str] | None = None) -> None:
        if not providers:
            raise ValueError("FallbackProvider requires at least one provider")
        self._chain = list(zip(providers, names or [f"provider-{i}" for i in range(len(providers))]))

    async def stream(
        self,
        messages: list[LLMMessage],
        config: LLMConfig | None = None,
    ) -> AsyncIterator[str]:
        errors: list[str] = []
        for provider, name in self._chain:
            committed = False
            try:
                async for chunk in provider.stream(messages, config):
                    committed = True
                    yield chunk
                return
            except Exception as e:
                if committed:
                    raise
                errors.append(f"{name}: {e}")
                logger.warning("Provider '%s' failed before streaming: %s", name, e)

        raise RuntimeError(
            f"All {len(self._chain)} providers failed. Last error: {errors[-1]}"
        )

    async def close(self) -> None:
        for provider, _ in self._chain:
            await provider.close()
