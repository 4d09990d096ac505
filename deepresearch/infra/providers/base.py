"""LLM provider protocol definition."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from deepresearch.models.provider import LLMConfig, LLMMessage


@runtime_checkable
class LLMProvider(Protocol):
    """A chat model that streams its answer as text deltas.

    Every research call streams, so reasoning can be shown while the model
    is still writing. Implementations raise on transport or API errors; the
    generation layer turns those into `BackendError`.
    """

    def stream(
        self,
        messages: list[LLMMessage],
        config: LLMConfig | None = None,
    ) -> AsyncIterator[str]:
        ...

    async def close(self) -> None:
        ...
