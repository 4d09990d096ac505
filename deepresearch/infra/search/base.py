"""Search provider protocol definition."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from deepresearch.models.research import WebSearchResult


@runtime_checkable
class SearchProvider(Protocol):
    """Protocol for web search providers.

    Implementations raise `BackendError` on transport or API failures.
    """

    async def search(
        self, query: str, max_results: int = 5, language: str | None = None
    ) -> list[WebSearchResult]:
        """Execute a web search and return at most `max_results` results."""
        ...
