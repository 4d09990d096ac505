"""Firecrawl search provider (hosted or self-deployed)."""

from __future__ import annotations

import logging

import httpx

from deepresearch.errors import BackendError
from deepresearch.models.research import WebSearchResult

logger = logging.getLogger(__name__)

FIRECRAWL_BASE_URL = "https://api.firecrawl.dev"


class FirecrawlSearchProvider:
    """Web search provider using Firecrawl's search endpoint.

    Results carry the scraped page as markdown, which is much richer than a
    search snippet.
    """

    def __init__(self, api_key: str, base_url: str = "", timeout: float = 60.0) -> None:
        self._client = httpx.AsyncClient(
            base_url=(base_url or FIRECRAWL_BASE_URL).rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    async def search(
        self, query: str, max_results: int = 5, language: str | None = None
    ) -> list[WebSearchResult]:
        """Execute a search via Firecrawl."""
        payload: dict = {
            "query": query,
            "limit": max_results,
            "scrapeOptions": {"formats": ["markdown"]},
        }
        if language:
            payload["lang"] = language

        logger.debug("Firecrawl search: %s", query)
        try:
            response = await self._client.post("/v1/search", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error("Firecrawl search failed: %s", e)
            raise BackendError(f"Firecrawl search failed: {e}") from e
        except ValueError as e:
            logger.error("Firecrawl returned a non-JSON body: %s", e)
            raise BackendError(f"Firecrawl returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise BackendError(f"Firecrawl returned an unexpected payload: {type(data).__name__}")

        if error := data.get("error"):
            raise BackendError(f"Firecrawl error: {error}")

        results = []
        for item in data.get("data") or []:
            url = item.get("url", "")
            markdown = item.get("markdown", "")
            if url and markdown:
                results.append(WebSearchResult(
                    url=url,
                    title=item.get("title") or None,
                    content=markdown,
                ))

        return results[:max_results]

    async def close(self) -> None:
        await self._client.aclose()
