"""Tavily search provider."""

from __future__ import annotations

import logging

import httpx

from deepresearch.errors import BackendError
from deepresearch.models.research import WebSearchResult

logger = logging.getLogger(__name__)

TAVILY_API_URL = "https://api.tavily.com"


class TavilySearchProvider:
    """Web search provider using the Tavily API."""

    def __init__(
        self,
        api_key: str,
        advanced: bool = False,
        topic: str = "general",  # general, news, finance
        timeout: float = 60.0,
    ) -> None:
        self._api_key = api_key
        self._advanced = advanced
        self._topic = topic
        self._client = httpx.AsyncClient(
            base_url=TAVILY_API_URL,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )

    async def search(
        self, query: str, max_results: int = 5, language: str | None = None
    ) -> list[WebSearchResult]:
        """Execute a search via the Tavily API.

        Tavily has no language parameter; `language` is accepted for protocol
        compatibility only.
        """
        payload = {
            "api_key": self._api_key,
            "query": query,
            "max_results": max_results,
            "search_depth": "advanced" if self._advanced else "basic",
            "topic": self._topic,
            "include_raw_content": False,
            "include_images": False,
        }

        logger.debug("Tavily search: %s", query)
        try:
            response = await self._client.post("/search", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Tavily search failed: %s - %s", e.response.status_code, e.response.text[:200])
            raise BackendError(f"Tavily API error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Tavily search failed: %s", e)
            raise BackendError(f"Tavily search failed: {e}") from e
        except ValueError as e:
            logger.error("Tavily returned a non-JSON body: %s", e)
            raise BackendError(f"Tavily returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise BackendError(f"Tavily returned an unexpected payload: {type(data).__name__}")

        results = []
        for item in data.get("results") or []:
            url = item.get("url", "")
            content = item.get("content", "")
            if url and content:
                results.append(WebSearchResult(
                    url=url,
                    title=item.get("title") or None,
                    content=content,
                ))

        logger.debug("Found %d results for: %s", len(results), query)
        return results[:max_results]

    async def close(self) -> None:
        await self._client.aclose()
