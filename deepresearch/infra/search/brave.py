"""Brave Search provider."""

from __future__ import annotations

import logging

import httpx

from deepresearch.errors import BackendError
from deepresearch.models.research import WebSearchResult

logger = logging.getLogger(__name__)

BRAVE_API_URL = "https://api.search.brave.com/res/v1/web/search"
BRAVE_MAX_COUNT = 20


def _snippet(item: dict) -> str:
    """Description plus any extra snippets, one per line."""
    parts = [item.get("description") or "", *(item.get("extra_snippets") or [])]
    return "\n".join(p for p in parts if p)


class BraveSearchProvider:
    """Web search via the Brave Search API.

    Brave returns snippets rather than page bodies, so results are shorter
    than Tavily's or Firecrawl's; `extra_snippets` is requested to compensate.
    """

    def __init__(self, api_key: str, timeout: float = 30.0) -> None:
        self._client = httpx.AsyncClient(
            base_url=BRAVE_API_URL,
            headers={"Accept": "application/json", "X-Subscription-Token": api_key},
            timeout=timeout,
        )

    async def search(
        self, query: str, max_results: int = 5, language: str | None = None
    ) -> list[WebSearchResult]:
        params: dict = {
            "q": query,
            "count": min(max_results, BRAVE_MAX_COUNT),
            "extra_snippets": "true",
        }
        if language:
            # Brave wants a bare language code ("pt", not "pt-BR")
            params["search_lang"] = language.split("-")[0].lower()

        logger.debug("Brave search: %s", query)
        try:
            response = await self._client.get("", params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Brave search failed: %s", e.response.status_code)
            raise BackendError(f"Brave API error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Brave search failed: %s", e)
            raise BackendError(f"Brave search failed: {e}") from e
        except ValueError as e:
            logger.error("Brave returned a non-JSON body: %s", e)
            raise BackendError(f"Brave returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise BackendError(f"Brave returned an unexpected payload: {type(data).__name__}")

        results = [
            WebSearchResult(url=item["url"], title=item.get("title") or None, content=snippet)
            for item in (data.get("web") or {}).get("results") or []
            if item.get("url") and (snippet := _snippet(item))
        ]
        return results[:max_results]

    async def close(self) -> None:
        await self._client.aclose()
