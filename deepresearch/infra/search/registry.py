"""Search provider factory."""

from __future__ import annotations

from deepresearch.config import AppConfig, SearchConfig
from deepresearch.infra.search.base import SearchProvider
from deepresearch.infra.search.brave import BraveSearchProvider
from deepresearch.infra.search.firecrawl import FirecrawlSearchProvider
from deepresearch.infra.search.tavily import TavilySearchProvider


def get_search_provider(name: str, config: AppConfig) -> SearchProvider:
    """Build a search provider by name, configured from AppConfig."""
    search_config = config.search.get(name) or SearchConfig()
    if name == "tavily":
        return TavilySearchProvider(
            api_key=search_config.api_key,
            advanced=search_config.advanced,
            topic=search_config.topic,
        )
    if name == "firecrawl":
        return FirecrawlSearchProvider(
            api_key=search_config.api_key,
            base_url=search_config.base_url,
        )
    if name == "brave":
        return BraveSearchProvider(api_key=search_config.api_key)
    raise ValueError(f"Unknown search provider: {name}")
