"""Build LLM providers from configuration."""

from __future__ import annotations

import logging

from deepresearch.config import AppConfig, ProviderConfig
from deepresearch.infra.providers.anthropic import AnthropicProvider
from deepresearch.infra.providers.base import LLMProvider
from deepresearch.infra.providers.fallback import FallbackProvider
from deepresearch.infra.providers.openrouter import OpenRouterProvider
from deepresearch.models.provider import ProviderType

logger = logging.getLogger(__name__)


def _build(provider_type: ProviderType, prov: ProviderConfig) -> LLMProvider:
    if provider_type == ProviderType.OPENROUTER:
        return OpenRouterProvider(prov.api_key, prov.default_model, prov.base_url)
    return AnthropicProvider(prov.api_key, prov.default_model)


def get_provider(provider_type: ProviderType | str, config: AppConfig) -> LLMProvider:
    """Build one provider; raises ValueError for an unknown provider name."""
    provider_type = ProviderType(provider_type)
    return _build(provider_type, config.providers.get(provider_type.value) or ProviderConfig())


def get_provider_with_fallback(config: AppConfig, primary: str = "") -> LLMProvider:
    """Chain every provider that has an API key, `primary` first.

    `primary` defaults to `[research] provider`. A single keyed provider is
    returned unwrapped. Raises RuntimeError when no provider has a key.
    """
    primary = primary or config.research.provider
    order = sorted(ProviderType, key=lambda t: t.value != primary)

    keyed = [
        (t, config.providers[t.value])
        for t in order
        if t.value in config.providers and config.providers[t.value].api_key
    ]
    if not keyed:
        raise RuntimeError("No LLM providers configured. Set at least one API key.")
    if len(keyed) == 1:
        return _build(*keyed[0])

    names = [t.value for t, _ in keyed]
    logger.info("Fallback chain: %s", " -> ".join(names))
    return FallbackProvider([_build(t, prov) for t, prov in keyed], names)
