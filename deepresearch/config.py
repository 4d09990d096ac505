"""Configuration loading: TOML file + environment variable overlay."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[no-redef]

from deepresearch.models.research import DeepResearchConfig

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "deepresearch"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.toml"


DEFAULT_CONFIG_TOML = """\
[mongodb]
uri = "mongodb://localhost:27017"
database = "deepresearch"

[providers.anthropic]
api_key_env = "ANTHROPIC_API_KEY"
default_model = "claude-sonnet-4-20250514"

[providers.openrouter]
api_key_env = "OPENROUTER_API_KEY"
default_model = "anthropic/claude-sonnet-4"

[search.tavily]
api_key_env = "TAVILY_API_KEY"
advanced = false
topic = "general"

[search.firecrawl]
api_key_env = "FIRECRAWL_API_KEY"
base_url = "https://api.firecrawl.dev"

[search.brave]
api_key_env = "BRAVE_SEARCH_API_KEY"

[research]
provider = "anthropic"
model = ""
search = "tavily"
breadth = 3
max_depth = 2
language = "en"
search_language = ""
max_search_results = 5
concurrency_limit = 2
call_timeout = 120.0

[history]
enabled = true
recent_limit = 10
"""


@dataclass
class MongoConfig:
    uri: str = "mongodb://localhost:27017"
    database: str = "deepresearch"


@dataclass
class ProviderConfig:
    api_key_env: str = ""
    api_key: str = ""
    default_model: str = ""
    base_url: str = ""


@dataclass
class SearchConfig:
    api_key_env: str = ""
    api_key: str = ""
    base_url: str = ""
    advanced: bool = False
    topic: str = "general"


@dataclass
class ResearchDefaults:
    provider: str = "anthropic"
    model: str = ""
    search: str = "tavily"
    breadth: int = 3
    max_depth: int = 2
    language: str = "en"
    search_language: str = ""
    max_search_results: int = 5
    concurrency_limit: int = 2
    call_timeout: float | None = 120.0

    def to_research_config(self, **overrides) -> DeepResearchConfig:
        """Build an engine config, letting non-None overrides win."""
        values = {
            "breadth": self.breadth,
            "max_depth": self.max_depth,
            "language": self.language,
            "search_language": self.search_language or None,
            "max_search_results": self.max_search_results,
            "concurrency_limit": self.concurrency_limit,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return DeepResearchConfig(**values)


@dataclass
class HistoryConfig:
    enabled: bool = True
    recent_limit: int = 10


@dataclass
class AppConfig:
    mongodb: MongoConfig = field(default_factory=MongoConfig)
    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    search: dict[str, SearchConfig] = field(default_factory=dict)
    research: ResearchDefaults = field(default_factory=ResearchDefaults)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    config_path: Path = DEFAULT_CONFIG_PATH


def _env_overlay(config: AppConfig) -> None:
    """Override config values with environment variables where applicable."""
    if uri := os.environ.get("MONGODB_URI"):
        config.mongodb.uri = uri
    if db := os.environ.get("DEEPRESEARCH_DB"):
        config.mongodb.database = db

    # Resolve API keys from env vars
    for prov in config.providers.values():
        if prov.api_key_env:
            prov.api_key = os.environ.get(prov.api_key_env, "")

    for search in config.search.values():
        if search.api_key_env:
            search.api_key = os.environ.get(search.api_key_env, "")


def _parse_provider(data: dict) -> ProviderConfig:
    return ProviderConfig(
        api_key_env=data.get("api_key_env", ""),
        default_model=data.get("default_model", ""),
        base_url=data.get("base_url", ""),
    )


def _parse_search(data: dict) -> SearchConfig:
    return SearchConfig(
        api_key_env=data.get("api_key_env", ""),
        base_url=data.get("base_url", ""),
        advanced=data.get("advanced", False),
        topic=data.get("topic", "general"),
    )


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from TOML file with env var overlay."""
    path = config_path or DEFAULT_CONFIG_PATH

    if path.exists():
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    else:
        raw = tomllib.loads(DEFAULT_CONFIG_TOML)

    mongo_raw = raw.get("mongodb", {})
    providers_raw = raw.get("providers", {})
    search_raw = raw.get("search", {})
    research_raw = raw.get("research", {})
    history_raw = raw.get("history", {})

    config = AppConfig(
        mongodb=MongoConfig(
            uri=mongo_raw.get("uri", "mongodb://localhost:27017"),
            database=mongo_raw.get("database", "deepresearch"),
        ),
        providers={name: _parse_provider(data) for name, data in providers_raw.items()},
        search={name: _parse_search(data) for name, data in search_raw.items()},
        research=ResearchDefaults(
            provider=research_raw.get("provider", "anthropic"),
            model=research_raw.get("model", ""),
            search=research_raw.get("search", "tavily"),
            breadth=research_raw.get("breadth", 3),
            max_depth=research_raw.get("max_depth", 2),
            language=research_raw.get("language", "en"),
            search_language=research_raw.get("search_language", ""),
            max_search_results=research_raw.get("max_search_results", 5),
            concurrency_limit=research_raw.get("concurrency_limit", 2),
            call_timeout=research_raw.get("call_timeout", 120.0) or None,
        ),
        history=HistoryConfig(
            enabled=history_raw.get("enabled", True),
            recent_limit=history_raw.get("recent_limit", 10),
        ),
        config_path=path,
    )

    _env_overlay(config)
    return config


def init_config(config_path: Path | None = None) -> Path:
    """Create default config file."""
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG_TOML)
    return path
