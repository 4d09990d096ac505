"""AppContext: wires DB, config, backends and services together."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from deepresearch.config import AppConfig, load_config
from deepresearch.infra.db.client import MongoClient

if TYPE_CHECKING:
    from pathlib import Path

    from deepresearch.infra.db.history import HistoryRepo
    from deepresearch.infra.providers.base import LLMProvider
    from deepresearch.infra.search.base import SearchProvider
    from deepresearch.services.generation import LLMGenerationBackend
    from deepresearch.services.research_engine import ResearchEngine
    from deepresearch.services.session_service import ResearchSessionService

logger = logging.getLogger(__name__)


class AppContext:
    """Central wiring for all application dependencies.

    Lazily initializes services on first access. Call `initialize()` to
    set up the database connection and run migrations; without it the
    session service runs with no history sink.
    """

    def __init__(self, config: AppConfig | None = None, config_path: Path | None = None) -> None:
        self.config = config or load_config(config_path)
        self._mongo: MongoClient | None = None
        self._history_repo: HistoryRepo | None = None
        self._llm_provider: LLMProvider | None = None
        self._search_provider: SearchProvider | None = None
        self._generation: LLMGenerationBackend | None = None
        self._research_engine: ResearchEngine | None = None
        self._session_service: ResearchSessionService | None = None

    async def initialize(self) -> None:
        """Initialize the database connection and run migrations."""
        from deepresearch.infra.db.migrations import run_migrations

        mongo = MongoClient(
            uri=self.config.mongodb.uri,
            database=self.config.mongodb.database,
        )
        try:
            await run_migrations(mongo.db)
        except Exception:
            mongo.close()
            raise
        self._mongo = mongo
        logger.info("AppContext initialized")

    async def close(self) -> None:
        """Close all connections."""
        if self._mongo:
            self._mongo.close()
        for client in (self._llm_provider, self._search_provider):
            close = getattr(client, "close", None)
            if close is not None:
                await close()
        logger.info("AppContext closed")

    @property
    def mongo(self) -> MongoClient:
        if self._mongo is None:
            raise RuntimeError("AppContext not initialized. Call initialize() first.")
        return self._mongo

    @property
    def history_repo(self) -> HistoryRepo:
        if self._history_repo is None:
            from deepresearch.infra.db.history import HistoryRepo

            self._history_repo = HistoryRepo(self.mongo.db)
        return self._history_repo

    @property
    def llm_provider(self) -> LLMProvider:
        if self._llm_provider is None:
            from deepresearch.infra.providers.registry import get_provider_with_fallback

            self._llm_provider = get_provider_with_fallback(self.config, self.config.research.provider)
        return self._llm_provider

    @property
    def search_provider(self) -> SearchProvider:
        if self._search_provider is None:
            from deepresearch.infra.search.registry import get_search_provider

            self._search_provider = get_search_provider(self.config.research.search, self.config)
        return self._search_provider

    @property
    def generation(self) -> LLMGenerationBackend:
        if self._generation is None:
            from deepresearch.services.generation import LLMGenerationBackend

            self._generation = LLMGenerationBackend(
                self.llm_provider, model=self.config.research.model
            )
        return self._generation

    @property
    def research_engine(self) -> ResearchEngine:
        if self._research_engine is None:
            from deepresearch.services.research_engine import ResearchEngine

            self._research_engine = ResearchEngine(
                generation=self.generation,
                search=self.search_provider,
                call_timeout=self.config.research.call_timeout,
            )
        return self._research_engine

    @property
    def session_service(self) -> ResearchSessionService:
        if self._session_service is None:
            from deepresearch.services.session_service import ResearchSessionService

            history = None
            if self.config.history.enabled and self._mongo is not None:
                history = self.history_repo
            self._session_service = ResearchSessionService(
                history=history,
                recent_limit=self.config.history.recent_limit,
            )
        return self._session_service
