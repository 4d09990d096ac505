"""History sink protocol definition."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from deepresearch.models.history import ResearchHistory


@runtime_checkable
class HistorySink(Protocol):
    """Where finished research sessions are persisted."""

    async def save(self, history: ResearchHistory) -> None:
        """Persist a record. Raises `PersistenceError` on failure."""
        ...

    async def list_recent(self, limit: int = 20) -> list[ResearchHistory]:
        """Most recent records first."""
        ...
