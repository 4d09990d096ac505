"""Research history repository - MongoDB CRUD."""

from __future__ import annotations

import logging
import re

import pymongo.errors

from deepresearch.errors import PersistenceError
from deepresearch.models.history import ResearchHistory

logger = logging.getLogger(__name__)


class HistoryRepo:
    """CRUD operations for finished research sessions in MongoDB."""

    COLLECTION = "deep_research_history"

    def __init__(self, db) -> None:
        self._col = db[self.COLLECTION]

    async def save(self, history: ResearchHistory) -> None:
        """Insert or replace a record keyed by the session id."""
        try:
            await self._col.replace_one({"_id": history.id}, history.to_doc(), upsert=True)
        except pymongo.errors.PyMongoError as e:
            raise PersistenceError(f"Failed to save research history {history.id}: {e}") from e
        logger.debug("Saved research history %s", history.id)

    async def find_by_id(self, history_id: str) -> ResearchHistory | None:
        doc = await self._col.find_one({"_id": history_id})
        return ResearchHistory.from_doc(doc) if doc else None

    async def list_recent(self, limit: int = 20) -> list[ResearchHistory]:
        """List most recent records, newest first."""
        cursor = self._col.find().sort("start_time", -1).limit(limit)
        return [ResearchHistory.from_doc(doc) async for doc in cursor]

    async def list_all(self) -> list[ResearchHistory]:
        cursor = self._col.find().sort("start_time", -1)
        return [ResearchHistory.from_doc(doc) async for doc in cursor]

    async def search(self, keyword: str, limit: int = 50) -> list[ResearchHistory]:
        """Case-insensitive substring match on query or report."""
        pattern = {"$regex": re.escape(keyword), "$options": "i"}
        cursor = (
            self._col.find({"$or": [{"query": pattern}, {"report": pattern}]})
            .sort("start_time", -1)
            .limit(limit)
        )
        return [ResearchHistory.from_doc(doc) async for doc in cursor]

    async def delete(self, history_id: str) -> bool:
        result = await self._col.delete_one({"_id": history_id})
        return result.deleted_count > 0

    async def delete_all(self) -> int:
        result = await self._col.delete_many({})
        return result.deleted_count

    async def count(self) -> int:
        return await self._col.count_documents({})
