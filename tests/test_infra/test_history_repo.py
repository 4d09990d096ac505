"""Tests for HistoryRepo with a mocked Motor collection."""

from unittest.mock import AsyncMock, MagicMock

import pymongo.errors
import pytest

from deepresearch.errors import PersistenceError
from deepresearch.infra.db.history import HistoryRepo
from deepresearch.models.history import ResearchHistory


@pytest.fixture
def collection():
    return AsyncMock()


@pytest.fixture
def repo(collection):
    db = MagicMock()
    db.__getitem__.return_value = collection
    return HistoryRepo(db)


class TestHistoryRepo:
    @pytest.mark.asyncio
    async def test_save_upserts_by_id(self, repo, collection):
        record = ResearchHistory(id="abc", query="q", report="r")
        await repo.save(record)
        collection.replace_one.assert_awaited_once_with({"_id": "abc"}, record.to_doc(), upsert=True)

    @pytest.mark.asyncio
    async def test_save_failure_raises_persistence_error(self, repo, collection):
        collection.replace_one.side_effect = pymongo.errors.ServerSelectionTimeoutError("down")
        with pytest.raises(PersistenceError, match="abc"):
            await repo.save(ResearchHistory(id="abc", query="q"))

    @pytest.mark.asyncio
    async def test_find_by_id(self, repo, collection):
        collection.find_one.return_value = {"_id": "abc", "query": "q", "report": "r"}
        record = await repo.find_by_id("abc")
        assert record.query == "q"
        collection.find_one.return_value = None
        assert await repo.find_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_delete(self, repo, collection):
        collection.delete_one.return_value = MagicMock(deleted_count=1)
        assert await repo.delete("abc") is True
        collection.delete_one.return_value = MagicMock(deleted_count=0)
        assert await repo.delete("abc") is False

    @pytest.mark.asyncio
    async def test_delete_all_and_count(self, repo, collection):
        collection.delete_many.return_value = MagicMock(deleted_count=3)
        collection.count_documents.return_value = 0
        assert await repo.delete_all() == 3
        assert await repo.count() == 0
