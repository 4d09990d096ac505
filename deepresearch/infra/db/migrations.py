"""MongoDB index creation."""

from __future__ import annotations

import logging

import pymongo

from deepresearch.infra.db.history import HistoryRepo

logger = logging.getLogger(__name__)


async def run_migrations(db) -> None:
    """Create indexes on startup."""
    logger.info("Running MongoDB migrations...")

    history = db[HistoryRepo.COLLECTION]
    await history.create_index([("start_time", pymongo.DESCENDING)])
    await history.create_index([("status", pymongo.ASCENDING), ("start_time", pymongo.DESCENDING)])

    logger.info("MongoDB migrations complete")
