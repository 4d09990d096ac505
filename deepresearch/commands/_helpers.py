"""CLI helpers: context setup and progress printing."""

from __future__ import annotations

import logging
from pathlib import Path

import click
import pymongo.errors

from deepresearch.context import AppContext
from deepresearch.models.research import NodeStatus
from deepresearch.models.session import ResearchPhase, ResearchSession

logger = logging.getLogger(__name__)


async def get_context(
    config_path: Path | None = None,
    require_db: bool = True,
    connect: bool = True,
) -> AppContext:
    """Create an AppContext, connecting to MongoDB.

    With `require_db=False` a failed connection only disables history;
    `connect=False` skips the database entirely.
    """
    ctx = AppContext(config_path=config_path)
    if not connect:
        return ctx
    try:
        await ctx.initialize()
    except pymongo.errors.PyMongoError as e:
        if require_db:
            raise SystemExit(f"MongoDB not reachable at {ctx.config.mongodb.uri}: {e}") from e
        logger.warning("History disabled, MongoDB not reachable: %s", e)
    return ctx


class ProgressPrinter:
    """Session listener that echoes node status changes to stderr."""

    def __init__(self) -> None:
        self._seen: dict[str, NodeStatus] = {}
        self._phase: ResearchPhase | None = None

    def __call__(self, session: ResearchSession | None) -> None:
        if session is None:
            return
        for node_id in sorted(session.nodes):
            node = session.nodes[node_id]
            if self._seen.get(node_id) == node.status:
                continue
            self._seen[node_id] = node.status
            detail = (node.error_message if node.status == NodeStatus.ERROR else node.query) or ""
            click.echo(
                click.style(f"→ [{node_id}] {node.status.value}: {detail[:100]}", fg="bright_black"),
                err=True,
            )
        if session.state.phase != self._phase:
            self._phase = session.state.phase
            click.echo(click.style(f"→ {self._phase.value}", fg="cyan"), err=True)
