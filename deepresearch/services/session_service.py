"""Research session service: folds engine steps into the observable session."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import replace

from deepresearch.infra.db.base import HistorySink
from deepresearch.models.history import ResearchHistory
from deepresearch.models.research import DeepResearchConfig, NodeStatus, ResearchNode
from deepresearch.models.session import ResearchPhase, ResearchSession, ResearchState
from deepresearch.models.steps import (
    Complete,
    Error,
    GeneratedQuery,
    GeneratingQuery,
    GeneratingQueryReasoning,
    GeneratingReport,
    NodeComplete,
    NodeStep,
    ProcessingResult,
    ProcessingResultReasoning,
    ReportComplete,
    ResearchStep,
    SearchComplete,
    Searching,
)
from deepresearch.services.research_engine import ResearchEngine

logger = logging.getLogger(__name__)

SessionListener = Callable[[ResearchSession | None], None]

DEFAULT_RECENT_LIMIT = 10


def _fold_node(node: ResearchNode, step: NodeStep) -> ResearchNode:
    if isinstance(step, (GeneratingQuery, GeneratedQuery)):
        if step.query is None:
            return replace(node, status=node.advance(NodeStatus.GENERATING_QUERY))
        return replace(
            node,
            query=step.query.query,
            research_goal=step.query.research_goal or node.research_goal,
            status=node.advance(NodeStatus.GENERATING_QUERY),
        )
    if isinstance(step, (GeneratingQueryReasoning, ProcessingResultReasoning)):
        return replace(node, reasoning=node.reasoning + step.delta)
    if isinstance(step, Searching):
        return replace(node, query=step.query, status=node.advance(NodeStatus.SEARCHING))
    if isinstance(step, SearchComplete):
        return replace(
            node,
            search_results=step.results,
            status=node.advance(NodeStatus.PROCESSING),
        )
    if isinstance(step, ProcessingResult):
        learnings = step.result.learnings if step.result else node.learnings
        return replace(node, learnings=learnings, status=node.advance(NodeStatus.PROCESSING))
    if isinstance(step, NodeComplete):
        learnings = step.result.learnings if step.result else node.learnings
        return replace(node, learnings=learnings, status=node.advance(NodeStatus.COMPLETE))
    if isinstance(step, Error):
        return replace(
            node,
            status=node.advance(NodeStatus.ERROR),
            error_message=step.message,
        )
    return node


def apply_step(session: ResearchSession, step: ResearchStep) -> ResearchSession:
    """Return the session after folding in one engine step."""
    if isinstance(step, NodeStep):
        node = session.nodes.get(step.node_id) or ResearchNode(id=step.node_id)
        if node.parent_id is None and step.parent_node_id is not None:
            node = replace(node, parent_id=step.parent_node_id)
        return session.with_node(_fold_node(node, step))

    if isinstance(step, Complete):
        return replace(
            session,
            learnings=step.learnings,
            state=ResearchState.generating_report(),
        )
    if isinstance(step, GeneratingReport):
        return replace(session, report=session.report + step.delta)
    if isinstance(step, ReportComplete):
        return replace(
            session,
            report=step.report,
            state=ResearchState.complete(session.learnings, step.report),
        )
    return session


class ResearchSessionService:
    """Owns the current research session and the job feeding it.

    All writes to the session go through `_update`, which runs on the event
    loop and replaces the immutable snapshot in one step. Steps from a job
    that has been superseded are dropped by session id.

    `start`, `cancel`, `clear` and `load_from_history` hold one lock, so at
    most one job exists and a cancel cannot interleave with a start.
    """

    def __init__(
        self,
        history: HistorySink | None = None,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
    ) -> None:
        self._history = history
        self._recent_limit = recent_limit
        self._current: ResearchSession | None = None
        self._sessions: list[ResearchSession] = []
        self._job: asyncio.Task | None = None
        self._job_lock = asyncio.Lock()
        self._pending_saves: set[asyncio.Task] = set()
        self._listeners: list[SessionListener] = []

    @property
    def current_session(self) -> ResearchSession | None:
        return self._current

    @property
    def sessions(self) -> tuple[ResearchSession, ...]:
        """Archived completed sessions, most recent first."""
        return tuple(self._sessions)

    @property
    def is_running(self) -> bool:
        return self._job is not None and not self._job.done()

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    async def watch(self) -> AsyncIterator[ResearchSession | None]:
        """Yield the current session, then every new snapshot."""
        queue: asyncio.Queue = asyncio.Queue()
        self.add_listener(queue.put_nowait)
        try:
            yield self._current
            while True:
                yield await queue.get()
        finally:
            self.remove_listener(queue.put_nowait)

    def _set(self, session: ResearchSession | None) -> None:
        self._current = session
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception:
                logger.warning("Session listener failed", exc_info=True)

    def _update(
        self,
        session_id: str,
        fn: Callable[[ResearchSession], ResearchSession],
    ) -> ResearchSession | None:
        current = self._current
        if current is None or current.id != session_id:
            logger.debug("Dropping update for superseded session %s", session_id)
            return None
        if current.state.is_terminal:
            return current
        updated = fn(current)
        self._set(updated)
        return updated

    async def start(
        self,
        query: str,
        engine: ResearchEngine,
        config: DeepResearchConfig,
    ) -> ResearchSession:
        """Start a new research run, replacing any running one."""
        async with self._job_lock:
            await self._stop_job()

            session = ResearchSession.begin(query)
            self._set(session)
            logger.info("Research session %s started: %r", session.id, query[:80])

            self._job = asyncio.create_task(
                self._run(session.id, engine.research_with_report(query, config))
            )
            return session

    async def _run(self, session_id: str, steps: AsyncIterator[ResearchStep]) -> None:
        try:
            async with contextlib.aclosing(steps):
                async for step in steps:
                    updated = self._update(session_id, lambda s: apply_step(s, step))
                    if isinstance(step, ReportComplete) and updated is not None:
                        self._schedule_save(updated)
        except Exception as e:
            logger.exception("Research session %s failed", session_id)
            message = str(e) or type(e).__name__
            self._update(session_id, lambda s: s.with_state(ResearchState.error(message)))
            return

        self._update(session_id, self._finish)

    @staticmethod
    def _finish(session: ResearchSession) -> ResearchSession:
        """Settle a session whose step stream ended without a terminal step."""
        if session.state.phase == ResearchPhase.GENERATING_REPORT and not session.learnings:
            logger.info("Research session %s found no learnings", session.id)
            return session.with_state(ResearchState.complete((), ""))
        if session.is_active:
            return session.with_state(
                ResearchState.error("Research ended without producing a report")
            )
        return session

    def _schedule_save(self, session: ResearchSession) -> None:
        if self._history is None:
            return
        task = asyncio.create_task(self._save(session))
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def _save(self, session: ResearchSession) -> None:
        try:
            await self._history.save(ResearchHistory.from_session(session))
            logger.info("Research session %s saved to history", session.id)
        except Exception:
            logger.exception("Failed to save research session %s to history", session.id)

    async def _stop_job(self) -> None:
        """Cancel the running job and wait for it. Callers hold `_job_lock`."""
        job, self._job = self._job, None
        if job is None or job.done():
            return
        job.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await job

    async def cancel(self) -> None:
        """Stop the running job; an unfinished session goes back to idle."""
        async with self._job_lock:
            await self._stop_job()
            session = self._current
            if session is not None and not session.state.is_terminal:
                self._set(session.with_state(ResearchState.idle()))
                logger.info("Research session %s cancelled", session.id)

    async def clear(self) -> None:
        """Drop the current session, archiving it first if it completed."""
        async with self._job_lock:
            await self._stop_job()
            session = self._current
            if session is not None and session.state.phase == ResearchPhase.COMPLETE:
                self._sessions = [session, *self._sessions][: self._recent_limit]
            self._set(None)

    async def load_from_history(self, history: ResearchHistory) -> ResearchSession:
        """Show a persisted record as a completed, display-only session."""
        async with self._job_lock:
            await self._stop_job()
            session = ResearchSession(
                id=history.id,
                query=history.query,
                start_time=history.start_time,
                state=ResearchState.complete(history.learnings, history.report),
                nodes={},
                learnings=history.learnings,
                report=history.report,
            )
            self._set(session)
            return session

    async def recent_history(self, limit: int = 20) -> list[ResearchHistory]:
        if self._history is None:
            return []
        return await self._history.list_recent(limit)

    async def wait(self) -> None:
        """Wait for the running job and any pending history writes."""
        if self._job is not None:
            await asyncio.wait({self._job})
        if self._pending_saves:
            await asyncio.gather(*self._pending_saves)
