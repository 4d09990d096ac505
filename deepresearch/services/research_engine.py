"""Research engine: recursive, concurrency-bounded research tree.

Pattern from dzhng/deep-research:
1. LLM proposes N sub-queries for a node (breadth)
2. The node's own query -> web search
3. LLM extracts atomic learnings + follow-up questions from the results
4. Children recurse, seeded with the follow-ups, until max depth
5. Final report streamed from the merged learnings
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import replace

from deepresearch.errors import BackendError, DeepResearchError, ReportGenerationError
from deepresearch.infra.search.base import SearchProvider
from deepresearch.models.research import (
    DeepResearchConfig,
    Learning,
    SearchQuery,
    dedupe_learnings,
)
from deepresearch.models.steps import (
    Complete,
    Error,
    GeneratedQuery,
    GeneratingQuery,
    GeneratingQueryReasoning,
    GeneratingReport,
    NodeComplete,
    ProcessingResult,
    ProcessingResultReasoning,
    ReportComplete,
    ResearchStep,
    SearchComplete,
    Searching,
)
from deepresearch.services.generation import GenerationBackend

logger = logging.getLogger(__name__)

ROOT_NODE_ID = "0"

_DONE = object()


def child_node_id(parent_id: str, index: int) -> str:
    return f"{parent_id}-{index}"


def next_breadth(breadth: int) -> int:
    """Breadth used one level down: half, rounded up."""
    return (breadth + 1) // 2


def format_sources(learnings: Sequence[Learning]) -> str:
    lines = [
        f"[{i}] {lr.title or lr.url}: {lr.url}"
        for i, lr in enumerate(learnings, start=1)
    ]
    return "## Sources\n\n" + "\n".join(lines)


class _ResearchRun:
    """State for one `research()` call: queue, admission gate, learnings."""

    def __init__(
        self,
        engine: ResearchEngine,
        query: str,
        config: DeepResearchConfig,
    ) -> None:
        self._engine = engine
        self._query = query
        self._config = config
        self._queue: asyncio.Queue = asyncio.Queue()
        self._gate = asyncio.Semaphore(config.concurrency_limit)
        self._learnings: list[Learning] = []

    def _emit(self, step: ResearchStep) -> None:
        self._queue.put_nowait(step)

    async def _gated(self, func, *args, **kwargs):
        """Run one backend call while holding an admission-gate slot."""
        timeout = self._engine.call_timeout
        async with self._gate:
            try:
                if timeout:
                    return await asyncio.wait_for(func(*args, **kwargs), timeout)
                return await func(*args, **kwargs)
            except asyncio.TimeoutError as e:
                raise BackendError(f"Backend call timed out after {timeout:g}s") from e

    async def steps(self) -> AsyncIterator[ResearchStep]:
        task = asyncio.create_task(self._run())
        try:
            while True:
                step = await self._queue.get()
                if step is _DONE:
                    break
                yield step
            await task
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def _run(self) -> None:
        try:
            logger.info(
                "Starting research: %r (breadth=%d, max_depth=%d, concurrency=%d)",
                self._query[:80],
                self._config.breadth,
                self._config.max_depth,
                self._config.concurrency_limit,
            )
            root = SearchQuery(query=self._query, node_id=ROOT_NODE_ID)
            await self._expand(root, depth=0, breadth=self._config.breadth)
            learnings = dedupe_learnings(self._learnings)
            logger.info("Research complete: %d learnings", len(learnings))
            self._emit(Complete(learnings))
        finally:
            self._queue.put_nowait(_DONE)

    async def _expand(
        self,
        node: SearchQuery,
        depth: int,
        breadth: int,
        context: Sequence[Learning] = (),
        follow_ups: Sequence[str] = (),
        parent_id: str | None = None,
    ) -> None:
        """Run one node's lifecycle, then recurse into its children."""
        node_id = node.node_id
        config = self._config
        generation = self._engine.generation
        children: list[SearchQuery] = []
        logger.debug("Expanding node %s at depth %d/%d", node_id, depth, config.max_depth)

        def emit(step_type, *args, **kwargs) -> None:
            self._emit(step_type(node_id, *args, parent_node_id=parent_id, **kwargs))

        try:
            emit(GeneratingQuery, query=node)

            if breadth > 0 and depth < config.max_depth:
                generated = await self._gated(
                    generation.generate_sub_queries,
                    node.query,
                    breadth,
                    goal=node.research_goal or None,
                    learnings=context,
                    follow_ups=follow_ups,
                    language=config.language,
                    search_language=config.resolved_search_language,
                    on_delta=lambda d: emit(GeneratingQueryReasoning, d),
                )
                for index, sub_query in enumerate(generated[:breadth]):
                    child = replace(sub_query, node_id=child_node_id(node_id, index))
                    children.append(child)
                    self._emit(GeneratingQuery(child.node_id, parent_node_id=node_id, query=child))

            emit(GeneratedQuery, query=node)
            emit(Searching, node.query)
            results = await self._gated(
                self._engine.search.search,
                node.query,
                config.max_search_results,
                config.resolved_search_language,
            )
            if not results:
                raise BackendError("No search results found")
            logger.debug("Found %d results for: %s", len(results), node.query[:80])
            emit(SearchComplete, tuple(results))

            emit(ProcessingResult, node.query)
            processed = await self._gated(
                generation.extract_learnings,
                node.query,
                results,
                num_follow_ups=next_breadth(breadth),
                language=config.language,
                on_delta=lambda d: emit(ProcessingResultReasoning, d),
            )
        except Exception as e:
            message = str(e) or type(e).__name__
            if isinstance(e, DeepResearchError):
                logger.warning("Node %s failed: %s", node_id, message)
            else:
                logger.exception("Node %s failed unexpectedly", node_id)
            emit(Error, message)
            for child in children:
                self._emit(Error(
                    child.node_id,
                    f"Skipped: parent node {node_id} failed",
                    parent_node_id=node_id,
                ))
            return

        self._learnings.extend(processed.learnings)
        emit(NodeComplete, processed)

        if not children:
            return

        child_context = [*context, *processed.learnings]
        await asyncio.gather(*(
            self._expand(
                child,
                depth=depth + 1,
                breadth=next_breadth(breadth),
                context=child_context,
                follow_ups=processed.follow_up_questions,
                parent_id=node_id,
            )
            for child in children
        ))


class ResearchEngine:
    """Recursive research scheduler producing an ordered stream of steps.

    Every backend call anywhere in a run's tree passes through one admission
    gate of `concurrency_limit` slots. Branches run as independent asyncio
    tasks; a failing node emits `Error` and contributes nothing, without
    affecting its siblings. Closing a stream cancels the whole tree.
    """

    def __init__(
        self,
        generation: GenerationBackend,
        search: SearchProvider,
        call_timeout: float | None = None,
    ) -> None:
        self.generation = generation
        self.search = search
        self.call_timeout = call_timeout

    def research(self, query: str, config: DeepResearchConfig) -> AsyncIterator[ResearchStep]:
        """Stream the research tree's progress, ending with one `Complete`."""
        return _ResearchRun(self, query, config).steps()

    async def generate_report(
        self,
        query: str,
        learnings: Sequence[Learning],
        language: str = "en",
    ) -> AsyncIterator[ResearchStep]:
        """Stream `GeneratingReport` deltas, then exactly one `ReportComplete`.

        Raises `ReportGenerationError` if the report stream fails.
        """
        logger.info("Generating report from %d learnings", len(learnings))
        parts: list[str] = []
        stream = self.generation.stream_report(query, learnings, language)
        async with contextlib.aclosing(stream):
            try:
                async for delta in stream:
                    parts.append(delta)
                    yield GeneratingReport(delta)
            except DeepResearchError:
                raise
            except Exception as e:
                raise ReportGenerationError(str(e) or type(e).__name__) from e

        report = "".join(parts) + "\n\n" + format_sources(learnings)
        yield ReportComplete(report)

    async def research_with_report(
        self, query: str, config: DeepResearchConfig
    ) -> AsyncIterator[ResearchStep]:
        """Research, then generate a report only if any learnings were found."""
        learnings: tuple[Learning, ...] = ()
        async with contextlib.aclosing(self.research(query, config)) as steps:
            async for step in steps:
                if isinstance(step, Complete):
                    learnings = step.learnings
                yield step

        if not learnings:
            logger.info("No learnings for %r; skipping report", query[:80])
            return

        async with contextlib.aclosing(
            self.generate_report(query, learnings, config.language)
        ) as steps:
            async for step in steps:
                yield step
