"""Shared fakes for the research engine and session service tests."""

from __future__ import annotations

import asyncio
from urllib.parse import quote

import pytest

from deepresearch.errors import BackendError
from deepresearch.models.research import (
    Learning,
    ProcessedSearchResult,
    SearchQuery,
    WebSearchResult,
)


class CallTracker:
    """Counts backend calls in flight across fakes sharing one tracker."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.active = 0
        self.peak = 0
        self.calls = 0

    async def enter(self, delay: float | None = None) -> None:
        self.active += 1
        self.calls += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(self.delay if delay is None else delay)

    def leave(self) -> None:
        self.active -= 1


class FakeGeneration:
    """Plans `<topic> / q<i>` children and one learning per node."""

    def __init__(
        self,
        tracker: CallTracker | None = None,
        fail_plan: tuple[str, ...] = (),
        fail_extract: tuple[str, ...] = (),
        report_chunks: tuple[str, ...] = ("# Report\n", "Body."),
        fail_report: bool = False,
    ) -> None:
        self.tracker = tracker or CallTracker()
        self.fail_plan = fail_plan
        self.fail_extract = fail_extract
        self.report_chunks = report_chunks
        self.fail_report = fail_report
        self.planned: list[tuple[str, int]] = []
        self.follow_ups_seen: dict[str, tuple[str, ...]] = {}
        self.report_learnings: tuple[Learning, ...] | None = None

    async def generate_sub_queries(
        self,
        topic,
        breadth,
        *,
        goal=None,
        learnings=(),
        follow_ups=(),
        language="en",
        search_language=None,
        on_delta=None,
    ):
        try:
            await self.tracker.enter()
            self.planned.append((topic, breadth))
            if topic in self.fail_plan:
                raise BackendError(f"planning failed for {topic}")
            if on_delta:
                on_delta("planning...")
            queries = [
                SearchQuery(query=f"{topic} / q{i}", research_goal=f"goal {i}")
                for i in range(breadth)
            ]
            for q in queries:
                self.follow_ups_seen[q.query] = tuple(follow_ups)
            return queries
        finally:
            self.tracker.leave()

    async def extract_learnings(
        self,
        query,
        results,
        *,
        num_follow_ups=3,
        language="en",
        on_delta=None,
    ):
        try:
            await self.tracker.enter()
            if query in self.fail_extract:
                raise BackendError(f"extraction failed for {query}")
            if on_delta:
                on_delta("reading...")
            return ProcessedSearchResult(
                learnings=(Learning(url=results[0].url, learning=f"fact about {query}", title=results[0].title),),
                follow_up_questions=tuple(f"{query}: follow-up {i}" for i in range(num_follow_ups)),
            )
        finally:
            self.tracker.leave()

    async def stream_report(self, query, learnings, language="en"):
        self.report_learnings = tuple(learnings)
        for chunk in self.report_chunks:
            await asyncio.sleep(0)
            yield chunk
        if self.fail_report:
            raise RuntimeError("model went away")


class FakeSearch:
    """Returns one result per query, with per-query failures and delays."""

    def __init__(
        self,
        tracker: CallTracker | None = None,
        fail: tuple[str, ...] = (),
        empty: tuple[str, ...] = (),
        slow: dict[str, float] | None = None,
    ) -> None:
        self.tracker = tracker or CallTracker()
        self.fail = fail
        self.empty = empty
        self.slow = slow or {}
        self.queries: list[str] = []

    async def search(self, query, max_results=5, language=None):
        try:
            await self.tracker.enter(self.slow.get(query))
            self.queries.append(query)
            if query in self.fail:
                raise BackendError(f"search failed for {query}")
            if query in self.empty:
                return []
            return [WebSearchResult(
                url=f"https://example.com/{quote(query, safe='')}",
                title=f"About {query}",
                content=f"Content for {query}",
            )]
        finally:
            self.tracker.leave()


@pytest.fixture
def tracker():
    return CallTracker()


@pytest.fixture
def make_generation():
    return FakeGeneration


@pytest.fixture
def make_search():
    return FakeSearch
