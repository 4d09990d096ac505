"""Tests for ResearchSessionService with fake backends and a mocked history sink."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from deepresearch.errors import PersistenceError
from deepresearch.models.history import ResearchHistory
from deepresearch.models.research import (
    DeepResearchConfig,
    Learning,
    NodeStatus,
    ProcessedSearchResult,
    SearchQuery,
    WebSearchResult,
)
from deepresearch.models.session import ResearchPhase, ResearchSession
from deepresearch.models.steps import (
    Complete,
    Error,
    GeneratedQuery,
    GeneratingQuery,
    GeneratingReport,
    NodeComplete,
    ReportComplete,
    SearchComplete,
    Searching,
)
from deepresearch.services.research_engine import ResearchEngine
from deepresearch.services.session_service import ResearchSessionService, apply_step

QUERY = "quantum computing"
SMALL = DeepResearchConfig(breadth=2, max_depth=1)


@pytest.fixture
def history():
    sink = AsyncMock()
    sink.list_recent.return_value = []
    return sink


@pytest.fixture
def service(history):
    return ResearchSessionService(history=history)


def make_engine(make_generation, make_search, **search_kwargs) -> ResearchEngine:
    return ResearchEngine(make_generation(), make_search(**search_kwargs))


class TestApplyStep:
    def test_child_registered_under_parent(self):
        session = ResearchSession.begin(QUERY)
        session = apply_step(session, GeneratingQuery(
            "0-0", parent_node_id="0", query=SearchQuery("sub", research_goal="why"),
        ))
        node = session.nodes["0-0"]
        assert node.parent_id == "0"
        assert node.query == "sub"
        assert node.research_goal == "why"
        assert node.status == NodeStatus.GENERATING_QUERY
        assert [n.id for n in session.children_of("0")] == ["0-0"]

    def test_out_of_order_node_is_linked_later(self):
        session = ResearchSession.begin(QUERY)
        session = apply_step(session, Searching("0-1", "sub"))
        assert session.nodes["0-1"].parent_id is None

        session = apply_step(session, GeneratingQuery(
            "0-1", parent_node_id="0", query=SearchQuery("sub", research_goal="why"),
        ))
        node = session.nodes["0-1"]
        assert node.parent_id == "0"
        assert node.status == NodeStatus.SEARCHING
        assert node.research_goal == "why"
        assert [n.id for n in session.children_of("0")] == ["0-1"]

    def test_any_node_step_can_create_a_linked_node(self):
        session = ResearchSession.begin(QUERY)
        session = apply_step(session, Error("0-0-1", "Skipped: parent node 0-0 failed", parent_node_id="0-0"))
        node = session.nodes["0-0-1"]
        assert node.parent_id == "0-0"
        assert node.status == NodeStatus.ERROR
        assert [n.id for n in session.children_of("0-0")] == ["0-0-1"]

    def test_parent_link_is_not_overwritten(self):
        session = ResearchSession.begin(QUERY)
        session = apply_step(session, GeneratingQuery("0-0", parent_node_id="0"))
        session = apply_step(session, Searching("0-0", "sub", parent_node_id="elsewhere"))
        assert session.nodes["0-0"].parent_id == "0"

    def test_generated_query_settles_node_query(self):
        session = ResearchSession.begin(QUERY)
        session = apply_step(session, GeneratedQuery(
            "0", query=SearchQuery(QUERY, research_goal="overview"),
        ))
        root = session.nodes["0"]
        assert root.query == QUERY
        assert root.research_goal == "overview"
        assert root.status == NodeStatus.GENERATING_QUERY

    def test_status_never_regresses(self):
        session = ResearchSession.begin(QUERY)
        session = apply_step(session, SearchComplete("0", ()))
        session = apply_step(session, Searching("0", QUERY))
        assert session.nodes["0"].status == NodeStatus.PROCESSING

    def test_terminal_node_ignores_error(self):
        session = ResearchSession.begin(QUERY)
        learning = Learning(url="https://a.example", learning="fact")
        session = apply_step(session, NodeComplete("0", ProcessedSearchResult((learning,))))
        session = apply_step(session, Error("0", "late"))
        node = session.nodes["0"]
        assert node.status == NodeStatus.COMPLETE
        assert node.error_message is None
        assert node.learnings == (learning,)

    def test_search_results_recorded(self):
        session = ResearchSession.begin(QUERY)
        results = (WebSearchResult(url="https://a.example", content="c"),)
        session = apply_step(session, SearchComplete("0", results))
        assert session.nodes["0"].search_results == results

    def test_report_phases(self):
        learning = Learning(url="https://a.example", learning="fact")
        session = ResearchSession.begin(QUERY)
        session = apply_step(session, Complete((learning,)))
        assert session.state.phase == ResearchPhase.GENERATING_REPORT
        session = apply_step(session, GeneratingReport("Hel"))
        session = apply_step(session, GeneratingReport("lo"))
        assert session.report == "Hello"
        session = apply_step(session, ReportComplete("Hello\n\n## Sources"))
        assert session.state.phase == ResearchPhase.COMPLETE
        assert session.state.learnings == (learning,)
        assert session.state.report == "Hello\n\n## Sources"


class TestSessionRun:
    @pytest.mark.asyncio
    async def test_full_run_saves_once(self, service, history, make_generation, make_search):
        engine = make_engine(make_generation, make_search)
        await service.start(QUERY, engine, SMALL)
        await service.wait()

        session = service.current_session
        assert session.state.phase == ResearchPhase.COMPLETE
        assert set(session.nodes) == {"0", "0-0", "0-1"}
        assert all(n.status == NodeStatus.COMPLETE for n in session.nodes.values())
        assert len(session.learnings) == 3
        assert "## Sources" in session.state.report

        history.save.assert_awaited_once()
        saved = history.save.await_args.args[0]
        assert isinstance(saved, ResearchHistory)
        assert saved.id == session.id
        assert saved.query == QUERY
        assert saved.report == session.report

    @pytest.mark.asyncio
    async def test_node_failure_still_completes(self, service, history, make_generation, make_search):
        engine = make_engine(make_generation, make_search, fail=(f"{QUERY} / q1",))
        await service.start(QUERY, engine, SMALL)
        await service.wait()

        session = service.current_session
        assert session.nodes["0-1"].status == NodeStatus.ERROR
        assert "search failed" in session.nodes["0-1"].error_message
        assert session.nodes["0-0"].status == NodeStatus.COMPLETE
        assert session.state.phase == ResearchPhase.COMPLETE
        assert len(session.learnings) == 2
        history.save.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_learnings_completes_without_report(self, service, history, make_generation, make_search):
        engine = make_engine(make_generation, make_search, fail=(QUERY,))
        await service.start(QUERY, engine, DeepResearchConfig(breadth=0, max_depth=0))
        await service.wait()

        session = service.current_session
        assert session.state.phase == ResearchPhase.COMPLETE
        assert session.state.learnings == ()
        assert session.state.report == ""
        history.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_report_failure_is_session_error(self, service, history, make_generation, make_search):
        engine = ResearchEngine(make_generation(fail_report=True), make_search())
        await service.start(QUERY, engine, SMALL)
        await service.wait()

        state = service.current_session.state
        assert state.phase == ResearchPhase.ERROR
        assert "model went away" in state.message
        history.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_history_failure_keeps_complete(self, service, history, make_generation, make_search):
        history.save.side_effect = PersistenceError("disk full")
        engine = make_engine(make_generation, make_search)
        await service.start(QUERY, engine, SMALL)
        await service.wait()

        assert service.current_session.state.phase == ResearchPhase.COMPLETE
        history.save.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_runs_without_history(self, make_generation, make_search):
        service = ResearchSessionService()
        await service.start(QUERY, make_engine(make_generation, make_search), SMALL)
        await service.wait()
        assert service.current_session.state.phase == ResearchPhase.COMPLETE
        assert await service.recent_history() == []

    @pytest.mark.asyncio
    async def test_listener_sees_monotonic_statuses(self, service, make_generation, make_search):
        snapshots: list[ResearchSession] = []
        service.add_listener(snapshots.append)
        await service.start(QUERY, make_engine(make_generation, make_search), SMALL)
        await service.wait()

        last: dict[str, int] = {}
        for snap in snapshots:
            for node in snap.nodes.values():
                assert node.status.rank >= last.get(node.id, 0)
                last[node.id] = node.status.rank
        assert snapshots[-1].state.phase == ResearchPhase.COMPLETE

    @pytest.mark.asyncio
    async def test_failing_listener_is_isolated(self, service, make_generation, make_search):
        def broken(session):
            raise RuntimeError("boom")

        service.add_listener(broken)
        await service.start(QUERY, make_engine(make_generation, make_search), SMALL)
        await service.wait()
        assert service.current_session.state.phase == ResearchPhase.COMPLETE

    @pytest.mark.asyncio
    async def test_watch_yields_snapshots(self, service, make_generation, make_search):
        phases: list[ResearchPhase] = []

        async def observe():
            async with contextlib.aclosing(service.watch()) as stream:
                async for session in stream:
                    if session is None:
                        continue
                    phases.append(session.state.phase)
                    if session.state.is_terminal:
                        return

        watcher = asyncio.create_task(observe())
        await asyncio.sleep(0)
        await service.start(QUERY, make_engine(make_generation, make_search), SMALL)
        await asyncio.wait_for(watcher, timeout=5)

        assert phases[0] == ResearchPhase.RESEARCHING
        assert phases[-1] == ResearchPhase.COMPLETE
        assert service._listeners == []


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_returns_to_idle(self, service, history, make_generation, make_search):
        engine = make_engine(make_generation, make_search, slow={QUERY: 10.0})
        await service.start(QUERY, engine, SMALL)
        await asyncio.sleep(0.05)
        assert service.is_running

        await service.cancel()
        assert not service.is_running
        assert service.current_session.state.phase == ResearchPhase.IDLE
        history.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_keeps_finished_session(self, service, make_generation, make_search):
        await service.start(QUERY, make_engine(make_generation, make_search), SMALL)
        await service.wait()
        await service.cancel()
        assert service.current_session.state.phase == ResearchPhase.COMPLETE

    @pytest.mark.asyncio
    async def test_new_start_supersedes_old(self, service, history, make_generation, make_search):
        slow_engine = make_engine(make_generation, make_search, slow={"first topic": 10.0})
        first = await service.start("first topic", slow_engine, SMALL)
        await asyncio.sleep(0.05)

        snapshots: list[ResearchSession] = []
        service.add_listener(snapshots.append)
        second = await service.start(QUERY, make_engine(make_generation, make_search), SMALL)
        await service.wait()

        assert second.id != first.id
        assert service.current_session.id == second.id
        assert service.current_session.state.phase == ResearchPhase.COMPLETE
        assert all(s.id == second.id for s in snapshots)
        assert all("first topic" not in (n.query or "") for n in service.current_session.nodes.values())
        history.save.assert_awaited_once()
        assert history.save.await_args.args[0].id == second.id

    @pytest.mark.asyncio
    async def test_concurrent_starts_leave_one_job(self, service, tracker, make_generation, make_search):
        root_only = DeepResearchConfig(breadth=0, max_depth=0)
        slow = {"a": 10.0, "b": 10.0, "c": 10.0}

        def engine() -> ResearchEngine:
            return ResearchEngine(make_generation(tracker), make_search(tracker, slow=slow))

        await service.start("a", engine(), root_only)
        await asyncio.sleep(0.05)
        _, third = await asyncio.gather(
            service.start("b", engine(), root_only),
            service.start("c", engine(), root_only),
        )
        await asyncio.sleep(0.05)

        assert service.current_session.id == third.id
        assert tracker.active == 1

        await service.cancel()
        calls = tracker.calls
        await asyncio.sleep(0.2)

        assert tracker.active == 0
        assert tracker.calls == calls
        assert not service.is_running
        assert service.current_session.id == third.id
        assert service.current_session.state.phase == ResearchPhase.IDLE

    @pytest.mark.asyncio
    async def test_cancel_racing_start_is_not_lost(self, service, tracker, make_generation, make_search):
        root_only = DeepResearchConfig(breadth=0, max_depth=0)
        engine = ResearchEngine(make_generation(tracker), make_search(tracker, slow={QUERY: 10.0}))
        await service.start("warm up", engine, root_only)

        await asyncio.gather(service.start(QUERY, engine, root_only), service.cancel())
        await asyncio.sleep(0.1)

        assert not service.is_running
        assert tracker.active == 0
        assert service.current_session.query == QUERY
        assert service.current_session.state.phase == ResearchPhase.IDLE


class TestArchive:
    @pytest.mark.asyncio
    async def test_clear_archives_completed(self, service, make_generation, make_search):
        session = await service.start(QUERY, make_engine(make_generation, make_search), SMALL)
        await service.wait()
        await service.clear()

        assert service.current_session is None
        assert [s.id for s in service.sessions] == [session.id]

    @pytest.mark.asyncio
    async def test_clear_drops_failed(self, service, make_generation, make_search):
        engine = ResearchEngine(make_generation(fail_report=True), make_search())
        await service.start(QUERY, engine, SMALL)
        await service.wait()
        await service.clear()
        assert service.sessions == ()

    @pytest.mark.asyncio
    async def test_archive_is_capped(self, history, make_generation, make_search):
        service = ResearchSessionService(history=history, recent_limit=2)
        ids = []
        for i in range(3):
            engine = make_engine(make_generation, make_search)
            ids.append((await service.start(f"{QUERY} {i}", engine, DeepResearchConfig(breadth=0))).id)
            await service.wait()
            await service.clear()
        assert [s.id for s in service.sessions] == [ids[2], ids[1]]

    @pytest.mark.asyncio
    async def test_load_from_history(self, service):
        learning = Learning(url="https://a.example", learning="fact")
        record = ResearchHistory(
            id="abc123",
            query=QUERY,
            report="# Saved report",
            learnings=(learning,),
            start_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        session = await service.load_from_history(record)

        assert session.id == "abc123"
        assert session.nodes == {}
        assert session.state.phase == ResearchPhase.COMPLETE
        assert session.state.report == "# Saved report"
        assert session.learnings == (learning,)
        assert service.current_session is session

    @pytest.mark.asyncio
    async def test_recent_history_delegates(self, service, history):
        history.list_recent.return_value = [ResearchHistory(id="x", query="q")]
        records = await service.recent_history(5)
        assert [r.id for r in records] == ["x"]
        history.list_recent.assert_awaited_once_with(5)
