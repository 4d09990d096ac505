"""Research session domain model."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

from deepresearch.models.research import Learning, NodeStatus, ResearchNode


class ResearchPhase(str, Enum):
    IDLE = "idle"
    RESEARCHING = "researching"
    GENERATING_REPORT = "generating_report"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ResearchPhase.COMPLETE, ResearchPhase.ERROR)


@dataclass(frozen=True)
class ResearchState:
    """Session-level state. `learnings`/`report` are set only when complete."""

    phase: ResearchPhase = ResearchPhase.IDLE
    learnings: tuple[Learning, ...] = ()
    report: str | None = None
    message: str = ""

    @classmethod
    def idle(cls) -> ResearchState:
        return cls(ResearchPhase.IDLE)

    @classmethod
    def researching(cls) -> ResearchState:
        return cls(ResearchPhase.RESEARCHING)

    @classmethod
    def generating_report(cls) -> ResearchState:
        return cls(ResearchPhase.GENERATING_REPORT)

    @classmethod
    def complete(cls, learnings: tuple[Learning, ...], report: str | None) -> ResearchState:
        return cls(ResearchPhase.COMPLETE, learnings=tuple(learnings), report=report)

    @classmethod
    def error(cls, message: str) -> ResearchState:
        return cls(ResearchPhase.ERROR, message=message)

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal


def _new_session_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ResearchSession:
    """Aggregate, observable state of one research run.

    Instances are never mutated; every update produces a new snapshot.
    """

    query: str
    id: str = field(default_factory=_new_session_id)
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: ResearchState = field(default_factory=ResearchState.idle)
    nodes: dict[str, ResearchNode] = field(default_factory=dict)
    learnings: tuple[Learning, ...] = ()
    report: str = ""

    @classmethod
    def begin(cls, query: str) -> ResearchSession:
        """Create a researching session with its root node registered."""
        root = ResearchNode(
            id="0",
            query=query,
            status=NodeStatus.GENERATING_QUERY,
        )
        return cls(query=query, state=ResearchState.researching(), nodes={"0": root})

    @property
    def is_active(self) -> bool:
        return self.state.phase in (ResearchPhase.RESEARCHING, ResearchPhase.GENERATING_REPORT)

    def with_state(self, state: ResearchState) -> ResearchSession:
        return replace(self, state=state)

    def with_node(self, node: ResearchNode) -> ResearchSession:
        nodes = dict(self.nodes)
        nodes[node.id] = node
        return replace(self, nodes=nodes)

    def children_of(self, node_id: str) -> list[ResearchNode]:
        return sorted(
            (n for n in self.nodes.values() if n.parent_id == node_id),
            key=lambda n: n.id,
        )
