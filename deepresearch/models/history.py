"""Persisted research history record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from deepresearch.models.research import Learning
from deepresearch.models.session import ResearchSession


@dataclass(frozen=True)
class ResearchHistory:
    """A finished research session as stored in the history collection."""

    id: str
    query: str
    report: str = ""
    learnings: tuple[Learning, ...] = ()
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "complete"  # "complete", "error"

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("History record must have an id")

    @classmethod
    def from_session(cls, session: ResearchSession, status: str = "complete") -> ResearchHistory:
        return cls(
            id=session.id,
            query=session.query,
            report=session.report,
            learnings=session.learnings,
            start_time=session.start_time,
            end_time=datetime.now(timezone.utc),
            status=status,
        )

    def to_doc(self) -> dict:
        return {
            "_id": self.id,
            "query": self.query,
            "report": self.report,
            "learnings": [lr.to_doc() for lr in self.learnings],
            "start_time": self.start_time,
            "end_time": self.end_time,
            "status": self.status,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> ResearchHistory:
        now = datetime.now(timezone.utc)
        return cls(
            id=str(doc["_id"]),
            query=doc.get("query", ""),
            report=doc.get("report", ""),
            learnings=tuple(Learning.from_doc(lr) for lr in doc.get("learnings", [])),
            start_time=doc.get("start_time", now),
            end_time=doc.get("end_time", now),
            status=doc.get("status", "complete"),
        )
