"""Research domain models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class DeepResearchConfig:
    """Configuration for a research run."""

    breadth: int = 3
    max_depth: int = 2
    language: str = "en"
    search_language: str | None = None
    max_search_results: int = 5
    concurrency_limit: int = 2

    def __post_init__(self) -> None:
        if self.breadth < 0:
            raise ValueError("Research breadth must be >= 0")
        if self.max_depth < 0:
            raise ValueError("Research max_depth must be >= 0")
        if self.max_search_results < 1:
            raise ValueError("max_search_results must be >= 1")
        if self.concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")

    @property
    def resolved_search_language(self) -> str:
        return self.search_language or self.language


@dataclass(frozen=True)
class WebSearchResult:
    """A single raw hit returned by a search provider."""

    url: str
    content: str
    title: str | None = None

    def to_doc(self) -> dict:
        return {"url": self.url, "title": self.title, "content": self.content}

    @classmethod
    def from_doc(cls, doc: dict) -> WebSearchResult:
        return cls(
            url=doc.get("url", ""),
            title=doc.get("title"),
            content=doc.get("content", ""),
        )


@dataclass(frozen=True)
class Learning:
    """Atomic fact extracted during research, attributed to a source URL."""

    url: str
    learning: str
    title: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.url, self.learning)

    def to_doc(self) -> dict:
        return {"url": self.url, "title": self.title, "learning": self.learning}

    @classmethod
    def from_doc(cls, doc: dict) -> Learning:
        return cls(
            url=doc.get("url", ""),
            title=doc.get("title"),
            learning=doc.get("learning", ""),
        )


def dedupe_learnings(learnings) -> tuple[Learning, ...]:
    """Drop repeated (url, learning) pairs, keeping first-seen order."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for learning in learnings:
        if learning.key in seen:
            continue
        seen.add(learning.key)
        unique.append(learning)
    return tuple(unique)


@dataclass(frozen=True)
class SearchQuery:
    """A generated query together with the goal it should advance."""

    query: str
    research_goal: str = ""
    node_id: str = "0"


@dataclass(frozen=True)
class ProcessedSearchResult:
    """Learnings and follow-up questions extracted from one node's search."""

    learnings: tuple[Learning, ...] = ()
    follow_up_questions: tuple[str, ...] = ()


class NodeStatus(str, Enum):
    PENDING = "pending"
    GENERATING_QUERY = "generating_query"
    SEARCHING = "searching"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (NodeStatus.COMPLETE, NodeStatus.ERROR)

    @property
    def rank(self) -> int:
        return _NODE_STATUS_RANK[self]


_NODE_STATUS_RANK = {
    NodeStatus.PENDING: 0,
    NodeStatus.GENERATING_QUERY: 1,
    NodeStatus.SEARCHING: 2,
    NodeStatus.PROCESSING: 3,
    NodeStatus.COMPLETE: 4,
    NodeStatus.ERROR: 5,
}


@dataclass(frozen=True)
class ResearchNode:
    """One query+goal unit of the research tree."""

    id: str
    parent_id: str | None = None
    query: str | None = None
    research_goal: str | None = None
    status: NodeStatus = NodeStatus.PENDING
    learnings: tuple[Learning, ...] = ()
    search_results: tuple[WebSearchResult, ...] = ()
    error_message: str | None = None
    reasoning: str = ""

    def advance(self, status: NodeStatus) -> NodeStatus:
        """Return the status after moving towards `status`, never regressing."""
        if self.status.is_terminal:
            return self.status
        if status.rank > self.status.rank:
            return status
        return self.status
