"""Progress events emitted by the research engine.

Every node-scoped step carries a `node_id` and, keyword-only, the id of the
node's parent, so a node can be placed in the tree by whichever of its steps
arrives first. Reasoning and report steps carry text deltas rather than whole
values.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from deepresearch.models.research import (
    Learning,
    ProcessedSearchResult,
    SearchQuery,
    WebSearchResult,
)


@dataclass(frozen=True)
class ResearchStep:
    """Base class for all progress events."""


@dataclass(frozen=True)
class NodeStep(ResearchStep):
    node_id: str
    parent_node_id: str | None = field(default=None, kw_only=True)


@dataclass(frozen=True)
class GeneratingQuery(NodeStep):
    query: SearchQuery | None = None


@dataclass(frozen=True)
class GeneratingQueryReasoning(NodeStep):
    delta: str = ""


@dataclass(frozen=True)
class GeneratedQuery(NodeStep):
    query: SearchQuery | None = None


@dataclass(frozen=True)
class Searching(NodeStep):
    query: str = ""


@dataclass(frozen=True)
class SearchComplete(NodeStep):
    results: tuple[WebSearchResult, ...] = ()


@dataclass(frozen=True)
class ProcessingResult(NodeStep):
    query: str = ""
    result: ProcessedSearchResult | None = None


@dataclass(frozen=True)
class ProcessingResultReasoning(NodeStep):
    delta: str = ""


@dataclass(frozen=True)
class NodeComplete(NodeStep):
    result: ProcessedSearchResult | None = None

    @property
    def learnings(self) -> tuple[Learning, ...]:
        return self.result.learnings if self.result else ()


@dataclass(frozen=True)
class Error(NodeStep):
    message: str = ""


@dataclass(frozen=True)
class Complete(ResearchStep):
    learnings: tuple[Learning, ...] = ()


@dataclass(frozen=True)
class GeneratingReport(ResearchStep):
    delta: str = ""


@dataclass(frozen=True)
class ReportComplete(ResearchStep):
    report: str = ""
