"""Generation backend: sub-query planning, learning extraction, report streaming."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Protocol, runtime_checkable

from deepresearch.errors import BackendError, DeepResearchError, ParseError
from deepresearch.infra.providers.base import LLMProvider
from deepresearch.models.provider import LLMConfig, LLMMessage
from deepresearch.models.research import (
    Learning,
    ProcessedSearchResult,
    SearchQuery,
    WebSearchResult,
)
from deepresearch.services import prompts

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], None]

MAX_CONTENT_CHARS = 8000


@runtime_checkable
class GenerationBackend(Protocol):
    """Text-generation capability used by the research engine."""

    async def generate_sub_queries(
        self,
        topic: str,
        breadth: int,
        *,
        goal: str | None = None,
        learnings: Sequence[Learning] = (),
        follow_ups: Sequence[str] = (),
        language: str = "en",
        search_language: str | None = None,
        on_delta: DeltaCallback | None = None,
    ) -> list[SearchQuery]:
        """Propose up to `breadth` (query, goal) pairs for a topic."""
        ...

    async def extract_learnings(
        self,
        query: str,
        results: Sequence[WebSearchResult],
        *,
        num_follow_ups: int = 3,
        language: str = "en",
        on_delta: DeltaCallback | None = None,
    ) -> ProcessedSearchResult:
        """Extract learnings and follow-up questions from search results."""
        ...

    def stream_report(
        self,
        query: str,
        learnings: Sequence[Learning],
        language: str = "en",
    ) -> AsyncIterator[str]:
        """Stream the final report as text deltas."""
        ...


def extract_json(text: str) -> dict:
    """Parse the JSON object embedded in a model response.

    Takes everything from the first '{' to the last '}', which also strips
    markdown fences and chatter around the object.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise ParseError(f"No JSON object in model output: {text[:200]!r}")
    try:
        parsed = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON in model output: {e}") from e
    if not isinstance(parsed, dict):
        raise ParseError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def parse_sub_queries(text: str, limit: int) -> list[SearchQuery]:
    data = extract_json(text)
    items = data.get("queries")
    if not isinstance(items, list):
        raise ParseError("Model output has no 'queries' list")

    queries = []
    for item in items:
        if not isinstance(item, dict):
            continue
        query = str(item.get("query") or "").strip()
        if not query or query == "undefined":
            continue
        queries.append(SearchQuery(
            query=query,
            research_goal=str(item.get("researchGoal") or ""),
        ))
    return queries[:limit]


def parse_processed_result(
    text: str, results: Sequence[WebSearchResult]
) -> ProcessedSearchResult:
    data = extract_json(text)
    raw_learnings = data.get("learnings") or []
    raw_follow_ups = data.get("followUpQuestions") or []
    if not isinstance(raw_learnings, list) or not isinstance(raw_follow_ups, list):
        raise ParseError("Model output 'learnings'/'followUpQuestions' must be lists")

    titles = {r.url: r.title for r in results}
    learnings = []
    for item in raw_learnings:
        if not isinstance(item, dict) or not item.get("learning"):
            continue
        url = str(item.get("url") or "")
        learnings.append(Learning(
            url=url,
            learning=str(item["learning"]),
            title=titles.get(url),
        ))

    return ProcessedSearchResult(
        learnings=tuple(learnings),
        follow_up_questions=tuple(str(q) for q in raw_follow_ups if q),
    )


def _trim(content: str, max_length: int = MAX_CONTENT_CHARS) -> str:
    if len(content) > max_length:
        return content[:max_length] + "..."
    return content


class LLMGenerationBackend:
    """GenerationBackend implemented on top of an LLMProvider."""

    def __init__(self, provider: LLMProvider, model: str = "") -> None:
        self._provider = provider
        self._model = model

    def _messages(self, user_prompt: str) -> list[LLMMessage]:
        return [
            LLMMessage.system(prompts.system_prompt()),
            LLMMessage.user(user_prompt),
        ]

    async def _collect(
        self,
        messages: list[LLMMessage],
        config: LLMConfig,
        on_delta: DeltaCallback | None,
    ) -> str:
        """Consume a provider stream, forwarding each delta."""
        parts: list[str] = []
        try:
            async for chunk in self._provider.stream(messages, config):
                parts.append(chunk)
                if on_delta:
                    on_delta(chunk)
        except DeepResearchError:
            raise
        except Exception as e:
            raise BackendError(str(e) or type(e).__name__) from e
        return "".join(parts)

    async def generate_sub_queries(
        self,
        topic: str,
        breadth: int,
        *,
        goal: str | None = None,
        learnings: Sequence[Learning] = (),
        follow_ups: Sequence[str] = (),
        language: str = "en",
        search_language: str | None = None,
        on_delta: DeltaCallback | None = None,
    ) -> list[SearchQuery]:
        if breadth <= 0:
            return []
        prompt = prompts.sub_queries_prompt(
            topic=topic,
            breadth=breadth,
            goal=goal,
            learnings=[lr.learning for lr in learnings],
            follow_ups=list(follow_ups),
            language=language,
            search_language=search_language,
        )
        text = await self._collect(
            self._messages(prompt),
            LLMConfig.for_planning(self._model),
            on_delta,
        )
        queries = parse_sub_queries(text, breadth)
        logger.debug("Generated %d sub-queries for: %s", len(queries), topic[:80])
        return queries

    async def extract_learnings(
        self,
        query: str,
        results: Sequence[WebSearchResult],
        *,
        num_follow_ups: int = 3,
        language: str = "en",
        on_delta: DeltaCallback | None = None,
    ) -> ProcessedSearchResult:
        contents = "\n".join(
            f'<content url="{r.url}">\n{_trim(r.content)}\n</content>' for r in results
        )
        prompt = prompts.extract_learnings_prompt(query, contents, num_follow_ups, language)
        text = await self._collect(
            self._messages(prompt),
            LLMConfig.for_extraction(self._model),
            on_delta,
        )
        return parse_processed_result(text, results)

    async def stream_report(
        self,
        query: str,
        learnings: Sequence[Learning],
        language: str = "en",
    ) -> AsyncIterator[str]:
        learnings_text = "\n".join(
            f'<learning index="{i}">\n{lr.learning}\n</learning>'
            for i, lr in enumerate(learnings, start=1)
        )
        messages = self._messages(prompts.report_prompt(query, learnings_text, language))
        config = LLMConfig.for_report(self._model)
        async for chunk in self._provider.stream(messages, config):
            yield chunk
