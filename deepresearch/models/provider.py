"""LLM provider domain models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ProviderType(str, Enum):
    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"


@dataclass(frozen=True)
class LLMMessage:
    role: str  # "system", "user", "assistant"
    content: str

    @classmethod
    def system(cls, content: str) -> LLMMessage:
        return cls("system", content)

    @classmethod
    def user(cls, content: str) -> LLMMessage:
        return cls("user", content)

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class LLMConfig:
    """Sampling parameters for one streamed request.

    The three research calls want different trade-offs: query planning is
    allowed to be creative, extraction should stay close to the sources, and
    the report needs a large output budget.
    """

    model: str = ""
    max_tokens: int = 4096
    temperature: float = 0.7
    stop_sequences: tuple[str, ...] = ()

    @classmethod
    def for_planning(cls, model: str = "") -> LLMConfig:
        return cls(model=model, max_tokens=2048, temperature=0.7)

    @classmethod
    def for_extraction(cls, model: str = "") -> LLMConfig:
        return cls(model=model, max_tokens=4096, temperature=0.3)

    @classmethod
    def for_report(cls, model: str = "") -> LLMConfig:
        return cls(model=model, max_tokens=8192, temperature=0.5)
