"""Error taxonomy for the research engine and its collaborators."""

from __future__ import annotations


class DeepResearchError(Exception):
    """Base class for deep-research errors."""


class BackendError(DeepResearchError):
    """A search or generation backend call failed."""


class ParseError(DeepResearchError):
    """Model output could not be parsed into the expected structure."""


class ReportGenerationError(DeepResearchError):
    """The final report stream failed outside of any single node."""


class PersistenceError(DeepResearchError):
    """Saving or loading research history failed."""
