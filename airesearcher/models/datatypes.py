"""Core datatypes exchanged between the boundary layers and the service.

Key types:
- `ResearchRequest`: one content-processing request.
- `ResearchResponse`: the single-field result returned to callers.
"""

from __future__ import annotations

from dataclasses import dataclass


KNOWN_OPERATIONS: tuple[str, ...] = (
    "summarize",
    "analyze",
    "extract_key_points",
    "fact_check",
    "sentiment_analysis",
    "translate",
    "expand",
    "simplify",
    "generate_questions",
    "rewrite",
    "categorize",
    "validate",
    "outline",
)


@dataclass(frozen=True, slots=True)
class ResearchRequest:
    """A content-processing request.

    Attributes:
        content: Raw text to process; appended verbatim to the prompt.
        operation: Operation tag; unknown values use a generic template.
        tone: Optional tone, only used by `rewrite`.
        target_language: Optional language, only used by `translate`.
    """

    content: str
    operation: str
    tone: str | None = None
    target_language: str | None = None


@dataclass(frozen=True, slots=True)
class ResearchResponse:
    """Result text: extracted model output or a soft diagnostic sentence."""

    result: str
