"""Prompt template library for content-processing operations.

Responsibilities:
- Map each supported operation to a fixed English directive.
- Build the final instruction as `<directive>\n\n<content>` with content verbatim.
- Fall back to a generic directive for unknown operations instead of failing.
"""

from __future__ import annotations

from ..models.datatypes import ResearchRequest
from ..parsing import normalize_optional_string


_DEFAULT_TARGET_LANGUAGE = "English"
_FALLBACK_DIRECTIVE = "Please process the following content:"

_STATIC_DIRECTIVES: dict[str, str] = {
    "summarize": (
        "Please provide a comprehensive summary of the following content. "
        "Focus on the main points, key findings, and essential information. "
        "Keep it concise but informative."
    ),
    "analyze": (
        "Please analyze the following content in detail. "
        "Identify key themes, patterns, strengths, weaknesses, and implications. "
        "Provide insights and critical evaluation."
    ),
    "extract_key_points": (
        "Extract and list the key points from the following content. "
        "Present them as clear, actionable bullet points."
    ),
    "fact_check": (
        "Review the following content and verify the factual claims made. "
        "Identify any statements that may be inaccurate, misleading, or require "
        "verification. Provide sources or context where possible."
    ),
    "sentiment_analysis": (
        "Analyze the sentiment and tone of the following content. "
        "Identify whether it's positive, negative, or neutral, and explain the "
        "emotional undertones."
    ),
    "expand": (
        "Expand on the following content by adding more detail, examples, and "
        "explanations. Make it more comprehensive while maintaining accuracy."
    ),
    "simplify": (
        "Simplify the following content to make it easier to understand. "
        "Use plain language and break down complex concepts."
    ),
    "generate_questions": (
        "Generate thoughtful questions based on the following content. "
        "Create questions that test understanding and encourage deeper thinking."
    ),
    "categorize": (
        "Categorize and organize the following content into logical sections or "
        "themes. Identify the main categories and explain the classification."
    ),
    "validate": (
        "Validate the following content for accuracy, completeness, and logical "
        "consistency. Identify any gaps, errors, or areas that need improvement."
    ),
    "outline": (
        "Create a structured outline of the following content. "
        "Organize it hierarchically with main topics and subtopics."
    ),
}


class PromptLibrary:
    """Build prompt strings for supported content operations."""

    def directive(
        self,
        operation: str | None,
        *,
        tone: str | None = None,
        target_language: str | None = None,
    ) -> str:
        """Return the fixed directive sentence(s) for an operation."""

        if operation == "translate":
            return self.translate_directive(target_language)
        if operation == "rewrite":
            return self.rewrite_directive(tone)
        if operation is None:
            return _FALLBACK_DIRECTIVE
        return _STATIC_DIRECTIVES.get(operation, _FALLBACK_DIRECTIVE)

    def translate_directive(self, target_language: str | None) -> str:
        """Return translation directive, defaulting the language to English."""

        language = normalize_optional_string(target_language) or _DEFAULT_TARGET_LANGUAGE
        return (
            f"Translate the following content to {language}. "
            "Maintain the original meaning and tone."
        )

    def rewrite_directive(self, tone: str | None) -> str:
        """Return rewrite directive with a tone clause only when tone is given."""

        normalized_tone = normalize_optional_string(tone)
        tone_clause = f"Use a {normalized_tone} tone. " if normalized_tone else ""
        return (
            "Rewrite the following content to improve clarity, style, and readability. "
            f"{tone_clause}Maintain the original meaning."
        )

    def build_prompt(self, request: ResearchRequest) -> str:
        """Return the full instruction for a request; content is never altered."""

        directive = self.directive(
            request.operation,
            tone=request.tone,
            target_language=request.target_language,
        )
        return f"{directive}\n\n{request.content}"
