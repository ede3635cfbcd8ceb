"""Response envelope parsing for generate-content replies.

Responsibilities:
- Parse the raw body once into a tagged variant.
- Tolerate missing or mistyped fields at every nesting level.
- Render variants into result text; only unparsable bodies raise.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Union

from ..errors import MalformedUpstreamResponse


NO_CANDIDATES_MESSAGE = "No response generated. Content may have been filtered."
EMPTY_RESPONSE_MESSAGE = "Empty response from AI model."
_UNKNOWN_ERROR_MESSAGE = "unknown error"


@dataclass(frozen=True, slots=True)
class UpstreamError:
    """Envelope carrying a top-level `error` object."""

    message: str


@dataclass(frozen=True, slots=True)
class NoCandidates:
    """Envelope without a non-empty `candidates` list."""


@dataclass(frozen=True, slots=True)
class EmptyCandidate:
    """First candidate present but without usable text."""


@dataclass(frozen=True, slots=True)
class CandidateText:
    """First candidate's first part text."""

    text: str


Envelope = Union[UpstreamError, NoCandidates, EmptyCandidate, CandidateText]


def _first(value: Any) -> Any:
    """Return the first element of a non-empty list, else `None`."""

    if isinstance(value, list) and value:
        return value[0]
    return None


def _field(value: Any, key: str) -> Any:
    """Return `value[key]` when `value` is a mapping, else `None`."""

    if isinstance(value, dict):
        return value.get(key)
    return None


def _error_message(error_payload: Any) -> str:
    """Return the error message, falling back to a generic label."""

    if isinstance(error_payload, str) and error_payload.strip():
        return error_payload
    message = _field(error_payload, "message")
    if isinstance(message, str) and message:
        return message
    return _UNKNOWN_ERROR_MESSAGE


def parse_envelope(raw_body: str | bytes) -> Envelope:
    """Parse a raw response body into one envelope variant.

    Raises:
        MalformedUpstreamResponse: If the body is not valid JSON.
    """

    try:
        root = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as exc:
        raise MalformedUpstreamResponse() from exc

    if isinstance(root, dict) and "error" in root:
        return UpstreamError(message=_error_message(root["error"]))

    candidates = _field(root, "candidates")
    if not isinstance(candidates, list) or not candidates:
        return NoCandidates()

    first_part = _first(_field(_field(candidates[0], "content"), "parts"))
    text = _field(first_part, "text")
    if not isinstance(text, str) or not text:
        return EmptyCandidate()
    return CandidateText(text=text)


def render_envelope(envelope: Envelope) -> str:
    """Return result text for an envelope variant."""

    if isinstance(envelope, CandidateText):
        return envelope.text
    if isinstance(envelope, UpstreamError):
        return f"Error: {envelope.message}"
    if isinstance(envelope, NoCandidates):
        return NO_CANDIDATES_MESSAGE
    return EMPTY_RESPONSE_MESSAGE


def diagnostic_kind(envelope: Envelope) -> str | None:
    """Return a log label for soft outcomes, or `None` for extracted text."""

    if isinstance(envelope, UpstreamError):
        return "upstream_error"
    if isinstance(envelope, NoCandidates):
        return "no_candidates"
    if isinstance(envelope, EmptyCandidate):
        return "empty_text"
    return None


def extract_response_text(raw_body: str | bytes) -> str:
    """Parse a raw body and return extracted text or a soft diagnostic."""

    return render_envelope(parse_envelope(raw_body))
