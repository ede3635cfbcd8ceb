"""LLM-facing building blocks for content processing.

This package defines the prompt library, the token-bucket rate limiter, the
retry policy, the Gemini HTTP client, and response envelope parsing.
"""

from .envelope import extract_response_text, parse_envelope
from .gemini_client import GeminiClient, RemoteCallResult
from .prompts import PromptLibrary
from .rate_limiter import TokenBucketRateLimiter
from .retry import BackoffPolicy, RetryPhase, RetryState

__all__ = [
    "BackoffPolicy",
    "GeminiClient",
    "PromptLibrary",
    "RemoteCallResult",
    "RetryPhase",
    "RetryState",
    "TokenBucketRateLimiter",
    "extract_response_text",
    "parse_envelope",
]
