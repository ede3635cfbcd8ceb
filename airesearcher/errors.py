"""Domain exceptions for research service and boundary diagnostics."""

from __future__ import annotations


class ResearchServiceError(RuntimeError):
    """Base class for failures surfaced by `ResearchService.process_content`."""

    def __init__(self, detail: str, *, hint: str | None = None) -> None:
        """Initialize a service error with user-facing detail and optional hint."""

        super().__init__(detail)
        self.detail = detail
        self.hint = hint


class MissingApiKeyError(ResearchServiceError):
    """Raised when no API key was resolved before issuing a remote call."""

    def __init__(self) -> None:
        """Initialize missing-key diagnostics with a configuration hint."""

        super().__init__(
            "Missing Gemini API key.",
            hint=(
                "Set `GEMINI_API_KEY`, pass `--api-key`, or store one with "
                "`airesearcher credentials --set-api-key`."
            ),
        )


class RequestCancelled(ResearchServiceError):
    """Raised when the caller cancels an in-flight call or backoff sleep."""

    def __init__(self, detail: str = "request cancelled before completion") -> None:
        """Initialize cancellation error detail."""

        super().__init__(detail, hint="Retry the whole request later.")


class RateLimitInterrupted(RequestCancelled):
    """Raised when waiting for a rate-limit permit is interrupted."""

    def __init__(self) -> None:
        """Initialize rate-limit interruption detail."""

        super().__init__("interrupted while waiting for rate limit")


class QuotaExceededAfterRetries(ResearchServiceError):
    """Raised when the upstream quota signal persists past the retry budget."""

    def __init__(self, retries: int) -> None:
        """Initialize exhaustion error with the number of retries performed."""

        super().__init__(
            f"quota exceeded after {retries} retries, retry later",
            hint="Wait 1-2 minutes before sending another request.",
        )
        self.retries = retries


class TransportFailure(ResearchServiceError):
    """Raised for non-retryable HTTP or network failures of the remote call."""

    def __init__(
        self,
        detail: str,
        *,
        failure_kind: str = "transport",
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        """Initialize transport failure metadata for boundary diagnostics."""

        super().__init__(detail)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_code = provider_code


class MalformedUpstreamResponse(ResearchServiceError):
    """Raised when the remote response body cannot be parsed at all."""

    def __init__(self) -> None:
        """Initialize malformed-response detail."""

        super().__init__("could not interpret remote response")
