"""Content-processing orchestration.

Responsibilities:
- Run prompt build, rate-limit admission, remote call, and extraction in order.
- Keep per-request state local; only the injected rate limiter is shared.
- Let hard failures propagate unchanged and return soft diagnostics as results.
"""

from __future__ import annotations

import threading
from typing import Protocol

from .errors import ResearchServiceError
from .llm.envelope import diagnostic_kind, parse_envelope, render_envelope
from .llm.gemini_client import RemoteCallResult
from .llm.prompts import PromptLibrary
from .models.datatypes import ResearchRequest, ResearchResponse
from .telemetry.logger import ServiceLogger


class AdmissionGate(Protocol):
    """Protocol for blocking rate-limit admission."""

    def acquire(self, cancel_event: threading.Event | None = None) -> float:
        """Block until admitted and return seconds waited."""


class ContentGenerator(Protocol):
    """Protocol for the remote generate-content call."""

    def require_api_key(self) -> None:
        """Raise when the call could not be authenticated."""

    def generate_content(
        self,
        prompt: str,
        cancel_event: threading.Event | None = None,
    ) -> RemoteCallResult:
        """Send one prompt and return the raw response body."""


class ResearchService:
    """Process content requests against a generative-text provider."""

    def __init__(
        self,
        *,
        client: ContentGenerator,
        rate_limiter: AdmissionGate,
        prompts: PromptLibrary | None = None,
        run_logger: ServiceLogger | None = None,
    ) -> None:
        """Initialize the orchestrator with its injected collaborators."""

        self.client = client
        self.rate_limiter = rate_limiter
        self.prompts = prompts if prompts is not None else PromptLibrary()
        self.run_logger = run_logger if run_logger is not None else ServiceLogger()

    def process_content(
        self,
        request: ResearchRequest,
        cancel_event: threading.Event | None = None,
    ) -> ResearchResponse:
        """Process one request and return its result text.

        Raises:
            MissingApiKeyError: If no API key is configured; no permit is taken.
            RateLimitInterrupted: If admission waiting is cancelled.
            RequestCancelled: If the call is cancelled during a network call or backoff.
            QuotaExceededAfterRetries: If the upstream quota signal outlasts retries.
            TransportFailure: For any other remote-call failure.
            MalformedUpstreamResponse: If the response body cannot be parsed.
        """

        self.run_logger.log_stage_start("process", operation=request.operation)
        prompt = self.prompts.build_prompt(request)

        stage = "preflight"
        try:
            self.client.require_api_key()

            stage = "rate_limit"
            waited_seconds = self.rate_limiter.acquire(cancel_event)
            self.run_logger.log_stage_complete(
                stage, waited_seconds=f"{waited_seconds:.2f}"
            )

            stage = "remote_call"
            call_result = self.client.generate_content(prompt, cancel_event)
            self.run_logger.log_stage_complete(stage, retries=call_result.retries)

            stage = "extract"
            envelope = parse_envelope(call_result.body)
        except ResearchServiceError as exc:
            self.run_logger.log_stage_failure(stage, type(exc).__name__)
            raise

        kind = diagnostic_kind(envelope)
        if kind is not None:
            self.run_logger.log_diagnostic(kind)
        self.run_logger.log_stage_complete("process", operation=request.operation)
        return ResearchResponse(result=render_envelope(envelope))
