"""Gemini HTTP client for generate-content calls.

Responsibilities:
- Embed one prompt in Gemini's `contents/parts` JSON envelope and POST it.
- Apply a per-attempt timeout; rate-limit waits happen before this client runs.
- Retry only HTTP 429 responses with jittered exponential backoff.
- Map every other failure to a non-retryable `TransportFailure`.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import re
import threading
from typing import Any, Callable

import requests

from ..errors import (
    MissingApiKeyError,
    QuotaExceededAfterRetries,
    RequestCancelled,
    TransportFailure,
)
from ..telemetry.logger import ServiceLogger
from .retry import BackoffPolicy, RetryState, wait_for_cancel


DEFAULT_API_BASE_URL = "https://generativelanguage.googleapis.com"
DEFAULT_MODEL = "gemini-2.5-flash"
_TOO_MANY_REQUESTS = 429


@dataclass(frozen=True, slots=True)
class RemoteCallResult:
    """Raw response body of a successful call and the retries it needed."""

    body: bytes
    retries: int


class GeminiClient:
    """Minimal requests-based Gemini generate-content HTTP client."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = DEFAULT_API_BASE_URL,
        model: str = DEFAULT_MODEL,
        timeout_seconds: float = 60.0,
        backoff_policy: BackoffPolicy | None = None,
        waiter: Callable[[threading.Event, float], bool] = wait_for_cancel,
        run_logger: ServiceLogger | None = None,
    ) -> None:
        """Initialize Gemini HTTP client settings and retry policy."""

        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.backoff_policy = backoff_policy if backoff_policy is not None else BackoffPolicy()
        self.waiter = waiter
        self.run_logger = run_logger if run_logger is not None else ServiceLogger()
        self._retry_attempt_count = 0
        self._counter_lock = threading.Lock()

    @property
    def endpoint(self) -> str:
        """Return the generate-content endpoint URL for the configured model."""

        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    @property
    def retry_attempt_count(self) -> int:
        """Return retries performed across all calls made by this client."""

        with self._counter_lock:
            return self._retry_attempt_count

    def require_api_key(self) -> None:
        """Raise `MissingApiKeyError` when no API key is configured."""

        if not self.api_key:
            raise MissingApiKeyError()

    @staticmethod
    def build_request_body(prompt: str) -> dict[str, Any]:
        """Return the provider JSON envelope carrying one prompt."""

        return {"contents": [{"parts": [{"text": prompt}]}]}

    def generate_content(
        self,
        prompt: str,
        cancel_event: threading.Event | None = None,
    ) -> RemoteCallResult:
        """Send one logical request and return the raw response body.

        Raises:
            MissingApiKeyError: If no API key is configured.
            RequestCancelled: If `cancel_event` is set before or between attempts.
            QuotaExceededAfterRetries: If HTTP 429 persists past the retry budget.
            TransportFailure: For any other HTTP or network failure.
        """

        self.require_api_key()
        payload = self.build_request_body(prompt)
        event = cancel_event if cancel_event is not None else threading.Event()
        state = RetryState(policy=self.backoff_policy)
        while True:
            if event.is_set():
                raise RequestCancelled()
            try:
                body = self._post_once(payload)
            except TransportFailure as failure:
                if failure.status_code != _TOO_MANY_REQUESTS:
                    state.record_non_retryable()
                    raise
                self._back_off(state, failure, event)
                continue
            state.record_success()
            return RemoteCallResult(body=body, retries=state.retries)

    def _back_off(
        self,
        state: RetryState,
        failure: TransportFailure,
        event: threading.Event,
    ) -> None:
        """Sleep before the next attempt or raise when retries are exhausted."""

        delay = state.record_retryable()
        if delay is None:
            raise QuotaExceededAfterRetries(state.retries) from failure
        self.run_logger.log_retry(
            attempt=state.retries + 1,
            delay_seconds=delay,
            status_code=_TOO_MANY_REQUESTS,
        )
        if self.waiter(event, delay):
            raise RequestCancelled() from failure
        state.complete_backoff(delay)
        with self._counter_lock:
            self._retry_attempt_count += 1

    def _post_once(self, payload: dict[str, Any]) -> bytes:
        """Execute one POST attempt and map failures consistently."""

        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        try:
            response = requests.post(
                self.endpoint,
                headers=headers,
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            response_bytes = bytes(response.content)
        except requests.HTTPError as exc:
            raise self._http_error_to_failure(exc) from exc
        except requests.RequestException as exc:
            failure_kind = self._classify_transport_failure(exc)
            if failure_kind == "timeout":
                detail = "Gemini request timed out."
            else:
                detail = (
                    "Gemini request transport error: "
                    f"{self._short_message(self._redact_sensitive_tokens(str(exc)))}"
                )
            raise TransportFailure(detail, failure_kind=failure_kind) from exc
        return response_bytes

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        """Decode an HTTP error body into a best-effort UTF-8 payload string."""

        response = exc.response
        if response is None:
            return ""
        return bytes(response.content).decode("utf-8", errors="replace").strip()

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        return re.sub(r"\bAIza[0-9A-Za-z_-]{10,}", "[redacted-key]", text)

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> tuple[str, str | None]:
        """Extract a concise provider message and optional provider status code."""

        if not body:
            return "", None

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body)), None

        provider_code: str | None = None
        message: str | None = None
        if isinstance(payload, dict):
            error_payload = payload.get("error")
            if isinstance(error_payload, dict):
                status_value = error_payload.get("status")
                if isinstance(status_value, str) and status_value.strip():
                    provider_code = status_value.strip()
                message_value = error_payload.get("message")
                if isinstance(message_value, str) and message_value.strip():
                    message = message_value.strip()

        if message is None:
            message = body

        return cls._short_message(cls._redact_sensitive_tokens(message)), provider_code

    @staticmethod
    def _classify_http_failure(
        status_code: int,
        provider_message: str,
        provider_code: str | None,
    ) -> str:
        """Classify Gemini HTTP errors into deterministic diagnostic kinds."""

        message_lower = provider_message.lower()
        normalized_code = provider_code.upper() if provider_code is not None else ""

        if status_code == _TOO_MANY_REQUESTS or normalized_code == "RESOURCE_EXHAUSTED":
            return "rate_limited"
        if status_code in {401, 403} or "api key" in message_lower:
            return "invalid_api_key"
        if status_code == 404 and "model" in message_lower:
            return "invalid_model"
        if status_code in {408, 504}:
            return "timeout"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures into deterministic diagnostic kinds."""

        if isinstance(reason, requests.Timeout):
            return "timeout"
        return "transport"

    @classmethod
    def _http_error_to_failure(cls, exc: requests.HTTPError) -> TransportFailure:
        """Convert HTTP errors into normalized transport failures with metadata."""

        status_code = exc.response.status_code if exc.response is not None else 0
        body = cls._decode_error_body(exc)
        provider_message, provider_code = cls._extract_provider_message(body)
        failure_kind = cls._classify_http_failure(status_code, provider_message, provider_code)

        headline = {
            "rate_limited": "Gemini rate limit hit",
            "invalid_api_key": "Gemini authentication failed",
            "invalid_model": "Gemini rejected the selected model",
            "timeout": "Gemini request timed out",
        }.get(failure_kind, "Gemini request failed")

        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        return TransportFailure(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            provider_code=provider_code,
        )
