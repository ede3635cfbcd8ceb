"""Unit tests for the Gemini HTTP client, its retry loop, and error mapping."""

from __future__ import annotations

import json
import random
import threading

import pytest
import requests

from airesearcher.errors import (
    MissingApiKeyError,
    QuotaExceededAfterRetries,
    RequestCancelled,
    TransportFailure,
)
from airesearcher.llm.gemini_client import GeminiClient
from airesearcher.llm.retry import BackoffPolicy


_SUCCESS_BODY = json.dumps({"candidates": [{"content": {"parts": [{"text": "ok"}]}}]})
_QUOTA_BODY = json.dumps(
    {"error": {"code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}}
)


class _MockRequestsResponse:
    """Minimal requests response mock used by client tests."""

    def __init__(self, *, payload: bytes, status_code: int = 200) -> None:
        """Initialize response with payload bytes and status code."""

        self.content = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        """Raise HTTP error when status code indicates failure."""

        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class _RecordingWaiter:
    """Backoff waiter double that records delays without sleeping."""

    def __init__(self, cancel_on_call: int | None = None) -> None:
        """Initialize recording storage and optional cancellation trigger."""

        self.delays: list[float] = []
        self._cancel_on_call = cancel_on_call

    def __call__(self, event: threading.Event, seconds: float) -> bool:
        """Record one delay and optionally report cancellation."""

        self.delays.append(seconds)
        if self._cancel_on_call is not None and len(self.delays) >= self._cancel_on_call:
            event.set()
        return event.is_set()


def _client(waiter: _RecordingWaiter, **overrides: object) -> GeminiClient:
    """Build a client with deterministic jitter and a recording waiter."""

    settings: dict[str, object] = {
        "api_key": "test-key",
        "backoff_policy": BackoffPolicy(rng=random.Random(42)),
        "waiter": waiter,
    }
    settings.update(overrides)
    return GeminiClient(**settings)  # type: ignore[arg-type]


def _sequence_post(responses: list[_MockRequestsResponse], calls: list[dict[str, object]]):
    """Return a fake `requests.post` replaying responses and recording calls."""

    def _mock_post(url: str, **kwargs: object) -> _MockRequestsResponse:
        """Replay the next response, repeating the last one when exhausted."""

        calls.append({"url": url, **kwargs})
        index = min(len(calls) - 1, len(responses) - 1)
        return responses[index]

    return _mock_post


def test_client_posts_contents_envelope_with_key_header_and_timeout(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """The request should embed the prompt in Gemini's envelope and carry the API key."""

    calls: list[dict[str, object]] = []
    monkeypatch.setattr(
        "airesearcher.llm.gemini_client.requests.post",
        _sequence_post([_MockRequestsResponse(payload=_SUCCESS_BODY.encode("utf-8"))], calls),
    )

    result = _client(_RecordingWaiter()).generate_content("Summarize this")

    assert result.body == _SUCCESS_BODY.encode("utf-8")
    assert result.retries == 0
    assert calls[0]["url"] == (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        "gemini-2.5-flash:generateContent"
    )
    assert calls[0]["json"] == {"contents": [{"parts": [{"text": "Summarize this"}]}]}
    assert calls[0]["headers"] == {
        "x-goog-api-key": "test-key",
        "Content-Type": "application/json",
    }
    assert calls[0]["timeout"] == 60.0


def test_client_retries_too_many_requests_then_succeeds(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Two 429 responses followed by success should record exactly two retries."""

    calls: list[dict[str, object]] = []
    quota = _MockRequestsResponse(payload=_QUOTA_BODY.encode("utf-8"), status_code=429)
    success = _MockRequestsResponse(payload=_SUCCESS_BODY.encode("utf-8"))
    monkeypatch.setattr(
        "airesearcher.llm.gemini_client.requests.post",
        _sequence_post([quota, quota, success], calls),
    )
    waiter = _RecordingWaiter()
    client = _client(waiter)

    result = client.generate_content("prompt")

    assert result.body == _SUCCESS_BODY.encode("utf-8")
    assert result.retries == 2
    assert len(calls) == 3
    assert len(waiter.delays) == 2
    assert 12.0 <= waiter.delays[0] <= 18.0
    assert 12.0 <= waiter.delays[1] <= 36.0
    assert client.retry_attempt_count == 2


def test_client_raises_quota_exceeded_after_exactly_five_retries(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A persistent 429 should fail after five retries, i.e. six attempts."""

    calls: list[dict[str, object]] = []
    quota = _MockRequestsResponse(payload=_QUOTA_BODY.encode("utf-8"), status_code=429)
    monkeypatch.setattr(
        "airesearcher.llm.gemini_client.requests.post",
        _sequence_post([quota], calls),
    )
    waiter = _RecordingWaiter()
    client = _client(waiter)

    with pytest.raises(QuotaExceededAfterRetries, match="quota exceeded after 5 retries") as exc_info:
        client.generate_content("prompt")

    assert exc_info.value.retries == 5
    assert len(calls) == 6
    assert len(waiter.delays) == 5
    assert all(12.0 <= delay <= 120.0 for delay in waiter.delays)
    assert client.retry_attempt_count == 5


def test_client_does_not_retry_server_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    """Non-429 HTTP failures should surface immediately as transport failures."""

    calls: list[dict[str, object]] = []
    monkeypatch.setattr(
        "airesearcher.llm.gemini_client.requests.post",
        _sequence_post(
            [_MockRequestsResponse(payload=b'{"error":{"message":"backend down"}}', status_code=500)],
            calls,
        ),
    )
    waiter = _RecordingWaiter()

    with pytest.raises(TransportFailure, match=r"Gemini request failed \(HTTP 500\): backend down") as exc_info:
        _client(waiter).generate_content("prompt")

    assert exc_info.value.status_code == 500
    assert exc_info.value.failure_kind == "http_error"
    assert len(calls) == 1
    assert waiter.delays == []


def test_client_classifies_invalid_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """Authentication failures should be classified and not retried."""

    calls: list[dict[str, object]] = []
    monkeypatch.setattr(
        "airesearcher.llm.gemini_client.requests.post",
        _sequence_post(
            [
                _MockRequestsResponse(
                    payload=(
                        b'{"error":{"message":"API key not valid: AIzaSyDUMMYDUMMYDUMMY1234",'
                        b'"status":"INVALID_ARGUMENT"}}'
                    ),
                    status_code=400,
                )
            ],
            calls,
        ),
    )

    with pytest.raises(TransportFailure, match="authentication failed") as exc_info:
        _client(_RecordingWaiter()).generate_content("prompt")

    assert exc_info.value.failure_kind == "invalid_api_key"
    assert exc_info.value.provider_code == "INVALID_ARGUMENT"
    assert "AIzaSy" not in exc_info.value.detail
    assert "[redacted-key]" in exc_info.value.detail
    assert len(calls) == 1


def test_client_does_not_retry_network_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    """A network timeout should fail immediately with a timeout failure kind."""

    calls = {"count": 0}

    def _mock_post(_url: str, **_kwargs: object) -> _MockRequestsResponse:
        """Raise a timeout on every call."""

        calls["count"] += 1
        raise requests.Timeout("read timed out")

    monkeypatch.setattr("airesearcher.llm.gemini_client.requests.post", _mock_post)

    with pytest.raises(TransportFailure, match="timed out") as exc_info:
        _client(_RecordingWaiter()).generate_content("prompt")

    assert exc_info.value.failure_kind == "timeout"
    assert calls["count"] == 1


def test_client_maps_connection_errors_to_transport_failure(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Connection failures should surface as transport failures."""

    def _mock_post(_url: str, **_kwargs: object) -> _MockRequestsResponse:
        """Raise a connection error."""

        raise requests.ConnectionError("network down")

    monkeypatch.setattr("airesearcher.llm.gemini_client.requests.post", _mock_post)

    with pytest.raises(TransportFailure, match="transport error: network down") as exc_info:
        _client(_RecordingWaiter()).generate_content("prompt")

    assert exc_info.value.failure_kind == "transport"


def test_client_requires_api_key_before_any_request(monkeypatch: pytest.MonkeyPatch) -> None:
    """A missing API key should fail without touching the network."""

    def _unexpected_post(_url: str, **_kwargs: object) -> _MockRequestsResponse:
        """Fail the test if a request is attempted."""

        raise AssertionError("network must not be called without an API key")

    monkeypatch.setattr("airesearcher.llm.gemini_client.requests.post", _unexpected_post)

    with pytest.raises(MissingApiKeyError):
        _client(_RecordingWaiter(), api_key="   ").generate_content("prompt")


def test_cancellation_during_backoff_aborts_remaining_retries(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Cancelling during a backoff sleep should stop retrying."""

    calls: list[dict[str, object]] = []
    quota = _MockRequestsResponse(payload=_QUOTA_BODY.encode("utf-8"), status_code=429)
    monkeypatch.setattr(
        "airesearcher.llm.gemini_client.requests.post",
        _sequence_post([quota], calls),
    )
    waiter = _RecordingWaiter(cancel_on_call=1)

    with pytest.raises(RequestCancelled):
        _client(waiter).generate_content("prompt", threading.Event())

    assert len(calls) == 1
    assert len(waiter.delays) == 1


def test_preset_cancellation_skips_network_call(monkeypatch: pytest.MonkeyPatch) -> None:
    """An already-cancelled call should not reach the network."""

    calls: list[dict[str, object]] = []
    monkeypatch.setattr(
        "airesearcher.llm.gemini_client.requests.post",
        _sequence_post([_MockRequestsResponse(payload=b"{}")], calls),
    )
    cancel_event = threading.Event()
    cancel_event.set()

    with pytest.raises(RequestCancelled):
        _client(_RecordingWaiter()).generate_content("prompt", cancel_event)

    assert calls == []


def test_custom_base_url_and_model_build_endpoint() -> None:
    """Endpoint should combine base URL and model without duplicate slashes."""

    client = GeminiClient(api_key="k", base_url="http://localhost:9000/", model="gemini-test")

    assert client.endpoint == "http://localhost:9000/v1beta/models/gemini-test:generateContent"


def test_client_returns_body_bytes_without_decoding(monkeypatch: pytest.MonkeyPatch) -> None:
    """Response bytes should reach the caller as sent, invalid UTF-8 included."""

    raw_body = b'{"candidates":[{"content":{"parts":[{"text":"ok\xff"}]}}]}'
    calls: list[dict[str, object]] = []
    monkeypatch.setattr(
        "airesearcher.llm.gemini_client.requests.post",
        _sequence_post([_MockRequestsResponse(payload=raw_body)], calls),
    )

    result = _client(_RecordingWaiter()).generate_content("prompt")

    assert result.body == raw_body


def test_client_classifies_gateway_timeout_status(monkeypatch: pytest.MonkeyPatch) -> None:
    """HTTP 504 should be classified as a timeout and not retried."""

    calls: list[dict[str, object]] = []
    monkeypatch.setattr(
        "airesearcher.llm.gemini_client.requests.post",
        _sequence_post(
            [_MockRequestsResponse(payload=b'{"error":{"message":"deadline"}}', status_code=504)],
            calls,
        ),
    )

    with pytest.raises(TransportFailure, match=r"Gemini request timed out \(HTTP 504\)") as exc_info:
        _client(_RecordingWaiter()).generate_content("prompt")

    assert exc_info.value.failure_kind == "timeout"
    assert len(calls) == 1


def test_require_api_key_rejects_blank_key() -> None:
    """The key check should be callable on its own before any request."""

    GeminiClient(api_key="k").require_api_key()
    with pytest.raises(MissingApiKeyError):
        GeminiClient(api_key=None).require_api_key()
