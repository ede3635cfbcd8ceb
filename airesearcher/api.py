"""HTTP endpoint for content processing.

Serves:
- POST /api/research/process: process one request, returns `{"result": ...}`.
- GET /api/research/operations: list known operations.
- GET /health: liveness probe.

The process handler is sync so each request runs on its own worker thread;
the other handlers run on the event loop and stay responsive while workers
are blocked on the rate limiter. Every process request carries a cancel
event that `ResearchServer` sets before uvicorn waits for open connections.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import socket
import threading
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
import uvicorn

from .errors import (
    MalformedUpstreamResponse,
    QuotaExceededAfterRetries,
    RequestCancelled,
    ResearchServiceError,
    TransportFailure,
)
from .llm.rate_limiter import TokenBucketRateLimiter
from .models.datatypes import KNOWN_OPERATIONS, ResearchRequest
from .service import ResearchService


class ProcessRequestBody(BaseModel):
    """JSON body accepted by the process endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    content: str
    operation: str
    tone: str | None = None
    target_language: str | None = Field(default=None, alias="targetLanguage")

    def to_request(self) -> ResearchRequest:
        """Convert the HTTP body into the service request record."""

        return ResearchRequest(
            content=self.content,
            operation=self.operation,
            tone=self.tone,
            target_language=self.target_language,
        )


class ProcessResponseBody(BaseModel):
    """JSON body returned by the process endpoint."""

    result: str


def _error_status(exc: ResearchServiceError) -> int:
    """Map service errors to HTTP status codes."""

    if isinstance(exc, RequestCancelled):
        return 503
    if isinstance(exc, QuotaExceededAfterRetries):
        return 429
    if isinstance(exc, TransportFailure | MalformedUpstreamResponse):
        return 502
    return 500


class InflightRequests:
    """Cancel events of process requests currently being handled."""

    def __init__(self, rate_limiter: TokenBucketRateLimiter | None = None) -> None:
        """Initialize an empty registry bound to the shared rate limiter."""

        self.rate_limiter = rate_limiter
        self._events: set[threading.Event] = set()
        self._lock = threading.Lock()
        self._released = False

    @property
    def active(self) -> int:
        """Return how many requests are registered."""

        with self._lock:
            return len(self._events)

    def open(self) -> threading.Event:
        """Register a request and return its cancel event.

        After `release_all` the returned event is already set, so late requests
        fail fast instead of blocking shutdown.
        """

        event = threading.Event()
        with self._lock:
            if self._released:
                event.set()
            self._events.add(event)
        return event

    def close(self, event: threading.Event) -> None:
        """Unregister a finished request."""

        with self._lock:
            self._events.discard(event)

    def release_all(self) -> int:
        """Cancel every registered request and interrupt rate-limit waiters."""

        with self._lock:
            self._released = True
            events = list(self._events)
        for event in events:
            event.set()
        if self.rate_limiter is not None:
            self.rate_limiter.interrupt_waiters()
        return len(events)


class ResearchServer(uvicorn.Server):
    """uvicorn server that cancels in-flight requests when shutdown starts.

    uvicorn waits for open connections before running lifespan shutdown, so
    blocked requests are released here first.
    """

    def __init__(self, config: uvicorn.Config, inflight: InflightRequests) -> None:
        """Initialize the server with the registry of the served app."""

        super().__init__(config)
        self.inflight = inflight

    async def shutdown(self, sockets: list[socket.socket] | None = None) -> None:
        self.inflight.release_all()
        await super().shutdown(sockets=sockets)


def create_app(
    service: ResearchService,
    *,
    rate_limiter: TokenBucketRateLimiter | None = None,
    model: str | None = None,
) -> FastAPI:
    """Create the FastAPI application around one service instance.

    The app keeps its `InflightRequests` registry on `app.state.inflight`; pass
    it to `ResearchServer` so shutdown cancels requests still waiting on
    `rate_limiter` or in a retry backoff.
    """

    inflight = InflightRequests(rate_limiter)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        inflight.release_all()

    app = FastAPI(
        title="AI Researcher API",
        description="Content processing backed by a generative-text model",
        lifespan=lifespan,
    )
    app.state.inflight = inflight

    @app.exception_handler(ResearchServiceError)
    async def _service_error_handler(_request: Request, exc: ResearchServiceError) -> JSONResponse:
        content: dict[str, str] = {"error": exc.detail, "kind": type(exc).__name__}
        if exc.hint:
            content["hint"] = exc.hint
        headers = {"Retry-After": "120"} if isinstance(exc, QuotaExceededAfterRetries) else None
        return JSONResponse(content=content, status_code=_error_status(exc), headers=headers)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok", "service": "airesearcher", "model": model or "unknown"}

    @app.get("/api/research/operations")
    async def operations() -> dict[str, list[str]]:
        return {"operations": sorted(KNOWN_OPERATIONS)}

    @app.post("/api/research/process", response_model=ProcessResponseBody)
    def process_content(body: ProcessRequestBody) -> ProcessResponseBody:
        """Process content with the requested operation."""
        cancel_event = inflight.open()
        try:
            response = service.process_content(body.to_request(), cancel_event)
        finally:
            inflight.close(cancel_event)
        return ProcessResponseBody(result=response.result)

    return app
