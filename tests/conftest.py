"""Shared pytest fixtures for the AI Researcher test suite."""

from __future__ import annotations

import threading
from typing import Iterator

from loguru import logger
import pytest


class FakeClock:
    """Manually advanced monotonic clock with a recording waiter."""

    def __init__(self) -> None:
        """Initialize fake time at zero with no recorded waits."""

        self.now = 0.0
        self.waits: list[float] = []

    def __call__(self) -> float:
        """Return current fake time."""

        return self.now

    def advance(self, seconds: float) -> None:
        """Move fake time forward."""

        self.now += seconds

    def wait(self, event: threading.Event, seconds: float) -> bool:
        """Record a wait, advance fake time, and report cancellation state."""

        self.waits.append(seconds)
        self.now += seconds
        return event.is_set()


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a fresh fake clock for rate-limit and backoff tests."""

    return FakeClock()


@pytest.fixture(autouse=True)
def _reset_loguru_handlers() -> Iterator[None]:
    """Drop loguru handlers after each test so no sink outlives its stream."""

    yield
    logger.remove()
