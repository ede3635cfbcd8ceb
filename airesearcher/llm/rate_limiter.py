"""Token-bucket admission control for outbound provider calls.

Responsibilities:
- Bound the outbound call rate below the upstream quota.
- Block callers until a permit is available, without ever over-drawing.
- Turn cancellation of a blocked caller into `RateLimitInterrupted`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import threading
from time import monotonic
from typing import Callable

from ..errors import RateLimitInterrupted
from .retry import wait_for_cancel


@dataclass(slots=True)
class TokenBucketRateLimiter:
    """Thread-safe token bucket refilled by a fixed amount every full interval.

    The bucket starts full. Every elapsed `refill_interval_seconds` adds
    `refill_tokens` permits, capped at `capacity`.
    """

    capacity: int = 8
    refill_tokens: int = 8
    refill_interval_seconds: float = 60.0
    clock: Callable[[], float] = monotonic
    waiter: Callable[[threading.Event, float], bool] = wait_for_cancel
    _tokens: float = field(init=False, default=0.0)
    _last_refill_at: float = field(init=False, default=0.0)
    _lock: threading.Lock = field(init=False, default_factory=threading.Lock)
    _waiting_events: set[threading.Event] = field(init=False, default_factory=set)

    def __post_init__(self) -> None:
        """Validate bucket settings and start with a full bucket."""

        if self.capacity <= 0:
            raise ValueError("`capacity` must be a positive integer.")
        if self.refill_tokens <= 0:
            raise ValueError("`refill_tokens` must be a positive integer.")
        if self.refill_interval_seconds <= 0.0:
            raise ValueError("`refill_interval_seconds` must be positive.")
        self._tokens = float(self.capacity)
        self._last_refill_at = self.clock()

    @property
    def available_tokens(self) -> int:
        """Return permits available right now after applying due refills."""

        with self._lock:
            self._refill(self.clock())
            return int(self._tokens)

    @property
    def waiting_callers(self) -> int:
        """Return how many `acquire` calls are currently registered as waiting."""

        with self._lock:
            return len(self._waiting_events)

    def try_acquire(self) -> bool:
        """Take one permit if available without blocking."""

        with self._lock:
            return self._try_take(self.clock()) is None

    def acquire(self, cancel_event: threading.Event | None = None) -> float:
        """Block until one permit is taken and return total seconds waited.

        Raises:
            RateLimitInterrupted: If `cancel_event` is set before a permit is taken.
        """

        event = cancel_event if cancel_event is not None else threading.Event()
        waited = 0.0
        with self._lock:
            self._waiting_events.add(event)
        try:
            while True:
                if event.is_set():
                    raise RateLimitInterrupted()
                with self._lock:
                    wait_seconds = self._try_take(self.clock())
                if wait_seconds is None:
                    return waited
                if self.waiter(event, wait_seconds):
                    raise RateLimitInterrupted()
                waited += wait_seconds
        finally:
            with self._lock:
                self._waiting_events.discard(event)

    def interrupt_waiters(self) -> int:
        """Interrupt every blocked `acquire` call and return how many were signalled."""

        with self._lock:
            events = list(self._waiting_events)
        for event in events:
            event.set()
        return len(events)

    def _try_take(self, now: float) -> float | None:
        """Take a permit and return `None`, or return seconds until the next refill."""

        self._refill(now)
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return None
        return max(self._last_refill_at + self.refill_interval_seconds - now, 0.0)

    def _refill(self, now: float) -> None:
        """Add permits for every full interval elapsed since the last refill."""

        elapsed = now - self._last_refill_at
        if elapsed < self.refill_interval_seconds:
            return
        intervals = int(elapsed // self.refill_interval_seconds)
        self._tokens = min(
            float(self.capacity),
            self._tokens + intervals * self.refill_tokens,
        )
        self._last_refill_at += intervals * self.refill_interval_seconds
