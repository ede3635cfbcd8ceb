"""Retry policy and per-call retry state for quota-limited provider calls.

Responsibilities:
- Compute exponential backoff delays with bounded jitter.
- Track one call's retry progress as an explicit state machine.

States move `ATTEMPTING -> BACKOFF -> ATTEMPTING ...` and end in exactly one
of `SUCCEEDED`, `EXHAUSTED` or `NON_RETRYABLE`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import random
import threading


class RetryPhase(str, Enum):
    """Lifecycle phases of a single provider call."""

    ATTEMPTING = "attempting"
    BACKOFF = "backoff"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    NON_RETRYABLE = "non_retryable"


_TERMINAL_PHASES = frozenset(
    {RetryPhase.SUCCEEDED, RetryPhase.EXHAUSTED, RetryPhase.NON_RETRYABLE}
)


@dataclass(slots=True)
class BackoffPolicy:
    """Exponential backoff with jitter, clamped to `[base, max]` seconds.

    Attributes:
        max_retries: Retries allowed after the initial attempt.
        base_seconds: Delay before the first retry, before jitter.
        max_seconds: Upper bound for any delay.
        jitter: Fraction of each delay used as the symmetric jitter range.
        rng: Random source; inject a seeded `random.Random` for determinism.
    """

    max_retries: int = 5
    base_seconds: float = 12.0
    max_seconds: float = 120.0
    jitter: float = 0.5
    rng: random.Random = field(default_factory=random.Random)

    def __post_init__(self) -> None:
        """Validate policy bounds."""

        if self.max_retries < 0:
            raise ValueError("`max_retries` must be zero or positive.")
        if self.base_seconds < 0.0 or self.max_seconds < self.base_seconds:
            raise ValueError("Backoff bounds must satisfy 0 <= base <= max.")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("`jitter` must be within [0, 1].")

    def delay_for(self, retry_index: int) -> float:
        """Return the jittered delay in seconds before retry `retry_index` (0-based)."""

        nominal = min(self.base_seconds * (2**retry_index), self.max_seconds)
        if self.jitter == 0.0:
            return nominal
        spread = nominal * self.jitter
        low = max(self.base_seconds - nominal, -spread)
        high = min(self.max_seconds - nominal, spread)
        return nominal + self.rng.uniform(low, high)


@dataclass(slots=True)
class RetryState:
    """Retry bookkeeping scoped to one in-flight call."""

    policy: BackoffPolicy
    phase: RetryPhase = RetryPhase.ATTEMPTING
    retries: int = 0
    total_backoff_seconds: float = 0.0

    @property
    def finished(self) -> bool:
        """Return whether the state machine reached a terminal phase."""

        return self.phase in _TERMINAL_PHASES

    def record_success(self) -> None:
        """Transition an attempt into the succeeded phase."""

        self._require_phase(RetryPhase.ATTEMPTING)
        self.phase = RetryPhase.SUCCEEDED

    def record_non_retryable(self) -> None:
        """Transition an attempt into the non-retryable failure phase."""

        self._require_phase(RetryPhase.ATTEMPTING)
        self.phase = RetryPhase.NON_RETRYABLE

    def record_retryable(self) -> float | None:
        """Record a retryable failure and return the backoff delay.

        Returns `None` and moves to `EXHAUSTED` when the retry budget is spent.
        """

        self._require_phase(RetryPhase.ATTEMPTING)
        if self.retries >= self.policy.max_retries:
            self.phase = RetryPhase.EXHAUSTED
            return None
        delay = self.policy.delay_for(self.retries)
        self.phase = RetryPhase.BACKOFF
        return delay

    def complete_backoff(self, delay: float) -> None:
        """Finish a backoff sleep and start the next attempt."""

        self._require_phase(RetryPhase.BACKOFF)
        self.retries += 1
        self.total_backoff_seconds += delay
        self.phase = RetryPhase.ATTEMPTING

    def _require_phase(self, expected: RetryPhase) -> None:
        """Reject transitions that do not start from the expected phase."""

        if self.phase is not expected:
            raise RuntimeError(
                f"Invalid retry transition from `{self.phase.value}`; "
                f"expected `{expected.value}`."
            )


def wait_for_cancel(event: threading.Event, seconds: float) -> bool:
    """Wait up to `seconds` and return `True` when `event` was set meanwhile."""

    return event.wait(seconds)
