"""Structured phase logging for research service calls.

Responsibilities:
- Emit concise, deterministic phase-level runtime logs through `loguru`.
- Keep payloads and secrets out of log lines; only stage, event and safe context.
"""

from __future__ import annotations

import sys
from typing import TextIO

from loguru import logger as _loguru_logger


def configure_logging(sink: TextIO | None = None, level: str = "INFO") -> None:
    """Replace loguru handlers with one plain-message handler on `sink`."""

    _loguru_logger.remove()
    _loguru_logger.add(
        sink or sys.stderr,
        format="{message}",
        level=level.upper(),
        colorize=False,
    )


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value).strip()
    if not raw:
        return "none"
    return "".join(
        character if character.isalnum() or character in {"-", "_", ".", ":", "/"} else "_"
        for character in raw
    )


def _format_context(context: dict[str, object]) -> str:
    """Serialize context key/value pairs in deterministic key order."""

    if not context:
        return ""
    tokens = [
        f"{key}={_sanitize_context_value(context[key])}"
        for key in sorted(context.keys())
    ]
    return " " + " ".join(tokens)


class ServiceLogger:
    """Emit deterministic phase logs for one service instance."""

    def _emit(self, level: str, event: str, stage: str, **context: object) -> None:
        """Emit one structured runtime log line."""

        line = f"[phase] level={level} stage={stage} event={event}{_format_context(context)}"
        _loguru_logger.log(level, line)

    def log_stage_start(self, stage: str, **context: object) -> None:
        """Emit a stage-start runtime event."""

        self._emit("DEBUG", "start", stage, **context)

    def log_stage_complete(self, stage: str, **context: object) -> None:
        """Emit a stage-complete runtime event."""

        self._emit("INFO", "complete", stage, **context)

    def log_stage_failure(self, stage: str, error_type: str) -> None:
        """Emit a stage-failure runtime event without sensitive payload details."""

        self._emit("ERROR", "failure", stage, error_type=error_type)

    def log_retry(self, attempt: int, delay_seconds: float, status_code: int) -> None:
        """Emit a retry event for a quota-limited attempt."""

        self._emit(
            "WARNING",
            "retry",
            "remote_call",
            attempt=attempt,
            delay_seconds=f"{delay_seconds:.2f}",
            status_code=status_code,
        )

    def log_diagnostic(self, kind: str) -> None:
        """Emit a soft-diagnostic event for well-formed but unhelpful responses."""

        self._emit("WARNING", "diagnostic", "extract", kind=kind)
