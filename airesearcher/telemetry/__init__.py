"""Runtime logging for research service calls."""

from .logger import ServiceLogger, configure_logging

__all__ = ["ServiceLogger", "configure_logging"]
