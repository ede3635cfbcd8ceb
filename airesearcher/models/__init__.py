"""Data models used across the research service."""

from .datatypes import KNOWN_OPERATIONS, ResearchRequest, ResearchResponse

__all__ = ["KNOWN_OPERATIONS", "ResearchRequest", "ResearchResponse"]
