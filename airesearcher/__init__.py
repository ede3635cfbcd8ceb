"""Top-level package for AI Researcher.

This package turns content-processing requests (content, operation, optional
tone and target language) into prompts for a generative-text API, throttled
by a token bucket and retried on quota errors. The main orchestration entry
point is `ResearchService`.
"""

from .models.datatypes import ResearchRequest, ResearchResponse
from .service import ResearchService

__all__ = ["ResearchRequest", "ResearchResponse", "ResearchService", "__version__"]

__version__ = "0.1.0"
