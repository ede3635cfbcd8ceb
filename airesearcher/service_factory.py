"""Service wiring from configuration to concrete collaborators.

Responsibilities:
- Build the single process-wide rate limiter from configuration.
- Build the Gemini client with its retry policy and hand both to the service.
"""

from __future__ import annotations

import random

from .config import ProviderRuntimeConfig, ResearcherConfig
from .llm.gemini_client import GeminiClient
from .llm.rate_limiter import TokenBucketRateLimiter
from .llm.retry import BackoffPolicy
from .service import ResearchService
from .telemetry.logger import ServiceLogger


def build_rate_limiter(config: ResearcherConfig) -> TokenBucketRateLimiter:
    """Create the token bucket sized from configuration."""

    return TokenBucketRateLimiter(
        capacity=config.rate_limit_capacity,
        refill_tokens=config.rate_limit_refill_tokens,
        refill_interval_seconds=config.rate_limit_refill_interval_seconds,
    )


def build_backoff_policy(
    config: ResearcherConfig,
    rng: random.Random | None = None,
) -> BackoffPolicy:
    """Create the quota retry policy from configuration."""

    return BackoffPolicy(
        max_retries=config.max_retries,
        base_seconds=config.retry_backoff_base_seconds,
        max_seconds=config.retry_backoff_max_seconds,
        jitter=config.retry_jitter,
        rng=rng if rng is not None else random.Random(),
    )


def build_research_service(
    config: ResearcherConfig,
    runtime: ProviderRuntimeConfig | None = None,
    rate_limiter: TokenBucketRateLimiter | None = None,
    run_logger: ServiceLogger | None = None,
) -> ResearchService:
    """Create a fully wired `ResearchService` for one process."""

    config.validate()
    resolved_runtime = runtime if runtime is not None else config.resolved_runtime()
    resolved_logger = run_logger if run_logger is not None else ServiceLogger()
    client = GeminiClient(
        api_key=resolved_runtime.api_key,
        base_url=resolved_runtime.api_base_url,
        model=resolved_runtime.model,
        timeout_seconds=config.request_timeout_seconds,
        backoff_policy=build_backoff_policy(config),
        run_logger=resolved_logger,
    )
    return ResearchService(
        client=client,
        rate_limiter=rate_limiter if rate_limiter is not None else build_rate_limiter(config),
        run_logger=resolved_logger,
    )
