"""Configuration model and loaders for the research service.

Responsibilities:
- Define runtime configuration as a typed dataclass.
- Provide deterministic precedence resolution for provider runtime settings.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `ResearcherConfig`: normalized settings for the service and its endpoint.
- `ProviderRuntimeConfig`: resolved provider URL/model/API key values.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `ResearcherConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .llm.gemini_client import DEFAULT_API_BASE_URL, DEFAULT_MODEL
from .parsing import normalize_optional_string, parse_float_value, parse_int_value


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderRuntimeConfig:
    """Resolved provider settings for one process.

    Attributes:
        api_base_url: Base URL of the generative-text API.
        model: Model identifier used in the generate-content path.
        api_key: Optional API key sent with every request.
    """

    api_base_url: str
    model: str
    api_key: str | None


@dataclass(frozen=True, slots=True)
class ResearcherConfig:
    """Runtime settings for the research service.

    Attributes:
        api_base_url: Base URL of the generative-text API.
        model: Model identifier.
        api_key: Optional API key; usually supplied by env or keyring instead.
        rate_limit_capacity: Token bucket capacity.
        rate_limit_refill_tokens: Tokens added per refill interval.
        rate_limit_refill_interval_seconds: Refill interval length.
        request_timeout_seconds: Timeout for each network attempt.
        max_retries: Retries allowed for quota-exceeded responses.
        retry_backoff_base_seconds: First backoff delay before jitter.
        retry_backoff_max_seconds: Backoff cap.
        retry_jitter: Jitter fraction applied to each backoff delay.
        host: Bind host for the HTTP endpoint.
        port: Bind port for the HTTP endpoint.
        extra: Additional metadata for future extensions.
    """

    api_base_url: str = DEFAULT_API_BASE_URL
    model: str = DEFAULT_MODEL
    api_key: str | None = None
    rate_limit_capacity: int = 8
    rate_limit_refill_tokens: int = 8
    rate_limit_refill_interval_seconds: float = 60.0
    request_timeout_seconds: float = 60.0
    max_retries: int = 5
    retry_backoff_base_seconds: float = 12.0
    retry_backoff_max_seconds: float = 120.0
    retry_jitter: float = 0.5
    host: str = "127.0.0.1"
    port: int = 8080
    extra: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate configuration values before wiring the service."""

        self._require_non_empty(self.api_base_url, "api_base_url")
        self._require_non_empty(self.model, "model")
        self._require_non_empty(self.host, "host")
        if self.rate_limit_capacity <= 0:
            raise ValueError("`rate_limit_capacity` must be a positive integer.")
        if self.rate_limit_refill_tokens <= 0:
            raise ValueError("`rate_limit_refill_tokens` must be a positive integer.")
        if self.rate_limit_refill_interval_seconds <= 0.0:
            raise ValueError("`rate_limit_refill_interval_seconds` must be positive.")
        if self.request_timeout_seconds <= 0.0:
            raise ValueError("`request_timeout_seconds` must be positive.")
        if self.max_retries < 0:
            raise ValueError("`max_retries` must be zero or a positive integer.")
        if self.retry_backoff_base_seconds < 0.0:
            raise ValueError("`retry_backoff_base_seconds` must not be negative.")
        if self.retry_backoff_max_seconds < self.retry_backoff_base_seconds:
            raise ValueError(
                "`retry_backoff_max_seconds` must not be lower than "
                "`retry_backoff_base_seconds`."
            )
        if not 0.0 <= self.retry_jitter <= 1.0:
            raise ValueError("`retry_jitter` must be within [0, 1].")
        if not 1 <= self.port <= 65535:
            raise ValueError("`port` must be within 1..65535.")

    def resolved_runtime(
        self, sources: RuntimeConfigSources | None = None
    ) -> ProviderRuntimeConfig:
        """Resolve provider settings with deterministic source precedence.

        Precedence for each key is:
        `cli` > `secure` > `env` > config field value.
        """

        resolved_sources = sources if sources is not None else RuntimeConfigSources()

        api_base_url = self._resolve_runtime_value(
            key="api_base_url",
            env_key="AIRESEARCHER_API_URL",
            default_value=self.api_base_url,
            sources=resolved_sources,
        )
        model = self._resolve_runtime_value(
            key="model",
            env_key="AIRESEARCHER_MODEL",
            default_value=self.model,
            sources=resolved_sources,
        )
        api_key = self._resolve_optional_runtime_value(
            key="api_key",
            env_key="GEMINI_API_KEY",
            default_value=self.api_key,
            sources=resolved_sources,
        )
        return ProviderRuntimeConfig(api_base_url=api_base_url, model=model, api_key=api_key)

    def _resolve_runtime_value(
        self,
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str:
        """Resolve a required runtime value from sources in precedence order."""

        resolved = self._resolve_optional_runtime_value(key, env_key, default_value, sources)
        if resolved is None:
            raise ValueError(
                f"`{key}` could not be resolved from CLI, secure storage, env, or config."
            )
        return resolved

    def _resolve_optional_runtime_value(
        self,
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str | None:
        """Resolve an optional runtime value from sources in precedence order."""

        cli_value = self._normalized_lookup(sources.cli, key)
        if cli_value is not None:
            return cli_value

        secure_value = self._normalized_lookup(sources.secure, key)
        if secure_value is not None:
            return secure_value

        env_value = self._normalized_lookup(sources.env, env_key)
        if env_value is not None:
            return env_value

        return normalize_optional_string(default_value)

    @staticmethod
    def _normalized_lookup(mapping: Mapping[str, str], key: str) -> str | None:
        """Return a stripped mapping value for a key or `None` when missing/blank."""

        if key not in mapping:
            return None
        return normalize_optional_string(mapping.get(key))

    @staticmethod
    def _require_non_empty(value: str, field_name: str) -> None:
        """Validate that string fields are not empty."""

        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


_STRING_KEYS = ("api_base_url", "model", "api_key", "host")
_INT_KEYS = ("rate_limit_capacity", "rate_limit_refill_tokens", "max_retries", "port")
_FLOAT_KEYS = (
    "rate_limit_refill_interval_seconds",
    "request_timeout_seconds",
    "retry_backoff_base_seconds",
    "retry_backoff_max_seconds",
    "retry_jitter",
)


class ConfigLoader:
    """Factory methods for creating `ResearcherConfig` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset((*_STRING_KEYS, *_INT_KEYS, *_FLOAT_KEYS, "extra"))
    _ENV_KEYS: Mapping[str, str] = {
        "api_base_url": "AIRESEARCHER_API_URL",
        "model": "AIRESEARCHER_MODEL",
        "api_key": "GEMINI_API_KEY",
        "host": "AIRESEARCHER_HOST",
        "port": "AIRESEARCHER_PORT",
        "rate_limit_capacity": "AIRESEARCHER_RATE_LIMIT_CAPACITY",
        "rate_limit_refill_tokens": "AIRESEARCHER_RATE_LIMIT_REFILL_TOKENS",
        "rate_limit_refill_interval_seconds": "AIRESEARCHER_RATE_LIMIT_REFILL_INTERVAL_SECONDS",
        "request_timeout_seconds": "AIRESEARCHER_REQUEST_TIMEOUT_SECONDS",
        "max_retries": "AIRESEARCHER_MAX_RETRIES",
        "retry_backoff_base_seconds": "AIRESEARCHER_RETRY_BACKOFF_BASE_SECONDS",
        "retry_backoff_max_seconds": "AIRESEARCHER_RETRY_BACKOFF_MAX_SECONDS",
        "retry_jitter": "AIRESEARCHER_RETRY_JITTER",
    }

    @staticmethod
    def from_yaml(path: Path) -> ResearcherConfig:
        """Create a validated config from a YAML file."""

        path_text = path.read_text(encoding="utf-8")
        try:
            payload = yaml.safe_load(path_text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML syntax: {exc}") from exc
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError("YAML root must be a mapping of config keys.")

        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> ResearcherConfig:
        """Create a validated config from environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        payload: dict[str, Any] = {}
        for key, env_key in ConfigLoader._ENV_KEYS.items():
            value = normalize_optional_string(env_map.get(env_key))
            if value is not None:
                payload[key] = value
        return ConfigLoader._build_config_from_mapping(payload, source_label="environment")

    @staticmethod
    def _build_config_from_mapping(
        payload: Mapping[str, Any],
        source_label: str,
    ) -> ResearcherConfig:
        """Normalize a raw mapping into a validated `ResearcherConfig`."""

        unknown_keys = sorted(str(key) for key in payload if key not in ConfigLoader._SUPPORTED_YAML_KEYS)
        if unknown_keys:
            raise ValueError(
                f"{source_label} contains unknown key(s): {', '.join(unknown_keys)}."
            )

        values: dict[str, Any] = {}
        for key in _STRING_KEYS:
            if key in payload:
                normalized = normalize_optional_string(payload[key])
                if normalized is not None:
                    values[key] = normalized
        for key in _INT_KEYS:
            if key in payload and payload[key] is not None:
                values[key] = parse_int_value(payload[key], key)
        for key in _FLOAT_KEYS:
            if key in payload and payload[key] is not None:
                values[key] = parse_float_value(payload[key], key)
        if "extra" in payload and payload["extra"] is not None:
            values["extra"] = ConfigLoader._normalize_extra(payload["extra"], source_label)

        config = ResearcherConfig(**values)
        config.validate()
        return config

    @staticmethod
    def _normalize_extra(value: Any, source_label: str) -> dict[str, str]:
        """Normalize the free-form `extra` mapping into string values."""

        if not isinstance(value, Mapping):
            raise ValueError(f"{source_label} key `extra` must be a mapping.")
        normalized: dict[str, str] = {}
        for key, item in value.items():
            text = normalize_optional_string(item)
            normalized[str(key)] = text if text is not None else ""
        return normalized
