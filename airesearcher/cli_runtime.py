"""CLI runtime resolution helpers.

This module isolates config loading, runtime source assembly, and secure
API-key lookup from the command wiring layer.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Protocol

from .config import ConfigLoader, ResearcherConfig, RuntimeConfigSources
from .credentials import create_credential_store
from .errors import ResearchServiceError
from .parsing import normalize_optional_string


class CredentialStoreProtocol(Protocol):
    """Protocol for credential store reads used by CLI runtime resolution."""

    def get_api_key(self) -> str | None:
        """Return currently stored API key, if available."""


def load_command_config(config_path: Path | None) -> ResearcherConfig:
    """Load YAML config when requested, else environment config, mapping failures."""

    if config_path is None:
        try:
            return ConfigLoader.from_env()
        except ValueError as exc:
            raise ResearchServiceError(
                f"Invalid environment configuration: {exc}",
                hint="Fix the `AIRESEARCHER_*` variables and rerun.",
            ) from exc

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise ResearchServiceError(
            f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise ResearchServiceError(
            f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc


def resolve_runtime_sources(
    api_key: str | None,
    model: str | None,
    credential_store_factory: Callable[[], CredentialStoreProtocol] | None = None,
) -> RuntimeConfigSources:
    """Assemble CLI, secure-storage, and environment sources for runtime resolution.

    Secure storage is only consulted when no API key was passed explicitly.
    """

    runtime_cli_values: dict[str, str] = {}
    normalized_key = normalize_optional_string(api_key)
    if normalized_key is not None:
        runtime_cli_values["api_key"] = normalized_key
    normalized_model = normalize_optional_string(model)
    if normalized_model is not None:
        runtime_cli_values["model"] = normalized_model

    runtime_secure_values: dict[str, str] = {}
    if "api_key" not in runtime_cli_values:
        factory = credential_store_factory or create_credential_store
        stored_api_key = factory().get_api_key()
        if stored_api_key is not None:
            runtime_secure_values["api_key"] = stored_api_key

    return RuntimeConfigSources(
        cli=runtime_cli_values,
        secure=runtime_secure_values,
        env=os.environ,
    )
