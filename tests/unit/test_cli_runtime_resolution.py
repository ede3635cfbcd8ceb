"""Unit tests for CLI config loading and runtime source assembly."""

from __future__ import annotations

from pathlib import Path

import pytest

from airesearcher.cli_runtime import load_command_config, resolve_runtime_sources
from airesearcher.errors import ResearchServiceError


class _StaticStore:
    """Credential store double returning a fixed key and counting lookups."""

    def __init__(self, api_key: str | None) -> None:
        """Initialize stored key value."""

        self.api_key = api_key
        self.lookups = 0

    def get_api_key(self) -> str | None:
        """Return the stored key and record the lookup."""

        self.lookups += 1
        return self.api_key


def test_resolve_runtime_sources_prefers_explicit_key_and_skips_keyring() -> None:
    """An explicit `--api-key` should bypass secure storage entirely."""

    store = _StaticStore("stored-key")

    sources = resolve_runtime_sources(" cli-key ", " gemini-cli ", lambda: store)

    assert dict(sources.cli) == {"api_key": "cli-key", "model": "gemini-cli"}
    assert dict(sources.secure) == {}
    assert store.lookups == 0


def test_resolve_runtime_sources_reads_stored_key_when_not_passed() -> None:
    """Without an explicit key, secure storage should be consulted once."""

    store = _StaticStore("stored-key")

    sources = resolve_runtime_sources(None, None, lambda: store)

    assert dict(sources.cli) == {}
    assert dict(sources.secure) == {"api_key": "stored-key"}
    assert store.lookups == 1


def test_load_command_config_maps_invalid_yaml_to_service_error(tmp_path: Path) -> None:
    """Invalid config files should surface as service errors with a hint."""

    config_path = tmp_path / "bad.yml"
    config_path.write_text("max_retries: -1\n", encoding="utf-8")

    with pytest.raises(ResearchServiceError, match="Invalid config file") as exc_info:
        load_command_config(config_path)

    assert exc_info.value.hint == "Fix config schema/values and rerun."


def test_load_command_config_maps_invalid_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Invalid `AIRESEARCHER_*` values should surface as service errors."""

    monkeypatch.setenv("AIRESEARCHER_RATE_LIMIT_CAPACITY", "lots")

    with pytest.raises(ResearchServiceError, match="Invalid environment configuration"):
        load_command_config(None)
