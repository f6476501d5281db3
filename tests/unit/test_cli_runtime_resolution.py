"""Unit tests for CLI API-key runtime resolution helpers."""

from __future__ import annotations

import pytest

from videonarrator import cli_runtime
from videonarrator.cli_runtime import resolve_api_key_sources
from videonarrator.config import NarratorConfig
from videonarrator.errors import PipelineStageError


class InMemoryCredentialStore:
    """In-memory credential store implementation for runtime-resolution tests."""

    def __init__(self, initial_api_key: str | None = None) -> None:
        """Initialize the store with an optional initial API key."""

        self._api_key = initial_api_key
        self.stored_values: list[str] = []

    def get_api_key(self) -> str | None:
        """Return currently stored API key value."""

        return self._api_key

    def set_api_key(self, api_key: str) -> None:
        """Persist API key value and keep a history for assertions."""

        self._api_key = api_key
        self.stored_values.append(api_key)


class FailingCredentialStore:
    """Credential store that raises when persisting API key values."""

    def get_api_key(self) -> str | None:
        """Return no pre-existing secure API key."""

        return None

    def set_api_key(self, api_key: str) -> None:
        """Raise deterministic storage failure used for error-path assertions."""

        raise RuntimeError("no keyring backend")


def test_resolve_api_key_sources_collects_cli_secure_and_env_values() -> None:
    """Resolver should normalize the CLI key and include secure and env fallbacks."""

    store = InMemoryCredentialStore(initial_api_key="secure-api-key")

    sources = resolve_api_key_sources(
        api_key="  cli-api-key ",
        prompt_api_key=False,
        store_api_key=False,
        env={"GOOGLE_API_KEY": "env-api-key"},
        credential_store_factory=lambda: store,
    )

    assert sources.cli == {"api_key": "cli-api-key"}
    assert sources.secure == {"api_key": "secure-api-key"}
    assert sources.env == {"GOOGLE_API_KEY": "env-api-key"}
    assert store.stored_values == []
    assert NarratorConfig(runtime_sources=sources).resolved_api_key() == "cli-api-key"


def test_resolve_api_key_sources_stores_cli_key_when_requested(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """A CLI-provided key should be persisted when storing is enabled."""

    store = InMemoryCredentialStore()

    resolve_api_key_sources(
        api_key="cli-api-key",
        prompt_api_key=False,
        store_api_key=True,
        credential_store_factory=lambda: store,
    )

    assert store.stored_values == ["cli-api-key"]
    assert "Stored API key in secure credential storage." in capsys.readouterr().out


def test_resolve_api_key_sources_uses_prompt_when_no_cli_key(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Prompted keys should fill the CLI source when `--api-key` is absent."""

    monkeypatch.setattr(cli_runtime, "_prompt_for_api_key", lambda: "prompted-key")
    store = InMemoryCredentialStore()

    sources = resolve_api_key_sources(
        api_key=None,
        prompt_api_key=True,
        store_api_key=False,
        credential_store_factory=lambda: store,
    )

    assert sources.cli == {"api_key": "prompted-key"}
    assert sources.secure == {}


def test_resolve_api_key_sources_skips_blank_prompt(monkeypatch: pytest.MonkeyPatch) -> None:
    """A blank prompt answer should leave the CLI source empty."""

    monkeypatch.setattr(cli_runtime, "_prompt_for_api_key", lambda: None)
    store = InMemoryCredentialStore(initial_api_key="secure-api-key")

    sources = resolve_api_key_sources(
        api_key=None,
        prompt_api_key=True,
        store_api_key=True,
        credential_store_factory=lambda: store,
    )

    assert sources.cli == {}
    assert store.stored_values == []
    assert NarratorConfig(runtime_sources=sources).resolved_api_key() == "secure-api-key"


def test_resolve_api_key_sources_maps_storage_failure_to_stage_error() -> None:
    """Persisting failures should surface as credentials-stage errors."""

    with pytest.raises(PipelineStageError) as exc_info:
        resolve_api_key_sources(
            api_key="cli-api-key",
            prompt_api_key=False,
            store_api_key=True,
            credential_store_factory=FailingCredentialStore,
        )

    assert exc_info.value.stage == "credentials"
    assert "no keyring backend" in exc_info.value.detail
    assert "--no-store-api-key" in (exc_info.value.hint or "")
