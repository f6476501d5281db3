"""CLI runtime source resolution helpers.

This module isolates API-key prompting, runtime source assembly, and secure
API-key persistence from the command wiring layer.
"""

from __future__ import annotations

from typing import Callable, Protocol

import typer

from .config import RuntimeConfigSources
from .credentials import create_credential_store
from .errors import PipelineStageError
from .parsing import normalize_optional_string


class CredentialStoreProtocol(Protocol):
    """Protocol for secure credential store operations used by CLI runtime resolution."""

    def get_api_key(self) -> str | None:
        """Return currently stored API key, if available."""

    def set_api_key(self, api_key: str) -> None:
        """Persist API key value in secure storage."""


def _prompt_for_api_key() -> str | None:
    """Prompt for a hidden API key; blank input skips."""

    return normalize_optional_string(
        typer.prompt(
            "Google Cloud API key (hidden; leave blank to skip)",
            default="",
            hide_input=True,
            show_default=False,
        )
    )


def resolve_api_key_sources(
    api_key: str | None,
    prompt_api_key: bool,
    store_api_key: bool,
    env: dict[str, str] | None = None,
    credential_store_factory: Callable[[], CredentialStoreProtocol] = create_credential_store,
) -> RuntimeConfigSources:
    """Resolve CLI, secure, and env source mappings for the speech API key."""

    runtime_cli_values: dict[str, str] = {}
    normalized_api_key = normalize_optional_string(api_key)
    if normalized_api_key is not None:
        runtime_cli_values["api_key"] = normalized_api_key
    elif prompt_api_key:
        prompted_api_key = _prompt_for_api_key()
        if prompted_api_key is not None:
            runtime_cli_values["api_key"] = prompted_api_key

    credential_store = credential_store_factory()
    runtime_secure_values: dict[str, str] = {}
    stored_api_key = credential_store.get_api_key()
    if stored_api_key is not None:
        runtime_secure_values["api_key"] = stored_api_key

    if "api_key" in runtime_cli_values and store_api_key:
        try:
            credential_store.set_api_key(runtime_cli_values["api_key"])
            typer.echo("Stored API key in secure credential storage.")
        except Exception as exc:
            raise PipelineStageError(
                stage="credentials",
                detail=f"Failed to store API key securely: {exc}",
                hint=(
                    "Install and configure a keyring backend, or rerun with "
                    "`--no-store-api-key` for one-off usage."
                ),
            ) from exc

    return RuntimeConfigSources(
        cli=runtime_cli_values,
        secure=runtime_secure_values,
        env=dict(env or {}),
    )
