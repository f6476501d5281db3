"""Keyring-backed storage for the Google Cloud speech API key.

The key lives under one service/account pair so that `build`, `schedule`,
and `credentials` all see the same stored value. Backend failures surface as
`credentials`-stage errors and never echo the secret itself.
"""

from __future__ import annotations

from dataclasses import dataclass

import keyring
from keyring.backends import fail
from keyring.errors import KeyringError, PasswordDeleteError

from .errors import PipelineStageError
from .parsing import normalize_optional_string


KEYRING_SERVICE = "video-narrator"
KEYRING_ACCOUNT = "google_api_key"

_BACKEND_HINT = "Install and configure a keyring backend, or pass `--api-key` per run."


def _credentials_error(action: str, exc: Exception | None = None) -> PipelineStageError:
    reason = f": {exc}" if exc is not None else ""
    return PipelineStageError(
        stage="credentials",
        detail=f"Could not {action} the stored speech API key{reason}",
        hint=_BACKEND_HINT,
    )


@dataclass(frozen=True, slots=True)
class KeyringCredentialStore:
    """Speech API key slot in the OS keyring."""

    service_name: str = KEYRING_SERVICE
    account_name: str = KEYRING_ACCOUNT

    def is_available(self) -> bool:
        """Return whether the active keyring backend can hold secrets."""

        return not isinstance(keyring.get_keyring(), fail.Keyring)

    def get_api_key(self) -> str | None:
        """Return the stored key, or `None` when nothing usable is stored."""

        if not self.is_available():
            return None
        try:
            stored = keyring.get_password(self.service_name, self.account_name)
        except KeyringError as exc:
            raise _credentials_error("read", exc) from exc
        return normalize_optional_string(stored)

    def set_api_key(self, api_key: str) -> None:
        """Store a stripped, non-empty key.

        Raises:
            ValueError: The key is blank.
            PipelineStageError: No backend is configured or the backend refused the write.
        """

        normalized = normalize_optional_string(api_key)
        if normalized is None:
            raise ValueError("API key must be a non-empty string.")
        if not self.is_available():
            raise PipelineStageError(
                stage="credentials",
                detail="Secure credential storage is unavailable: no keyring backend is configured.",
                hint=_BACKEND_HINT,
            )
        try:
            keyring.set_password(self.service_name, self.account_name, normalized)
        except KeyringError as exc:
            raise _credentials_error("store", exc) from exc

    def clear_api_key(self) -> bool:
        """Delete the stored key; `False` means there was nothing to delete."""

        if self.get_api_key() is None:
            return False
        try:
            keyring.delete_password(self.service_name, self.account_name)
        except PasswordDeleteError:
            return False
        except KeyringError as exc:
            raise _credentials_error("clear", exc) from exc
        return True


def create_credential_store() -> KeyringCredentialStore:
    """Return the store used by the CLI commands."""

    return KeyringCredentialStore()
