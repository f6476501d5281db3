"""Integration tests for CLI API-key resolution and secure credential flows."""

from __future__ import annotations

from pathlib import Path

from pytest import MonkeyPatch
from typer.testing import CliRunner

from videonarrator.cli import app
from videonarrator.synthesis.google_client import GoogleSpeechClient


def _capture_client_keys(monkeypatch: MonkeyPatch) -> list[str]:
    """Record the API key each speech client was created with."""

    keys: list[str] = []
    original_init = GoogleSpeechClient.__init__

    def _recording_init(self: GoogleSpeechClient, **kwargs: object) -> None:
        original_init(self, **kwargs)  # type: ignore[arg-type]
        keys.append(self.api_key)

    monkeypatch.setattr(GoogleSpeechClient, "__init__", _recording_init)
    return keys


def test_credentials_status_reports_storage_and_key_presence(external_tools) -> None:
    """Status command should report availability and whether a key is stored."""

    runner = CliRunner()

    result = runner.invoke(app, ["credentials"])

    assert result.exit_code == 0, result.output
    assert "Secure credential storage: available" in result.output
    assert "Stored Google Cloud API key: not set" in result.output


def test_credentials_set_and_clear_api_key(external_tools) -> None:
    """`--set-api-key` should store the prompted key and `--clear-api-key` remove it."""

    runner = CliRunner()

    stored = runner.invoke(app, ["credentials", "--set-api-key"], input="  prompted-key  \n")
    assert stored.exit_code == 0, stored.output
    assert "API key stored in secure credential storage." in stored.output
    assert external_tools.credential_store.get_api_key() == "prompted-key"
    assert "prompted-key" not in stored.output

    cleared = runner.invoke(app, ["credentials", "--clear-api-key"])
    assert cleared.exit_code == 0
    assert "Stored API key cleared from secure credential storage." in cleared.output
    assert external_tools.credential_store.get_api_key() is None

    again = runner.invoke(app, ["credentials", "--clear-api-key"])
    assert "No stored API key found in secure credential storage." in again.output


def test_credentials_rejects_conflicting_actions(external_tools) -> None:
    """Set and clear cannot be requested together."""

    runner = CliRunner()

    result = runner.invoke(app, ["credentials", "--set-api-key", "--clear-api-key"])

    assert result.exit_code == 1
    assert "cannot be used together" in result.output


def test_build_uses_stored_key_over_environment(
    tmp_path: Path, external_tools, monkeypatch: MonkeyPatch
) -> None:
    """Securely stored keys should take precedence over `GOOGLE_API_KEY`."""

    (tmp_path / "tour.txt").write_text("0 intro\n<speak>Hi</speak>\n", encoding="utf-8")
    external_tools.credential_store.set_api_key("stored-key")
    monkeypatch.setenv("GOOGLE_API_KEY", "env-key")
    keys = _capture_client_keys(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(app, ["build", "tour.txt"])

    assert result.exit_code == 0, result.output
    assert keys == ["stored-key"]


def test_build_cli_key_wins_and_is_stored(
    tmp_path: Path, external_tools, monkeypatch: MonkeyPatch
) -> None:
    """`--api-key` should win over stored keys and be persisted by default."""

    (tmp_path / "tour.txt").write_text("0 intro\n<speak>Hi</speak>\n", encoding="utf-8")
    external_tools.credential_store.set_api_key("stored-key")
    keys = _capture_client_keys(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(app, ["build", "--api-key", "cli-key", "tour.txt"])

    assert result.exit_code == 0, result.output
    assert keys == ["cli-key"]
    assert "Stored API key in secure credential storage." in result.output
    assert external_tools.credential_store.get_api_key() == "cli-key"


def test_build_no_store_api_key_leaves_storage_untouched(
    tmp_path: Path, external_tools
) -> None:
    """`--no-store-api-key` should use the CLI key for this run only."""

    (tmp_path / "tour.txt").write_text("0 intro\n<speak>Hi</speak>\n", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(
        app, ["build", "--api-key", "one-off-key", "--no-store-api-key", "tour.txt"]
    )

    assert result.exit_code == 0, result.output
    assert external_tools.credential_store.get_api_key() is None


def test_fully_cached_rebuild_needs_no_api_key(tmp_path: Path, external_tools) -> None:
    """A rebuild where every fragment is reused should succeed without any API key."""

    (tmp_path / "tour.txt").write_text("0 intro\n<speak>Hi</speak>\n", encoding="utf-8")
    runner = CliRunner()
    assert runner.invoke(app, ["build", "tour.txt"]).exit_code == 0

    result = runner.invoke(app, ["build", "-y", "tour.txt"])

    assert result.exit_code == 0, result.output
    assert "(1 fragments, 1 reused, 0 synthesized, 2.00s)" in result.output
    assert len(external_tools.speech_requests) == 1
