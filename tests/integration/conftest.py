"""Integration-test fixtures for deterministic speech, probe, and mix behavior."""

from __future__ import annotations

from hashlib import sha256
from pathlib import Path
import subprocess
import threading
from typing import Any

import pytest

from videonarrator import cli
from videonarrator.synthesis.google_client import GoogleSpeechClient


class InMemoryCredentialStore:
    """Simple in-memory credential store used for CLI tests."""

    def __init__(self, initial_api_key: str | None = None) -> None:
        """Initialize the store with an optional pre-seeded API key."""

        self._api_key = initial_api_key

    def is_available(self) -> bool:
        """Return availability flag expected by the CLI status command."""

        return True

    def get_api_key(self) -> str | None:
        """Return currently stored API key value."""

        return self._api_key

    def set_api_key(self, api_key: str) -> None:
        """Persist a normalized API key value."""

        self._api_key = api_key.strip()

    def clear_api_key(self) -> bool:
        """Clear API key and return whether one existed."""

        existed = self._api_key is not None
        self._api_key = None
        return existed


class ExternalToolStubs:
    """Recorded state shared by the speech, ffprobe, and ffmpeg stand-ins."""

    def __init__(self) -> None:
        """Initialize call histories and per-fragment durations."""

        self.speech_requests: list[dict[str, Any]] = []
        self.mix_commands: list[list[str]] = []
        self.durations: dict[str, float] = {}
        self.default_duration = 2.0
        self.failing_contents: set[str] = set()
        self.credential_store = InMemoryCredentialStore()
        self._lock = threading.Lock()

    @property
    def synthesized_contents(self) -> list[str]:
        """Return the content of every speech request, sorted for stable assertions."""

        return sorted(request["content"] for request in self.speech_requests)

    def synthesize_speech(self, **kwargs: Any) -> bytes:
        """Record a speech request and return deterministic Ogg-like bytes."""

        with self._lock:
            self.speech_requests.append(dict(kwargs))
        content = str(kwargs["content"])
        if any(marker in content for marker in self.failing_contents):
            raise RuntimeError("speech service unavailable")
        return b"OggS" + sha256(content.encode("utf-8")).digest()

    def run(self, command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        """Answer ffprobe with configured durations and render ffmpeg output files."""

        tool = Path(command[0]).name
        if tool.startswith("ffprobe"):
            stem = Path(command[-1]).stem
            seconds = self.durations.get(stem, self.default_duration)
            return subprocess.CompletedProcess(command, 0, stdout=f"{seconds}\n", stderr="")

        with self._lock:
            self.mix_commands.append(list(command))
        Path(command[-1]).write_bytes(b"OggS-mixed")
        return subprocess.CompletedProcess(command, 0, stdout="", stderr="")


@pytest.fixture(autouse=True)
def external_tools(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> ExternalToolStubs:
    """Replace network and subprocess boundaries and run inside `tmp_path`."""

    stubs = ExternalToolStubs()

    def _mock_synthesize_speech(self: GoogleSpeechClient, **kwargs: Any) -> bytes:
        """Delegate speech requests to the shared stub recorder."""

        _ = self
        return stubs.synthesize_speech(**kwargs)

    monkeypatch.setattr(GoogleSpeechClient, "synthesize_speech", _mock_synthesize_speech)
    monkeypatch.setattr(subprocess, "run", stubs.run)
    monkeypatch.setattr(cli, "create_credential_store", lambda: stubs.credential_store)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)
    return stubs
