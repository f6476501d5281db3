"""Shared pytest fixtures for the full video-narrator test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from tests.fakes import FixedDurationProbe, RecordingMixer, RecordingSynthesizer


@pytest.fixture
def recording_synthesizer() -> RecordingSynthesizer:
    """Provide a fresh recording synthesizer."""

    return RecordingSynthesizer()


@pytest.fixture
def fixed_probe() -> FixedDurationProbe:
    """Provide a probe reporting one second for every fragment."""

    return FixedDurationProbe()


@pytest.fixture
def recording_mixer() -> RecordingMixer:
    """Provide a fresh recording mixer."""

    return RecordingMixer()


@pytest.fixture
def write_script(tmp_path: Path) -> Callable[..., Path]:
    """Write script text under `tmp_path` and return its path."""

    def _write(text: str, name: str = "intro.txt") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
