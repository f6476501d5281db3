"""Audio duration probing.

Responsibilities:
- Measure the duration of one audio file with `ffprobe`.
- Attach validated, authoritative durations to fragments.
"""

from __future__ import annotations

import math
from pathlib import Path
import subprocess
from typing import Protocol

from ..errors import DurationError
from ..models.datatypes import Fragment
from ..parsing import normalize_optional_string
from ..runtime_tools import resolve_executable


class ProbeFailure(RuntimeError):
    """Raised by a probe when a file's duration cannot be measured."""


class DurationProbe(Protocol):
    """Protocol for audio-duration collaborators."""

    def probe(self, audio_path: Path) -> float:
        """Return the duration of `audio_path` in seconds."""


class FfprobeDurationProbe:
    """Read container duration with `ffprobe -show_entries format=duration`."""

    def __init__(self, executable: str | None = None, timeout_seconds: float = 60.0) -> None:
        """Initialize the probe executable and per-call timeout."""

        self.executable = executable or resolve_executable("ffprobe")
        self.timeout_seconds = timeout_seconds

    def probe(self, audio_path: Path) -> float:
        """Run ffprobe on one file and parse the reported duration."""

        command = [
            self.executable,
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(audio_path),
        ]
        try:
            completed = subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise ProbeFailure("`ffprobe` is not available on PATH.") from exc
        except subprocess.TimeoutExpired as exc:
            raise ProbeFailure(f"ffprobe timed out after {self.timeout_seconds:g}s.") from exc
        except subprocess.CalledProcessError as exc:
            stderr = normalize_optional_string(exc.stderr) or "no stderr output"
            raise ProbeFailure(f"ffprobe exited with status {exc.returncode}: {stderr}") from exc

        output = normalize_optional_string(completed.stdout)
        if output is None:
            raise ProbeFailure("ffprobe reported no duration.")
        try:
            return float(output.splitlines()[0])
        except ValueError as exc:
            raise ProbeFailure(f"ffprobe output `{output}` is not a number.") from exc


class DurationResolver:
    """Attach measured durations to fragments or fail with `DurationError`."""

    def __init__(self, probe: DurationProbe) -> None:
        """Initialize with the probe collaborator."""

        self.probe = probe

    def resolve(self, fragment: Fragment, audio_path: Path) -> float:
        """Measure one fragment's audio and store the result on the fragment."""

        try:
            seconds = self.probe.probe(audio_path)
        except Exception as exc:
            raise DurationError(
                [fragment.name],
                f"Unable to get duration for fragment `{fragment.name}` "
                f"(`{audio_path}`): {exc}",
            ) from exc

        if not isinstance(seconds, (int, float)) or math.isnan(seconds) or math.isinf(seconds):
            raise DurationError(
                [fragment.name],
                f"Duration of fragment `{fragment.name}` is not a finite number: {seconds!r}.",
            )
        if seconds < 0:
            raise DurationError(
                [fragment.name],
                f"Duration of fragment `{fragment.name}` is negative: {seconds!r}.",
            )
        fragment.duration = float(seconds)
        return fragment.duration
