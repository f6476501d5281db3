"""Final narration mixing.

Responsibilities:
- Assemble silence gaps and fragment audio into one `.ogg` track with ffmpeg.
- Never leave a partially written output file at the destination path.
"""

from __future__ import annotations

import os
from pathlib import Path
import subprocess
from typing import Protocol

from ..errors import MixError
from ..models.datatypes import MixPlan
from ..parsing import normalize_optional_string
from ..runtime_tools import resolve_executable


class AudioMixer(Protocol):
    """Protocol for final-assembly collaborators."""

    def mix(self, plan: MixPlan, output_path: Path, *, overwrite: bool = False) -> Path:
        """Write the mixed narration for `plan` to `output_path`."""


class FfmpegMixer:
    """Concatenate generated silence and fragment audio with one ffmpeg filter graph."""

    def __init__(self, executable: str | None = None, timeout_seconds: float | None = None) -> None:
        """Initialize the ffmpeg executable and optional per-call timeout."""

        self.executable = executable or resolve_executable("ffmpeg")
        self.timeout_seconds = timeout_seconds

    def build_command(self, plan: MixPlan, output_path: Path) -> list[str]:
        """Return the ffmpeg argument list that renders `plan` into `output_path`.

        Every segment contributes one `aevalsrc` silence source followed by its
        audio input; the `concat` filter joins all `2 * N` streams in order.
        """

        command = [self.executable, "-hide_banner", "-loglevel", "error", "-y"]
        filters: list[str] = []
        labels: list[str] = []
        for index, segment in enumerate(plan.segments):
            command.extend(["-i", str(segment.audio_path)])
            filters.append(f"aevalsrc=0:d={_format_seconds(segment.silence_seconds)} [s{index}]")
            labels.append(f"[s{index}][{index}:a]")

        stream_count = 2 * len(plan.segments)
        filters.append(f"{''.join(labels)} concat=n={stream_count}:v=0:a=1 [au]")
        command.extend(["-filter_complex", ";".join(filters), "-map", "[au]", str(output_path)])
        return command

    def mix(self, plan: MixPlan, output_path: Path, *, overwrite: bool = False) -> Path:
        """Render `plan` to a temporary sibling file and move it into place."""

        if not plan.segments:
            raise MixError("Nothing to mix: the schedule contains no fragments.")
        if output_path.exists() and not overwrite:
            raise MixError(
                f"Output file `{output_path}` already exists.",
                hint="Pass `--overwrite` (`-y`) to replace it.",
            )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        partial_path = output_path.with_name(f".{output_path.stem}.partial{output_path.suffix}")
        command = self.build_command(plan, partial_path)
        rendered = False
        try:
            subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
            rendered = True
        except FileNotFoundError as exc:
            raise MixError(
                "Mixing tool `ffmpeg` is not available on PATH.",
                hint="Install ffmpeg and rerun.",
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise MixError(
                f"ffmpeg mixing of `{output_path.name}` timed out.",
                diagnostic_output=normalize_optional_string(_as_text(exc.stderr)) or "",
            ) from exc
        except subprocess.CalledProcessError as exc:
            stderr = normalize_optional_string(exc.stderr) or "no stderr output"
            raise MixError(
                f"ffmpeg mixing failed for `{output_path.name}`: {stderr}",
                diagnostic_output=stderr,
                hint="Verify the cached fragment audio is readable by ffmpeg.",
            ) from exc
        finally:
            if not rendered:
                partial_path.unlink(missing_ok=True)

        try:
            os.replace(partial_path, output_path)
        except OSError as exc:
            partial_path.unlink(missing_ok=True)
            raise MixError(
                f"Failed to move mixed audio into `{output_path}`: {exc}",
                hint="Verify the output location is writable.",
            ) from exc
        return output_path


def _format_seconds(value: float) -> str:
    """Render seconds for ffmpeg without exponent notation."""

    text = f"{max(value, 0.0):.6f}".rstrip("0").rstrip(".")
    return text or "0"


def _as_text(value: str | bytes | None) -> str | None:
    """Decode subprocess output captured on timeout."""

    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value

