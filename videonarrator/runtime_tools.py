"""Locate the ffmpeg/ffprobe executables used for duration probing and mixing.

Lookup order is an explicit `VIDEONARRATOR_TOOLS_DIR`, then directories shipped
next to the application (`bin/` before the app root, which also covers frozen
builds), then `PATH`. When nothing matches, the bare name is returned so that
`subprocess` raises its own missing-binary error.
"""

from __future__ import annotations

import os
from pathlib import Path
import shutil
import sys


TOOLS_DIR_ENV = "VIDEONARRATOR_TOOLS_DIR"


def resolve_executable(command_name: str) -> str:
    """Return the path to run for `command_name`."""

    name = command_name.strip()
    if not name:
        return command_name

    variants = (name,) if name.lower().endswith(".exe") else (name, f"{name}.exe")
    for directory in _search_dirs():
        for variant in variants:
            candidate = directory / variant
            if candidate.is_file():
                return str(candidate)

    return shutil.which(name) or name


def _search_dirs() -> list[Path]:
    root = _app_root()
    dirs = [root / "bin", root]
    override = os.environ.get(TOOLS_DIR_ENV, "").strip()
    if override:
        dirs.insert(0, Path(override).expanduser())
    return dirs


def _app_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]
