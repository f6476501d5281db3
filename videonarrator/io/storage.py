"""Fragment cache directory storage.

Responsibilities:
- Map fragment names to their audio, source copy, and sentinel files.
- Write files atomically so readers never observe partial content.
"""

from __future__ import annotations

import os
from pathlib import Path
import tempfile

from ..models.datatypes import AUDIO_EXTENSION


class FragmentStore:
    """Filesystem layout for per-fragment cached artifacts.

    Every fragment owns four files named after it: `<name>.ogg`,
    `<name>.source`, `<name>.content.check`, and `<name>.options.check`.
    """

    def __init__(self, root: Path) -> None:
        """Initialize the store with its cache directory."""

        self.root = root

    def ensure_root(self) -> Path:
        """Create the cache directory if it is missing and return it."""

        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def audio_path(self, name: str) -> Path:
        """Return the synthesized audio path for a fragment."""

        return self.root / f"{name}{AUDIO_EXTENSION}"

    def source_path(self, name: str) -> Path:
        """Return the serialized-source copy path for a fragment."""

        return self.root / f"{name}.source"

    def content_sentinel_path(self, name: str) -> Path:
        """Return the content fingerprint sentinel path for a fragment."""

        return self.root / f"{name}.content.check"

    def options_sentinel_path(self, name: str) -> Path:
        """Return the options fingerprint sentinel path for a fragment."""

        return self.root / f"{name}.options.check"

    def read_sentinel(self, path: Path) -> str | None:
        """Return a stored fingerprint, or `None` when absent or unreadable."""

        try:
            value = path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError):
            return None
        return value or None

    def write_sentinel(self, path: Path, fingerprint: str) -> Path:
        """Persist one fingerprint in its deterministic `<digest>\\n` form."""

        return self.write_bytes(path, f"{fingerprint}\n".encode("ascii"))

    def write_text(self, path: Path, content: str) -> Path:
        """Atomically write UTF-8 text and return the final path."""

        return self.write_bytes(path, content.encode("utf-8"))

    def write_bytes(self, path: Path, data: bytes) -> Path:
        """Atomically write bytes via a sibling temporary file and rename."""

        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(temp_name, path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        return path
