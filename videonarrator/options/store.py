"""Named JSON option maps and their merge rules.

Responsibilities:
- Load voice/audio option files once per normalized path per run.
- Define the explicit override-wins shallow merge used everywhere options combine.

Key types:
- `OptionStore`: memoizing, thread-safe option-file loader.
- `merge_options`, `merge_chain`: pure merge helpers.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from ..errors import ConfigError


DEFAULT_VOICE_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {"languageCode": "en-US", "ssmlGender": "NEUTRAL"}
)


def merge_options(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return `base` with every key of `override` replacing it wholesale.

    Nested values are not merged: an override of `{"a": {"x": 1}}` replaces the
    whole `a` entry of `base`, whatever it held.
    """

    merged = dict(base)
    merged.update(override)
    return merged


def merge_chain(*layers: Mapping[str, Any]) -> dict[str, Any]:
    """Apply `merge_options` left to right over option layers."""

    merged: dict[str, Any] = {}
    for layer in layers:
        merged = merge_options(merged, layer)
    return merged


class OptionStore:
    """Load JSON option files, memoized by normalized absolute path.

    A store instance is owned by one run and passed to every stage that needs
    options. Loaded maps are read-only views, so concurrent readers never see a
    partially-populated or mutated entry.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""

        self._entries: dict[Path, Mapping[str, Any]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def normalize_path(path: Path, base_dir: Path | None = None) -> Path:
        """Resolve a possibly-relative option path against `base_dir`."""

        candidate = Path(path).expanduser()
        if not candidate.is_absolute() and base_dir is not None:
            candidate = base_dir / candidate
        return candidate.resolve()

    def load(self, path: Path, base_dir: Path | None = None) -> Mapping[str, Any]:
        """Return the option map stored in `path`, reading the file at most once."""

        key = self.normalize_path(path, base_dir)
        cached = self._entries.get(key)
        if cached is not None:
            return cached
        with self._lock:
            cached = self._entries.get(key)
            if cached is None:
                cached = self._read(key, display=path)
                self._entries[key] = cached
        return cached

    def _read(self, path: Path, display: Path) -> Mapping[str, Any]:
        """Read and validate one option file."""

        try:
            raw_text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ConfigError(
                f"Option file not found: `{display}`.",
                hint="Check the path given to `--audio`/`--voice` or in the script header.",
            ) from exc
        except OSError as exc:
            raise ConfigError(f"Option file `{display}` is not readable: {exc}") from exc

        try:
            payload = json.loads(raw_text)
        except json.JSONDecodeError as exc:
            raise ConfigError(
                f"Option file `{display}` is not valid JSON: {exc.msg} "
                f"(line {exc.lineno}, column {exc.colno}).",
            ) from exc

        if not isinstance(payload, dict):
            raise ConfigError(
                f"Option file `{display}` must contain a JSON object, "
                f"found {type(payload).__name__}.",
            )
        return MappingProxyType(dict(payload))
