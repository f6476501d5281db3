"""Unit tests for option-file loading and merge rules."""

from __future__ import annotations

import json
from pathlib import Path
import threading

import pytest

from videonarrator.errors import ConfigError
from videonarrator.options.store import (
    DEFAULT_VOICE_OPTIONS,
    OptionStore,
    merge_chain,
    merge_options,
)


def test_merge_options_replaces_keys_wholesale_without_deep_merge() -> None:
    """Override keys should replace nested values instead of merging them."""

    base = {"languageCode": "en-US", "effects": {"echo": 1, "reverb": 2}}
    override = {"effects": {"echo": 3}}

    merged = merge_options(base, override)

    assert merged == {"languageCode": "en-US", "effects": {"echo": 3}}
    assert base["effects"] == {"echo": 1, "reverb": 2}


def test_merge_chain_applies_layers_left_to_right() -> None:
    """Later layers should win over earlier ones."""

    merged = merge_chain(DEFAULT_VOICE_OPTIONS, {"ssmlGender": "MALE"}, {"name": "en-US-A"})

    assert merged == {"languageCode": "en-US", "ssmlGender": "MALE", "name": "en-US-A"}


def test_option_store_reads_each_normalized_path_once(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Equivalent paths should share one memoized read-only mapping."""

    option_path = tmp_path / "voice.json"
    option_path.write_text(json.dumps({"name": "en-GB-Neural2-B"}), encoding="utf-8")
    store = OptionStore()
    reads: list[Path] = []
    original_read = OptionStore._read

    def _counting_read(self: OptionStore, path: Path, display: Path) -> object:
        reads.append(path)
        return original_read(self, path, display)

    monkeypatch.setattr(OptionStore, "_read", _counting_read)

    first = store.load(option_path)
    second = store.load(Path("voice.json"), base_dir=tmp_path)
    third = store.load(tmp_path / "nested" / ".." / "voice.json")

    assert first is second is third
    assert dict(first) == {"name": "en-GB-Neural2-B"}
    assert len(reads) == 1
    with pytest.raises(TypeError):
        first["name"] = "changed"  # type: ignore[index]


def test_option_store_concurrent_loads_read_file_once(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Concurrent first loads of one path should populate the entry only once."""

    option_path = tmp_path / "audio.json"
    option_path.write_text(json.dumps({"speakingRate": 1.2}), encoding="utf-8")
    store = OptionStore()
    reads: list[Path] = []
    original_read = OptionStore._read

    def _counting_read(self: OptionStore, path: Path, display: Path) -> object:
        reads.append(path)
        return original_read(self, path, display)

    monkeypatch.setattr(OptionStore, "_read", _counting_read)
    results: list[object] = []
    threads = [
        threading.Thread(target=lambda: results.append(store.load(option_path)))
        for _ in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(reads) == 1
    assert all(result is results[0] for result in results)


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ("{not json", "is not valid JSON"),
        ("[1, 2]", "must contain a JSON object, found list"),
        ('"voice"', "must contain a JSON object, found str"),
    ],
)
def test_option_store_rejects_invalid_payloads(tmp_path: Path, payload: str, message: str) -> None:
    """Malformed option files should raise run-aborting config errors."""

    option_path = tmp_path / "broken.json"
    option_path.write_text(payload, encoding="utf-8")

    with pytest.raises(ConfigError, match=message) as exc_info:
        OptionStore().load(option_path)

    assert exc_info.value.stage == "config"


def test_option_store_reports_missing_file_with_hint(tmp_path: Path) -> None:
    """Missing option files should name the path and suggest where it came from."""

    with pytest.raises(ConfigError) as exc_info:
        OptionStore().load(tmp_path / "absent.json")

    assert "Option file not found" in exc_info.value.detail
    assert exc_info.value.hint is not None
    assert "--voice" in exc_info.value.hint
