"""Unit tests for YAML/env config loading and API-key precedence."""

from __future__ import annotations

from pathlib import Path

import pytest

from videonarrator.config import ConfigLoader, NarratorConfig, RuntimeConfigSources
from videonarrator.errors import ConfigError
from videonarrator.synthesis.google_client import DEFAULT_SPEECH_ENDPOINT


def test_from_yaml_loads_values_and_resolves_relative_paths(tmp_path: Path) -> None:
    """YAML values should populate the config with paths relative to the YAML file."""

    config_dir = tmp_path / "settings"
    config_dir.mkdir()
    config_path = config_dir / "narrator.yaml"
    config_path.write_text(
        "\n".join(
            [
                "cache_dir: cache",
                "voice_options: voices/en.json",
                f"audio_options: {tmp_path / 'audio.json'}",
                "overwrite: yes",
                "verbose: 'on'",
                "max_workers: 2",
                "min_gap_seconds: 0.25",
                "allow_plain_text: true",
                "request_timeout_seconds: 15",
                "api_key: ' yaml-key '",
            ]
        ),
        encoding="utf-8",
    )

    config = ConfigLoader.from_yaml(config_path)

    assert config.cache_dir == config_dir / "cache"
    assert config.voice_options_path == config_dir / "voices" / "en.json"
    assert config.audio_options_path == tmp_path / "audio.json"
    assert config.overwrite is True
    assert config.verbose is True
    assert config.max_workers == 2
    assert config.min_gap_seconds == 0.25
    assert config.allow_plain_text is True
    assert config.request_timeout_seconds == 15.0
    assert config.speech_endpoint == DEFAULT_SPEECH_ENDPOINT
    assert config.resolved_api_key() == "yaml-key"


def test_from_yaml_treats_empty_file_as_defaults(tmp_path: Path) -> None:
    """An empty YAML document should produce the default configuration."""

    config_path = tmp_path / "empty.yaml"
    config_path.write_text("", encoding="utf-8")

    config = ConfigLoader.from_yaml(config_path)

    assert config.cache_dir == Path("fragment-cache")
    assert config.max_workers == 4
    assert config.min_gap_seconds == 0.1


@pytest.mark.parametrize(
    ("yaml_text", "message"),
    [
        ("colour: red\n", "unsupported key(s): colour"),
        ("max_workers: 0\n", "`max_workers` must be a positive integer"),
        ("max_workers: true\n", "`max_workers` must be a positive integer"),
        ("min_gap_seconds: -1\n", "`min_gap_seconds` must be a non-negative number"),
        ("overwrite: maybe\n", "`overwrite` must be a boolean value"),
        ("- just\n- a list\n", "must contain a top-level mapping"),
        ("cache_dir: [unclosed\n", "is not valid YAML"),
    ],
)
def test_from_yaml_rejects_invalid_payloads(
    tmp_path: Path, yaml_text: str, message: str
) -> None:
    """Invalid YAML content should raise `ConfigError` with a specific message."""

    config_path = tmp_path / "bad.yaml"
    config_path.write_text(yaml_text, encoding="utf-8")

    with pytest.raises(ConfigError) as exc_info:
        ConfigLoader.from_yaml(config_path)

    assert message in exc_info.value.detail
    assert exc_info.value.stage == "config"


def test_from_yaml_reports_missing_file(tmp_path: Path) -> None:
    """Missing config files should raise a config-stage error naming the path."""

    missing = tmp_path / "missing.yaml"

    with pytest.raises(ConfigError, match="Config file not found"):
        ConfigLoader.from_yaml(missing)


def test_from_env_reads_prefixed_variables() -> None:
    """Environment variables should populate config fields and runtime env sources."""

    config = ConfigLoader.from_env(
        {
            "VIDEONARRATOR_CACHE_DIR": "/tmp/narration-cache",
            "VIDEONARRATOR_VOICE_OPTIONS": "voice.json",
            "VIDEONARRATOR_OVERWRITE": "1",
            "VIDEONARRATOR_MAX_WORKERS": "8",
            "VIDEONARRATOR_MIN_GAP_SECONDS": "0",
            "VIDEONARRATOR_SPEECH_ENDPOINT": "https://tts.example/v1",
            "GOOGLE_API_KEY": "env-key",
            "UNRELATED": "ignored",
        }
    )

    assert config.cache_dir == Path("/tmp/narration-cache")
    assert config.voice_options_path == Path("voice.json")
    assert config.audio_options_path is None
    assert config.overwrite is True
    assert config.verbose is False
    assert config.max_workers == 8
    assert config.min_gap_seconds == 0.0
    assert config.speech_endpoint == "https://tts.example/v1"
    assert dict(config.runtime_sources.env) == {"GOOGLE_API_KEY": "env-key"}
    assert config.resolved_api_key() == "env-key"


@pytest.mark.parametrize(
    ("env", "message"),
    [
        ({"VIDEONARRATOR_MAX_WORKERS": "many"}, "VIDEONARRATOR_MAX_WORKERS"),
        ({"VIDEONARRATOR_VERBOSE": "loud"}, "VIDEONARRATOR_VERBOSE"),
        ({"VIDEONARRATOR_MIN_GAP_SECONDS": "-0.5"}, "VIDEONARRATOR_MIN_GAP_SECONDS"),
    ],
)
def test_from_env_rejects_invalid_values(env: dict[str, str], message: str) -> None:
    """Invalid environment values should raise `ConfigError` naming the variable."""

    with pytest.raises(ConfigError, match=message):
        ConfigLoader.from_env(env)


def test_resolved_api_key_precedence_is_cli_secure_env_then_config() -> None:
    """API-key precedence should be CLI, then secure storage, then env, then config."""

    config = NarratorConfig(api_key="config-key")
    full = RuntimeConfigSources(
        cli={"api_key": "cli-key"},
        secure={"api_key": "secure-key"},
        env={"GOOGLE_API_KEY": "env-key"},
    )

    assert config.resolved_api_key(full) == "cli-key"
    assert (
        config.resolved_api_key(
            RuntimeConfigSources(secure=full.secure, env=full.env)
        )
        == "secure-key"
    )
    assert config.resolved_api_key(RuntimeConfigSources(env=full.env)) == "env-key"
    assert config.resolved_api_key(RuntimeConfigSources(cli={"api_key": "  "})) == "config-key"
    assert NarratorConfig().resolved_api_key() is None


def test_with_overrides_skips_none_and_validates() -> None:
    """Overrides should ignore `None` values and re-validate the result."""

    config = NarratorConfig(max_workers=3)

    updated = config.with_overrides(max_workers=None, overwrite=True, cache_dir=Path("c"))

    assert updated.max_workers == 3
    assert updated.overwrite is True
    assert updated.cache_dir == Path("c")
    assert config.overwrite is False
    with pytest.raises(ConfigError, match="max_workers"):
        config.with_overrides(max_workers=0)


def test_from_yaml_layers_present_keys_over_base_config(tmp_path: Path) -> None:
    """YAML keys should override the base config while absent keys keep base values."""

    base = ConfigLoader.from_env(
        {
            "VIDEONARRATOR_CACHE_DIR": "/tmp/env-cache",
            "VIDEONARRATOR_MAX_WORKERS": "6",
            "VIDEONARRATOR_VERBOSE": "true",
            "GOOGLE_API_KEY": "env-key",
        }
    )
    config_path = tmp_path / "narrator.yaml"
    config_path.write_text("max_workers: 2\noverwrite: true\n", encoding="utf-8")

    config = ConfigLoader.from_yaml(config_path, base=base)

    assert config.max_workers == 2
    assert config.overwrite is True
    assert config.cache_dir == Path("/tmp/env-cache")
    assert config.verbose is True
    assert config.resolved_api_key() == "env-key"
