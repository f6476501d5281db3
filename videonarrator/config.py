"""Configuration model and loaders for video-narrator.

Responsibilities:
- Define runtime configuration as a typed dataclass.
- Provide deterministic precedence resolution for the speech API key.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `NarratorConfig`: normalized runtime settings for one invocation.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `NarratorConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ConfigError
from .models.datatypes import MIN_GAP_SECONDS
from .parsing import (
    normalize_optional_string,
    parse_non_negative_float,
    parse_permissive_boolean,
)
from .synthesis.google_client import DEFAULT_SPEECH_ENDPOINT


_DEFAULT_CACHE_DIR = Path("fragment-cache")
_DEFAULT_MAX_WORKERS = 4
_DEFAULT_REQUEST_TIMEOUT_SECONDS = 60.0
_API_KEY_ENV = "GOOGLE_API_KEY"


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class NarratorConfig:
    """Runtime configuration for one narration invocation.

    Attributes:
        cache_dir: Directory holding per-fragment audio, source, and sentinels.
        audio_options_path: Optional global audio-options JSON file.
        voice_options_path: Optional global voice-options JSON file.
        overwrite: Whether existing output files may be replaced.
        verbose: Whether per-fragment progress is logged.
        max_workers: Upper bound on concurrent synthesis/probe calls.
        min_gap_seconds: Minimum silence between an absolute fragment and its predecessor.
        allow_plain_text: Whether blocks without speak markers are accepted as plain text.
        speech_endpoint: Base URL of the Text-to-Speech REST API.
        request_timeout_seconds: Per-request timeout for speech calls.
        api_key: Optional API key for speech calls.
        runtime_sources: Optional runtime source overrides injected by CLI.
    """

    cache_dir: Path = _DEFAULT_CACHE_DIR
    audio_options_path: Path | None = None
    voice_options_path: Path | None = None
    overwrite: bool = False
    verbose: bool = False
    max_workers: int = _DEFAULT_MAX_WORKERS
    min_gap_seconds: float = MIN_GAP_SECONDS
    allow_plain_text: bool = False
    speech_endpoint: str = DEFAULT_SPEECH_ENDPOINT
    request_timeout_seconds: float = _DEFAULT_REQUEST_TIMEOUT_SECONDS
    api_key: str | None = None
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)

    def validate(self) -> None:
        """Validate runtime configuration values before pipeline execution."""

        if isinstance(self.max_workers, bool) or self.max_workers <= 0:
            raise ConfigError("`max_workers` must be a positive integer.")
        if self.min_gap_seconds < 0:
            raise ConfigError("`min_gap_seconds` must be a non-negative number.")
        if self.request_timeout_seconds <= 0:
            raise ConfigError("`request_timeout_seconds` must be a positive number.")
        if normalize_optional_string(self.speech_endpoint) is None:
            raise ConfigError("`speech_endpoint` must be a non-empty URL.")
        if normalize_optional_string(str(self.cache_dir)) is None:
            raise ConfigError("`cache_dir` must be a non-empty path.")

    def with_overrides(self, **overrides: Any) -> NarratorConfig:
        """Return a validated copy with non-`None` overrides applied."""

        applied = {key: value for key, value in overrides.items() if value is not None}
        updated = replace(self, **applied)
        updated.validate()
        return updated

    def resolved_api_key(self, sources: RuntimeConfigSources | None = None) -> str | None:
        """Resolve the speech API key with deterministic source precedence.

        Precedence is: `cli` > `secure` > env `GOOGLE_API_KEY` > config field.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources

        cli_value = self._normalized_lookup(resolved_sources.cli, "api_key")
        if cli_value is not None:
            return cli_value

        secure_value = self._normalized_lookup(resolved_sources.secure, "api_key")
        if secure_value is not None:
            return secure_value

        env_value = self._normalized_lookup(resolved_sources.env, _API_KEY_ENV)
        if env_value is not None:
            return env_value

        return normalize_optional_string(self.api_key)

    @staticmethod
    def _normalized_lookup(mapping: Mapping[str, str], key: str) -> str | None:
        """Return a stripped mapping value for a key or `None` when missing/blank."""

        if key not in mapping:
            return None
        return normalize_optional_string(mapping.get(key))


class ConfigLoader:
    """Factory methods for creating `NarratorConfig` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset(
        {
            "cache_dir",
            "audio_options",
            "voice_options",
            "overwrite",
            "verbose",
            "max_workers",
            "min_gap_seconds",
            "allow_plain_text",
            "speech_endpoint",
            "request_timeout_seconds",
            "api_key",
        }
    )
    _RUNTIME_ENV_KEYS = frozenset({_API_KEY_ENV})

    @staticmethod
    def from_yaml(path: Path, base: NarratorConfig | None = None) -> NarratorConfig:
        """Create a validated config from a YAML file.

        Keys present in the file override `base` (defaults when omitted). Relative
        option and cache paths are resolved against the YAML file's directory.
        """

        try:
            path_text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ConfigError(f"Config file not found: `{path}`.") from exc
        except OSError as exc:
            raise ConfigError(f"Config file `{path}` is not readable: {exc}.") from exc
        payload = ConfigLoader._parse_yaml_payload(path_text, path)

        return ConfigLoader._build_config_from_mapping(
            payload,
            source_label=f"YAML `{path}`",
            base_dir=path.parent,
            base=base or NarratorConfig(),
        )

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> NarratorConfig:
        """Create a validated config from environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env

        cache_dir = (
            ConfigLoader._optional_env_path(env_map, "VIDEONARRATOR_CACHE_DIR")
            or _DEFAULT_CACHE_DIR
        )
        max_workers = (
            ConfigLoader._optional_env_positive_int(env_map, "VIDEONARRATOR_MAX_WORKERS")
            or _DEFAULT_MAX_WORKERS
        )
        min_gap = ConfigLoader._optional_env_float(env_map, "VIDEONARRATOR_MIN_GAP_SECONDS")
        timeout = ConfigLoader._optional_env_float(
            env_map, "VIDEONARRATOR_REQUEST_TIMEOUT_SECONDS"
        )
        runtime_env = {
            key: value
            for key, value in env_map.items()
            if key in ConfigLoader._RUNTIME_ENV_KEYS
            and normalize_optional_string(value) is not None
        }

        config = NarratorConfig(
            cache_dir=cache_dir,
            audio_options_path=ConfigLoader._optional_env_path(
                env_map, "VIDEONARRATOR_AUDIO_OPTIONS"
            ),
            voice_options_path=ConfigLoader._optional_env_path(
                env_map, "VIDEONARRATOR_VOICE_OPTIONS"
            ),
            overwrite=ConfigLoader._optional_env_boolean(env_map, "VIDEONARRATOR_OVERWRITE")
            or False,
            verbose=ConfigLoader._optional_env_boolean(env_map, "VIDEONARRATOR_VERBOSE")
            or False,
            max_workers=max_workers,
            min_gap_seconds=MIN_GAP_SECONDS if min_gap is None else min_gap,
            allow_plain_text=ConfigLoader._optional_env_boolean(
                env_map, "VIDEONARRATOR_ALLOW_PLAIN_TEXT"
            )
            or False,
            speech_endpoint=ConfigLoader._optional_env_string(
                env_map, "VIDEONARRATOR_SPEECH_ENDPOINT"
            )
            or DEFAULT_SPEECH_ENDPOINT,
            request_timeout_seconds=_DEFAULT_REQUEST_TIMEOUT_SECONDS if timeout is None else timeout,
            runtime_sources=RuntimeConfigSources(env=runtime_env),
        )
        config.validate()
        return config

    @staticmethod
    def _parse_yaml_payload(raw_text: str, path: Path) -> Mapping[str, Any]:
        """Parse YAML text and enforce a mapping root payload."""

        try:
            payload = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"YAML config `{path}` is not valid YAML: {exc}") from exc

        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ConfigError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return payload

    @staticmethod
    def _build_config_from_mapping(
        payload: Mapping[str, Any],
        source_label: str,
        base_dir: Path,
        base: NarratorConfig,
    ) -> NarratorConfig:
        """Apply the keys present in a normalized mapping payload on top of `base`."""

        ConfigLoader._validate_yaml_keys(payload, source_label)

        overrides: dict[str, Any] = {}
        for key, field_name in (
            ("cache_dir", "cache_dir"),
            ("audio_options", "audio_options_path"),
            ("voice_options", "voice_options_path"),
        ):
            path = ConfigLoader._optional_path(payload, key, base_dir)
            if path is not None:
                overrides[field_name] = path
        for key in ("overwrite", "verbose", "allow_plain_text"):
            if key in payload:
                overrides[key] = ConfigLoader._optional_boolean(
                    payload, key, source_label, default=False
                )
        overrides["max_workers"] = ConfigLoader._optional_positive_int(
            payload, "max_workers", source_label, default=base.max_workers
        )
        for key in ("min_gap_seconds", "request_timeout_seconds"):
            parsed = ConfigLoader._optional_non_negative_float(payload, key, source_label)
            if parsed is not None:
                overrides[key] = parsed
        for key in ("speech_endpoint", "api_key"):
            value = normalize_optional_string(payload.get(key))
            if value is not None:
                overrides[key] = value

        config = replace(base, **overrides)
        config.validate()
        return config

    @staticmethod
    def _validate_yaml_keys(payload: Mapping[str, Any], source_label: str) -> None:
        """Reject YAML keys that no config field reads."""

        unknown = sorted(str(key) for key in set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            key_list = ", ".join(unknown)
            raise ConfigError(f"{source_label} includes unsupported key(s): {key_list}.")

    @staticmethod
    def _optional_path(payload: Mapping[str, Any], key: str, base_dir: Path) -> Path | None:
        """Read an optional path field, resolving relative values against `base_dir`."""

        value = normalize_optional_string(payload.get(key))
        if value is None:
            return None
        path = Path(value).expanduser()
        return path if path.is_absolute() else base_dir / path

    @staticmethod
    def _optional_positive_int(
        payload: Mapping[str, Any], key: str, source_label: str, default: int
    ) -> int:
        """Read and validate a positive integer payload field."""

        if key not in payload:
            return default

        raw_value = payload[key]
        if isinstance(raw_value, bool):
            raise ConfigError(f"{source_label} field `{key}` must be a positive integer.")
        if isinstance(raw_value, int):
            parsed = raw_value
        else:
            normalized = normalize_optional_string(raw_value)
            if normalized is None:
                return default
            try:
                parsed = int(normalized)
            except ValueError as exc:
                raise ConfigError(
                    f"{source_label} field `{key}` must be a positive integer."
                ) from exc

        if parsed <= 0:
            raise ConfigError(f"{source_label} field `{key}` must be a positive integer.")
        return parsed

    @staticmethod
    def _optional_non_negative_float(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> float | None:
        """Read and validate a non-negative number payload field."""

        if key not in payload or payload[key] is None:
            return None
        parsed = parse_non_negative_float(payload[key])
        if parsed is None:
            raise ConfigError(f"{source_label} field `{key}` must be a non-negative number.")
        return parsed

    @staticmethod
    def _optional_boolean(
        payload: Mapping[str, Any], key: str, source_label: str, default: bool
    ) -> bool:
        """Read and validate a boolean field from a payload."""

        if key not in payload:
            return default

        parsed = parse_permissive_boolean(payload[key])
        if parsed is None:
            raise ConfigError(
                f"{source_label} field `{key}` must be a boolean value "
                "(`true`/`false`, `1`/`0`, `yes`/`no`)."
            )
        return parsed

    @staticmethod
    def _optional_env_string(env: Mapping[str, str], key: str) -> str | None:
        """Read and normalize optional string environment variable values."""

        if key not in env:
            return None
        return normalize_optional_string(env.get(key))

    @staticmethod
    def _optional_env_path(env: Mapping[str, str], key: str) -> Path | None:
        """Read an optional path value from environment mapping."""

        value = ConfigLoader._optional_env_string(env, key)
        if value is None:
            return None
        return Path(value)

    @staticmethod
    def _optional_env_positive_int(env: Mapping[str, str], key: str) -> int | None:
        """Read an optional positive integer from environment mapping."""

        raw_value = ConfigLoader._optional_env_string(env, key)
        if raw_value is None:
            return None
        try:
            parsed = int(raw_value)
        except ValueError as exc:
            raise ConfigError(f"Environment variable `{key}` must be a positive integer.") from exc
        if parsed <= 0:
            raise ConfigError(f"Environment variable `{key}` must be a positive integer.")
        return parsed

    @staticmethod
    def _optional_env_float(env: Mapping[str, str], key: str) -> float | None:
        """Read an optional non-negative number from environment mapping."""

        raw_value = ConfigLoader._optional_env_string(env, key)
        if raw_value is None:
            return None
        parsed = parse_non_negative_float(raw_value)
        if parsed is None:
            raise ConfigError(f"Environment variable `{key}` must be a non-negative number.")
        return parsed

    @staticmethod
    def _optional_env_boolean(env: Mapping[str, str], key: str) -> bool | None:
        """Read an optional boolean from environment mapping."""

        if key not in env:
            return None
        parsed = parse_permissive_boolean(env.get(key))
        if parsed is None:
            raise ConfigError(
                f"Environment variable `{key}` must be a boolean value "
                "(`true`/`false`, `1`/`0`, `yes`/`no`)."
            )
        return parsed
