"""Command-line interface for video-narrator.

Responsibilities:
- Expose user-facing commands for building and inspecting narrations.
- Convert CLI arguments into `NarratorConfig` and run the pipeline.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated

import typer

from .cli_rendering import (
    echo_schedule,
    echo_script_failure,
    echo_script_result,
    exit_with_command_error,
)
from .cli_runtime import resolve_api_key_sources
from .config import ConfigLoader, NarratorConfig
from .credentials import create_credential_store
from .errors import PipelineStageError
from .parsing import normalize_optional_string
from .pipeline import NarrationPipeline
from .telemetry.logger import RunLogger

app = typer.Typer(
    name="video-narrator",
    no_args_is_help=True,
    help="Build narration audio tracks from timed SSML scripts.",
)


class BuildProgressIndicator:
    """Render deterministic per-stage progress lines for long-running commands."""

    _SPINNER_FRAMES = "|/-\\"

    def __init__(self, command_name: str) -> None:
        """Initialize progress indicator metadata for a command invocation."""

        self._command_name = command_name

    def on_stage_start(self, stage_name: str, stage_index: int, stage_total: int) -> None:
        """Print one progress line for a stage start transition."""

        spinner = self._SPINNER_FRAMES[(stage_index - 1) % len(self._SPINNER_FRAMES)]
        typer.echo(
            f"[progress] command={self._command_name} "
            f"{spinner} {stage_index}/{stage_total} stage={stage_name}"
        )


def _resolve_command_config(
    config_file: Path | None,
    cache_dir: Path | None = None,
    audio: Path | None = None,
    voice: Path | None = None,
    overwrite: bool = False,
    verbose: bool = False,
    workers: int | None = None,
    allow_plain_text: bool = False,
) -> NarratorConfig:
    """Resolve command config: environment, then YAML file, then explicit CLI flags."""

    base_config = ConfigLoader.from_env(os.environ)
    if config_file is not None:
        base_config = ConfigLoader.from_yaml(config_file, base=base_config)
    return base_config.with_overrides(
        cache_dir=cache_dir,
        audio_options_path=audio,
        voice_options_path=voice,
        overwrite=True if overwrite else None,
        verbose=True if verbose else None,
        max_workers=workers,
        allow_plain_text=True if allow_plain_text else None,
    )


@app.command("build")
def build_command(
    scripts: Annotated[
        list[Path],
        typer.Argument(help="Narration script files; each produces `<script>.ogg`."),
    ],
    audio: Annotated[
        Path | None,
        typer.Option("--audio", help="JSON audio-options file applied to every fragment."),
    ] = None,
    voice: Annotated[
        Path | None,
        typer.Option("--voice", help="JSON voice-options file applied to every fragment."),
    ] = None,
    overwrite: Annotated[
        bool,
        typer.Option("-y", "--overwrite", help="Replace existing output files."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Log per-fragment reuse and synthesis."),
    ] = False,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to YAML config file with command defaults."),
    ] = None,
    cache_dir: Annotated[
        Path | None,
        typer.Option("--cache-dir", help="Fragment cache directory (default `fragment-cache`)."),
    ] = None,
    workers: Annotated[
        int | None,
        typer.Option("--workers", min=1, help="Maximum concurrent synthesis/probe calls."),
    ] = None,
    allow_plain_text: Annotated[
        bool,
        typer.Option(
            "--allow-plain-text",
            help="Accept fragments without `<speak>` markers as plain text input.",
        ),
    ] = False,
    api_key: Annotated[
        str | None,
        typer.Option(
            "--api-key",
            help="Google Cloud API key. Prefer `--prompt-api-key` to avoid shell history.",
        ),
    ] = None,
    prompt_api_key: Annotated[
        bool,
        typer.Option(
            "--prompt-api-key",
            help="Prompt for API key with hidden input (never echoed).",
        ),
    ] = False,
    store_api_key: Annotated[
        bool,
        typer.Option(
            "--store-api-key/--no-store-api-key",
            help="Persist CLI-entered API key to secure credential storage.",
        ),
    ] = True,
) -> None:
    """Synthesize, schedule, and mix each script into one narration track."""

    try:
        base_config = _resolve_command_config(
            config_file=config_file,
            cache_dir=cache_dir,
            audio=audio,
            voice=voice,
            overwrite=overwrite,
            verbose=verbose,
            workers=workers,
            allow_plain_text=allow_plain_text,
        )
        runtime_sources = resolve_api_key_sources(
            api_key=api_key,
            prompt_api_key=prompt_api_key,
            store_api_key=store_api_key,
            env=dict(os.environ),
            credential_store_factory=create_credential_store,
        )
        config = base_config.with_overrides(runtime_sources=runtime_sources)
        progress = BuildProgressIndicator(command_name="build")
        pipeline = NarrationPipeline(
            config,
            run_logger=RunLogger(verbose=config.verbose),
            stage_progress_callback=progress.on_stage_start,
        )
        report = pipeline.run_many(scripts)
    except Exception as exc:
        exit_with_command_error("build", exc)

    for result in report.results:
        echo_script_result(result)
    for failure in report.failures:
        echo_script_failure(failure)
    if not report.succeeded:
        typer.secho(
            f"{len(report.failures)} of {len(scripts)} script(s) failed.",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)


@app.command("schedule")
def schedule_command(
    script: Annotated[Path, typer.Argument(help="Narration script file.")],
    voice: Annotated[
        Path | None,
        typer.Option("--voice", help="JSON voice-options file applied to every fragment."),
    ] = None,
    audio: Annotated[
        Path | None,
        typer.Option("--audio", help="JSON audio-options file applied to every fragment."),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to YAML config file with command defaults."),
    ] = None,
    cache_dir: Annotated[
        Path | None,
        typer.Option("--cache-dir", help="Fragment cache directory (default `fragment-cache`)."),
    ] = None,
    allow_plain_text: Annotated[
        bool,
        typer.Option(
            "--allow-plain-text",
            help="Accept fragments without `<speak>` markers as plain text input.",
        ),
    ] = False,
) -> None:
    """Print the resolved timeline of a script using already cached audio."""

    try:
        config = _resolve_command_config(
            config_file=config_file,
            cache_dir=cache_dir,
            audio=audio,
            voice=voice,
            allow_plain_text=allow_plain_text,
        )
        pipeline = NarrationPipeline(config, run_logger=RunLogger(verbose=config.verbose))
        schedule = pipeline.schedule_only(script)
    except Exception as exc:
        exit_with_command_error("schedule", exc)

    echo_schedule(schedule)


@app.command("credentials")
def credentials_command(
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key with hidden input and store it securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage the securely stored Google Cloud API key."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                "Google Cloud API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        try:
            removed = credential_store.clear_api_key()
        except PipelineStageError as exc:
            exit_with_command_error("credentials", exc)
        if removed:
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    try:
        has_stored_key = credential_store.get_api_key() is not None
    except PipelineStageError as exc:
        exit_with_command_error("credentials", exc)
    status = "present" if has_stored_key else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored Google Cloud API key: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
