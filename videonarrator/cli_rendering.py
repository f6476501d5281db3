"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
per-script results, and resolved timelines.
"""

from __future__ import annotations

from typing import NoReturn

import typer

from .errors import ParseError, PipelineStageError
from .models.datatypes import Schedule, ScheduleWarning, ScriptFailure, ScriptResult


def echo_stage_error(prefix: str, exc: Exception) -> None:
    """Print one failure with stage, detail, parse diagnostics, and hint."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{prefix} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if isinstance(exc, ParseError):
            for diagnostic in exc.diagnostics:
                typer.secho(f"  {diagnostic.render()}", fg=typer.colors.RED, err=True)
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{prefix} failed: {exc}", fg=typer.colors.RED, err=True)


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    echo_stage_error(command_name, exc)
    raise typer.Exit(code=1) from exc


def echo_schedule_warnings(warnings: tuple[ScheduleWarning, ...]) -> None:
    """Print one line per fragment the scheduler had to delay."""

    for warning in warnings:
        typer.secho(warning.describe(), fg=typer.colors.YELLOW, err=True)


def echo_script_result(result: ScriptResult) -> None:
    """Print the output path and cache usage for one narrated script."""

    echo_schedule_warnings(result.warnings)
    typer.echo(
        f"{result.script_path} -> {result.output_path} "
        f"({len(result.fragments)} fragments, {result.reused_count} reused, "
        f"{result.synthesized_count} synthesized, {result.schedule.end_time:.2f}s)"
    )


def echo_script_failure(failure: ScriptFailure) -> None:
    """Print diagnostics for one script that did not produce output."""

    echo_stage_error(str(failure.script_path), failure.error)


def echo_schedule(schedule: Schedule) -> None:
    """Print compact deterministic timeline rows."""

    echo_schedule_warnings(schedule.warnings)
    for entry in schedule.entries:
        typer.echo(
            f"{entry.start:9.3f}  {entry.end:9.3f}  "
            f"+{entry.silence_before:.3f}  {entry.fragment.name}"
        )
    typer.echo(f"Total: {schedule.end_time:.3f}s")
