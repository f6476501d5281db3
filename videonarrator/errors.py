"""Domain exceptions for pipeline and CLI diagnostics."""

from __future__ import annotations

from dataclasses import dataclass


class PipelineStageError(RuntimeError):
    """Raised when a specific pipeline stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped pipeline error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


@dataclass(frozen=True, slots=True)
class ScriptDiagnostic:
    """One problem detected while parsing a narration script.

    Attributes:
        line_number: 1-based script line the problem was detected on.
        message: Human-readable problem description.
        line: Raw text of the offending line.
    """

    line_number: int
    message: str
    line: str = ""

    def render(self) -> str:
        """Return a compact `line <n>: <message>` diagnostic string."""

        if self.line_number <= 0:
            return self.message
        if self.line:
            return f"line {self.line_number}: {self.message} ({self.line.strip()!r})"
        return f"line {self.line_number}: {self.message}"


class ParseError(PipelineStageError):
    """Raised when a script contains one or more malformed lines or blocks."""

    def __init__(self, script: str, diagnostics: list[ScriptDiagnostic]) -> None:
        """Initialize with every diagnostic collected for the script."""

        count = len(diagnostics)
        noun = "problem" if count == 1 else "problems"
        super().__init__(
            stage="parse",
            detail=f"Script `{script}` has {count} {noun}; no audio work performed.",
            hint="Fix the reported lines and rerun.",
        )
        self.script = script
        self.diagnostics = tuple(diagnostics)


class ConfigError(PipelineStageError):
    """Raised when run configuration or an option file is unusable."""

    def __init__(self, detail: str, hint: str | None = None) -> None:
        """Initialize a run-aborting configuration error."""

        super().__init__(
            stage="config",
            detail=detail,
            hint=hint or "Fix the configuration or option file and rerun.",
        )


class SynthesisError(PipelineStageError):
    """Raised when the speech collaborator fails for one or more fragments."""

    def __init__(
        self,
        fragment_names: list[str],
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize with the names of every fragment that failed to synthesize."""

        super().__init__(stage="synthesize", detail=detail, hint=hint)
        self.fragment_names = tuple(fragment_names)


class DurationError(PipelineStageError):
    """Raised when an audio duration cannot be determined for a fragment."""

    def __init__(
        self,
        fragment_names: list[str],
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize with the names of every fragment whose probe failed."""

        super().__init__(
            stage="probe",
            detail=detail,
            hint=hint or "Verify `ffprobe` is installed and the cached audio is readable.",
        )
        self.fragment_names = tuple(fragment_names)


class MixError(PipelineStageError):
    """Raised when final assembly of the narration track fails."""

    def __init__(
        self,
        detail: str,
        diagnostic_output: str = "",
        hint: str | None = None,
    ) -> None:
        """Initialize with the mixing tool's diagnostic output, when available."""

        super().__init__(stage="mix", detail=detail, hint=hint)
        self.diagnostic_output = diagnostic_output
