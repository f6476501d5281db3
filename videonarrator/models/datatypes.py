"""Core datatypes shared across video-narrator modules.

Responsibilities:
- Represent fragments and the records exchanged between pipeline stages.
- Keep declared (script) timing separate from resolved (scheduled) timing.

Key types:
- `Fragment`, `AbsoluteTime`, `RelativeTime`, `CacheOutcome`,
  `ScheduleEntry`, `ScheduleWarning`, `Schedule`, `MixSegment`, `MixPlan`,
  `ScriptResult`, `ScriptFailure`, and `RunReport`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping


MIN_GAP_SECONDS = 0.1
AUDIO_ENCODING = "OGG_OPUS"
AUDIO_EXTENSION = ".ogg"


class FragmentKind(str, Enum):
    """Markup flavour of a fragment's content."""

    SSML = "ssml"
    TEXT = "text"


@dataclass(frozen=True, slots=True)
class AbsoluteTime:
    """Start time measured from the beginning of the narration track."""

    seconds: float


@dataclass(frozen=True, slots=True)
class RelativeTime:
    """Start time measured from the end of the previous fragment."""

    offset_seconds: float


DeclaredTime = AbsoluteTime | RelativeTime


@dataclass(slots=True)
class Fragment:
    """One timed, independently-configured unit of narration.

    Attributes:
        name: Script-unique identifier, also used as the cache filename stem.
        kind: Markup flavour sent to the speech service.
        content: Ordered raw source lines.
        declared_time: Absolute or relative start as written in the script.
        voice_options: Fully merged voice configuration.
        audio_options: Fully merged audio configuration (encoding excluded).
        line_number: 1-based script line of the fragment header.
        duration: Measured audio duration in seconds, once probed.
        resolved_start: Absolute start in the final timeline, once scheduled.
    """

    name: str
    kind: FragmentKind
    content: tuple[str, ...]
    declared_time: DeclaredTime
    voice_options: Mapping[str, Any] = field(default_factory=dict)
    audio_options: Mapping[str, Any] = field(default_factory=dict)
    line_number: int = 0
    duration: float | None = None
    resolved_start: float | None = None

    def serialized_source(self) -> str:
        """Return the exact text submitted to the speech service."""

        return "\n".join(self.content) + "\n"


@dataclass(frozen=True, slots=True)
class CacheOutcome:
    """Result of ensuring one fragment has up-to-date audio."""

    fragment_name: str
    audio_path: Path
    reused: bool


@dataclass(frozen=True, slots=True)
class ScheduleWarning:
    """Record of an absolute fragment moved later to keep the minimum gap.

    Attributes:
        fragment_name: Fragment that was delayed.
        kind: `overlap` when the declared start preceded the previous end,
            `near_overlap` when it fell inside the minimum gap.
        declared_start: Start time written in the script.
        resolved_start: Start time actually used.
    """

    fragment_name: str
    kind: str
    declared_start: float
    resolved_start: float

    def describe(self) -> str:
        """Return a one-line human-readable warning."""

        if self.kind == "overlap":
            relation = "overlaps previous content"
        else:
            relation = "nearly overlaps previous content"
        return (
            f"Fragment {self.fragment_name} {relation} - delaying to "
            f"{self.resolved_start:.3f}"
        )


@dataclass(frozen=True, slots=True)
class ScheduleEntry:
    """One placed fragment in the resolved timeline."""

    fragment: Fragment
    start: float
    silence_before: float

    @property
    def end(self) -> float:
        """Return the end time of this entry's audio."""

        return self.start + (self.fragment.duration or 0.0)


@dataclass(frozen=True, slots=True)
class Schedule:
    """Resolved, monotonic narration timeline."""

    entries: tuple[ScheduleEntry, ...]
    warnings: tuple[ScheduleWarning, ...] = ()

    @property
    def end_time(self) -> float:
        """Return the end of the last placed fragment (0 for empty schedules)."""

        if not self.entries:
            return 0.0
        return self.entries[-1].end


@dataclass(frozen=True, slots=True)
class MixSegment:
    """Silence followed by one fragment's audio."""

    silence_seconds: float
    audio_path: Path
    fragment_name: str


@dataclass(frozen=True, slots=True)
class MixPlan:
    """Ordered silence/audio segments that reproduce a schedule."""

    segments: tuple[MixSegment, ...]
    total_seconds: float


@dataclass(frozen=True, slots=True)
class ScriptResult:
    """Outcome of one successfully narrated script."""

    script_path: Path
    output_path: Path
    fragments: tuple[Fragment, ...]
    schedule: Schedule
    reused_count: int
    synthesized_count: int

    @property
    def warnings(self) -> tuple[ScheduleWarning, ...]:
        """Return the schedule clamps reported for this script."""

        return self.schedule.warnings


@dataclass(frozen=True, slots=True)
class ScriptFailure:
    """Outcome of one script that stopped at a pipeline stage."""

    script_path: Path
    error: Exception


@dataclass(slots=True)
class RunReport:
    """Per-script outcomes of one invocation, in input order."""

    results: list[ScriptResult] = field(default_factory=list)
    failures: list[ScriptFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """Return whether every script produced an output file."""

        return not self.failures
