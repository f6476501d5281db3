"""Typed data models for narration fragments, schedules, and run outcomes."""

from .datatypes import (
    AUDIO_ENCODING,
    AUDIO_EXTENSION,
    MIN_GAP_SECONDS,
    AbsoluteTime,
    CacheOutcome,
    DeclaredTime,
    Fragment,
    FragmentKind,
    MixPlan,
    MixSegment,
    RelativeTime,
    RunReport,
    Schedule,
    ScheduleEntry,
    ScheduleWarning,
    ScriptFailure,
    ScriptResult,
)

__all__ = [
    "AUDIO_ENCODING",
    "AUDIO_EXTENSION",
    "MIN_GAP_SECONDS",
    "AbsoluteTime",
    "CacheOutcome",
    "DeclaredTime",
    "Fragment",
    "FragmentKind",
    "MixPlan",
    "MixSegment",
    "RelativeTime",
    "RunReport",
    "Schedule",
    "ScheduleEntry",
    "ScheduleWarning",
    "ScriptFailure",
    "ScriptResult",
]
