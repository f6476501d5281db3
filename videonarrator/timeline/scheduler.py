"""Timeline scheduling for narration fragments.

Responsibilities:
- Convert declared absolute/relative start times plus measured durations into
  a monotonic, gap-enforced timeline.
- Report every absolute fragment that had to be delayed.

Placement runs in script order carrying `current_time`, the end of the
previously placed fragment:

- relative fragments start at `current_time + offset`, never clamped;
- absolute fragments start at their declared time unless that is before
  `current_time + min_gap`, in which case they start at `current_time + min_gap`.

The first fragment has no predecessor, so only a true overlap could clamp it.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..errors import DurationError
from ..models.datatypes import (
    MIN_GAP_SECONDS,
    AbsoluteTime,
    Fragment,
    Schedule,
    ScheduleEntry,
    ScheduleWarning,
)


class TimelineScheduler:
    """Sequentially place fragments on the narration timeline."""

    def __init__(self, min_gap_seconds: float = MIN_GAP_SECONDS) -> None:
        """Initialize the minimum audible gap between absolute fragments."""

        if min_gap_seconds < 0:
            raise ValueError("`min_gap_seconds` must be non-negative.")
        self.min_gap_seconds = min_gap_seconds

    def schedule(self, fragments: Iterable[Fragment]) -> Schedule:
        """Resolve start times for fragments with known durations.

        Sets `resolved_start` on each fragment and returns the schedule.

        Raises:
            DurationError: If any fragment has no measured duration.
        """

        ordered = list(fragments)
        unknown = [fragment.name for fragment in ordered if fragment.duration is None]
        if unknown:
            raise DurationError(
                unknown,
                "Cannot schedule fragments with unknown duration: " + ", ".join(unknown) + ".",
                hint="Durations must be probed for every fragment before scheduling.",
            )

        entries: list[ScheduleEntry] = []
        warnings: list[ScheduleWarning] = []
        current_time = 0.0
        for fragment in ordered:
            declared = fragment.declared_time
            if isinstance(declared, AbsoluteTime):
                start = self._place_absolute(fragment, declared.seconds, current_time, entries, warnings)
            else:
                start = current_time + declared.offset_seconds

            fragment.resolved_start = start
            entries.append(
                ScheduleEntry(fragment=fragment, start=start, silence_before=start - current_time)
            )
            current_time = start + (fragment.duration or 0.0)

        return Schedule(entries=tuple(entries), warnings=tuple(warnings))

    def _place_absolute(
        self,
        fragment: Fragment,
        declared_start: float,
        current_time: float,
        entries: list[ScheduleEntry],
        warnings: list[ScheduleWarning],
    ) -> float:
        """Return the start for one absolute fragment, recording any clamp."""

        if declared_start < current_time:
            kind = "overlap"
        elif entries and declared_start < current_time + self.min_gap_seconds:
            kind = "near_overlap"
        else:
            return declared_start

        start = current_time + self.min_gap_seconds
        warnings.append(
            ScheduleWarning(
                fragment_name=fragment.name,
                kind=kind,
                declared_start=declared_start,
                resolved_start=start,
            )
        )
        return start
