"""Mix planning for a resolved narration schedule.

Responsibilities:
- Turn scheduled fragments into ordered silence/audio segments.
- Delegate final assembly to an `AudioMixer` collaborator.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

from ..audio.mixer import AudioMixer
from ..errors import MixError
from ..models.datatypes import AUDIO_EXTENSION, MixPlan, MixSegment, Schedule


_SILENCE_EPSILON = 1e-9


class CompositorPlanner:
    """Build mix plans from schedules and hand them to the mixer."""

    def __init__(self, mixer: AudioMixer) -> None:
        """Initialize with the mixing collaborator."""

        self.mixer = mixer

    def plan(self, schedule: Schedule, audio_paths: Mapping[str, Path]) -> MixPlan:
        """Return the silence/audio segment sequence that reproduces `schedule`."""

        segments: list[MixSegment] = []
        current_time = 0.0
        for entry in schedule.entries:
            name = entry.fragment.name
            if name not in audio_paths:
                raise MixError(
                    f"No audio file is known for fragment `{name}`.",
                    hint="Synthesize every fragment before planning the mix.",
                )
            silence = entry.start - current_time
            if silence < 0:
                if silence < -_SILENCE_EPSILON:
                    raise MixError(
                        f"Fragment `{name}` starts {-silence:.3f}s before the previous one ends.",
                        hint="Mix plans require a schedule produced by the timeline scheduler.",
                    )
                silence = 0.0
            segments.append(
                MixSegment(silence_seconds=silence, audio_path=audio_paths[name], fragment_name=name)
            )
            current_time = entry.end
        return MixPlan(segments=tuple(segments), total_seconds=current_time)

    def compose(
        self,
        schedule: Schedule,
        audio_paths: Mapping[str, Path],
        output_path: Path,
        *,
        overwrite: bool = False,
    ) -> MixPlan:
        """Plan the mix and write it to `output_path` through the mixer."""

        mix_plan = self.plan(schedule, audio_paths)
        self.mixer.mix(mix_plan, output_path, overwrite=overwrite)
        return mix_plan


def output_path_for(script_path: Path) -> Path:
    """Return the narration output path for a script.

    The script's last extension is replaced by `.ogg`; a script without an
    extension gets `.ogg` appended.
    """

    if script_path.suffix:
        return script_path.with_suffix(AUDIO_EXTENSION)
    return script_path.with_name(script_path.name + AUDIO_EXTENSION)
