"""Audio probing and final mixing."""

from .mixer import AudioMixer, FfmpegMixer
from .probe import DurationProbe, DurationResolver, FfprobeDurationProbe, ProbeFailure

__all__ = [
    "AudioMixer",
    "DurationProbe",
    "DurationResolver",
    "FfmpegMixer",
    "FfprobeDurationProbe",
    "ProbeFailure",
]
