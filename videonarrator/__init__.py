"""Top-level package for video-narrator.

This package turns timed SSML narration scripts into single `.ogg` narration
tracks, re-synthesizing only fragments whose content or options changed. The
main orchestration entry point is `NarrationPipeline`.
"""

from .pipeline import NarrationPipeline

__all__ = ["NarrationPipeline", "__version__"]

__version__ = "0.1.0"
