"""Narration pipeline package.

This package contains the stage orchestrator, the bounded per-fragment
fan-out, and stage telemetry helpers.
"""

from .fanout import FanOutResult, fan_out
from .orchestrator import NarrationPipeline

__all__ = ["FanOutResult", "NarrationPipeline", "fan_out"]
