"""Timeline scheduling and mix planning."""

from .planner import CompositorPlanner, output_path_for
from .scheduler import TimelineScheduler

__all__ = ["CompositorPlanner", "TimelineScheduler", "output_path_for"]
