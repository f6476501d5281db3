"""Narration script parsing."""

from .parser import ScriptParser, parse_time_spec

__all__ = ["ScriptParser", "parse_time_spec"]
