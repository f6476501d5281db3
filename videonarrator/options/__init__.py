"""Voice/audio option loading and merge rules."""

from .store import DEFAULT_VOICE_OPTIONS, OptionStore, merge_chain, merge_options

__all__ = ["DEFAULT_VOICE_OPTIONS", "OptionStore", "merge_chain", "merge_options"]
