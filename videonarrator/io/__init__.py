"""Filesystem storage for cached fragment artifacts."""

from .storage import FragmentStore

__all__ = ["FragmentStore"]
