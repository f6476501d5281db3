"""Module entrypoint for running video-narrator as ``python -m videonarrator``."""

from __future__ import annotations

from videonarrator.cli import main


if __name__ == "__main__":
    main()
