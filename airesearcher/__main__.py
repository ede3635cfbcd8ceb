"""Module entrypoint for running AI Researcher as ``python -m airesearcher``."""

from __future__ import annotations

from airesearcher.cli import main


if __name__ == "__main__":
    main()
