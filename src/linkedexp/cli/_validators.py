"""Shared argparse type validators for CLI arguments.

These validators produce clear usage errors (exit status 2) when users pass
paths that cannot work, before any table is read. They are intended to be
used as the ``type=`` argument in ``add_argument()``.
"""

from __future__ import annotations

import argparse
from pathlib import Path


def _existing_file(value: str) -> Path:
    """argparse type for a path that must be an existing regular file."""
    path = Path(value)
    if not path.exists():
        raise argparse.ArgumentTypeError(f"{value} does not exist")
    if not path.is_file():
        raise argparse.ArgumentTypeError(f"{value} is not a file")
    return path


def _output_path(value: str) -> Path:
    """argparse type for an output path (must not be an existing directory)."""
    path = Path(value)
    if path.is_dir():
        raise argparse.ArgumentTypeError(f"{value} is a directory")
    return path
