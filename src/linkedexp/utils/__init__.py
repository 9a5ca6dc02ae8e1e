"""Utility modules for linked experiment I/O."""

from linkedexp.utils.fileio import (
    atomic_write_bytes,
    atomic_write_text,
)

__all__ = [
    # Atomic file-write utilities
    'atomic_write_bytes',
    'atomic_write_text',
]
