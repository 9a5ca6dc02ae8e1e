"""
Atomic file-write utilities.

Snapshots and CSV exports must never be left half-written when a process is
interrupted. Content is written to a temporary file in the destination
directory and moved into place with ``os.replace()`` (POSIX rename
guarantee), so readers see either the old file or the new one.
"""

from __future__ import annotations

import os
import tempfile

__all__ = ['atomic_write_bytes', 'atomic_write_text']


def atomic_write_bytes(path: str | os.PathLike, content: bytes) -> None:
    """Write *content* as bytes atomically via temp-file + rename.

    Parameters
    ----------
    path:
        Destination file path. The parent directory must exist.
    content:
        Bytes to write.
    """
    path = str(path)
    dir_path = os.path.dirname(path) or "."
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb", dir=dir_path, suffix=".tmp", delete=False
        ) as tmp:
            tmp_path = tmp.name
            tmp.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any failure
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def atomic_write_text(path: str | os.PathLike, content: str, *, encoding: str = "utf-8") -> None:
    """Write *content* as text atomically via temp-file + rename.

    Parameters
    ----------
    path:
        Destination file path.
    content:
        Text content to write.
    encoding:
        Text encoding (default utf-8).
    """
    atomic_write_bytes(path, content.encode(encoding))
