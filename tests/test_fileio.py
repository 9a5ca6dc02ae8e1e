"""
Tests for atomic file writes.
"""

import os

import pytest

from linkedexp.utils.fileio import atomic_write_bytes, atomic_write_text


def test_write_bytes(tmp_path):
    path = tmp_path / "out.bin"
    atomic_write_bytes(path, b"\x00\x01")
    assert path.read_bytes() == b"\x00\x01"


def test_replaces_existing(tmp_path):
    path = tmp_path / "out.txt"
    path.write_text("old")
    atomic_write_text(path, "new")
    assert path.read_text() == "new"


def test_failure_keeps_old_file_and_no_temp(tmp_path, monkeypatch):
    path = tmp_path / "out.txt"
    path.write_text("old")

    def fail(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", fail)

    with pytest.raises(OSError, match="disk full"):
        atomic_write_text(path, "new")

    assert path.read_text() == "old"
    assert [p.name for p in tmp_path.iterdir()] == ["out.txt"]


def test_text_encoding(tmp_path):
    path = tmp_path / "out.txt"
    atomic_write_text(path, "×", encoding="utf-8")
    assert path.read_bytes() == "×".encode("utf-8")
