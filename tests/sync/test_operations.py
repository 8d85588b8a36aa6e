"""Tests for the copy and remove primitives."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from pairsync.sync.operations import copy_file, ensure_dir, get_mtime_ns, remove_path


class TestCopyFile:
    """Tests for copy_file."""

    def test_copy_creates_parents(self, tmp_path: Path) -> None:
        """Should create missing parent directories."""
        source = tmp_path / "src.txt"
        source.write_text("hello")
        target = tmp_path / "deep" / "er" / "dst.txt"

        assert copy_file(source, target) is True
        assert target.read_text() == "hello"

    def test_copy_overwrites(self, tmp_path: Path) -> None:
        """Should replace existing target content."""
        source = tmp_path / "src.txt"
        source.write_text("new")
        target = tmp_path / "dst.txt"
        target.write_text("old content")

        assert copy_file(source, target) is True
        assert target.read_text() == "new"

    def test_copy_preserves_mtime(self, tmp_path: Path) -> None:
        """Should give the target the source's modification time."""
        source = tmp_path / "src.txt"
        source.write_text("x")
        os.utime(source, ns=(1_600_000_000_000_000_000, 1_600_000_000_000_000_000))
        target = tmp_path / "dst.txt"

        copy_file(source, target)

        assert get_mtime_ns(target) == get_mtime_ns(source)

    def test_copy_missing_source(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """Should log and return False when the source is gone."""
        assert copy_file(tmp_path / "absent", tmp_path / "dst") is False
        assert "Failed to copy" in caplog.text
        assert not (tmp_path / "dst").exists()


class TestRemovePath:
    """Tests for remove_path."""

    def test_remove_file(self, tmp_path: Path) -> None:
        """Should delete a file."""
        path = tmp_path / "file.txt"
        path.write_text("x")

        assert remove_path(path) is True
        assert not path.exists()

    def test_remove_tree(self, tmp_path: Path) -> None:
        """Should delete a directory recursively."""
        directory = tmp_path / "dir"
        (directory / "sub").mkdir(parents=True)
        (directory / "sub" / "file.txt").write_text("x")

        assert remove_path(directory) is True
        assert not directory.exists()

    def test_remove_absent(self, tmp_path: Path) -> None:
        """Should return False for a missing path."""
        assert remove_path(tmp_path / "absent") is False


class TestHelpers:
    """Tests for ensure_dir and get_mtime_ns."""

    def test_ensure_dir(self, tmp_path: Path) -> None:
        """Should create nested directories and accept existing ones."""
        directory = tmp_path / "a" / "b"

        assert ensure_dir(directory) is True
        assert ensure_dir(directory) is True
        assert directory.is_dir()

    def test_ensure_dir_over_file(self, tmp_path: Path) -> None:
        """Should fail when a file is in the way."""
        blocker = tmp_path / "blocker"
        blocker.write_text("x")

        assert ensure_dir(blocker / "child") is False

    def test_mtime_missing(self, tmp_path: Path) -> None:
        """Should return None for a missing path."""
        assert get_mtime_ns(tmp_path / "absent") is None
