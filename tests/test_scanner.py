"""
Unit tests for FileScannerImpl.
Verifies deterministic enumeration, skipped entries and error handling.
"""
import os

import pytest

from fuzzydedup.core.errors import DirectoryUnavailable
from fuzzydedup.core.scanner import FileScannerImpl


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "rec"
    (root / "b_dir").mkdir(parents=True)
    (root / "a_dir").mkdir()
    (root / "z.jpg").write_bytes(b"z" * 10)
    (root / "m.jpg").write_bytes(b"m" * 10)
    (root / "b_dir" / "inner.jpg").write_bytes(b"i" * 10)
    (root / "a_dir" / "first.jpg").write_bytes(b"f" * 10)
    (root / "empty.jpg").write_bytes(b"")
    return root


class TestFileScannerImpl:
    """Test file enumeration and filters."""

    def test_sorted_deterministic_order(self, tree):
        names = [os.path.relpath(f.path, tree.resolve()) for f in FileScannerImpl(str(tree)).scan()]
        assert names == [
            "m.jpg",
            "z.jpg",
            os.path.join("a_dir", "first.jpg"),
            os.path.join("b_dir", "inner.jpg"),
        ]

    def test_repeated_scans_are_identical(self, tree):
        assert FileScannerImpl(str(tree)).scan() == FileScannerImpl(str(tree)).scan()

    def test_skips_zero_byte_files(self, tree):
        paths = [f.path for f in FileScannerImpl(str(tree)).scan()]
        assert not any(p.endswith("empty.jpg") for p in paths)

    def test_records_size(self, tree):
        files = FileScannerImpl(str(tree)).scan()
        assert all(f.size == 10 for f in files)

    def test_skips_symlinks(self, tree, tmp_path):
        outside = tmp_path / "outside.jpg"
        outside.write_bytes(b"o" * 10)
        os.symlink(outside, tree / "link.jpg")
        os.symlink(tmp_path, tree / "dir_link")

        paths = [f.path for f in FileScannerImpl(str(tree)).scan()]
        assert not any("link" in p for p in paths)
        assert len(paths) == 4

    def test_excluded_directory_not_entered(self, tree):
        state = tree / "a_dir"
        paths = [f.path for f in FileScannerImpl(str(tree), excluded_dirs=[str(state)]).scan()]
        assert not any("first.jpg" in p for p in paths)
        assert len(paths) == 3

    def test_paths_are_absolute_and_resolved(self, tree):
        for f in FileScannerImpl(str(tree)).scan():
            assert os.path.isabs(f.path)
            assert f.path.startswith(str(tree.resolve()))

    def test_stopped_scan_returns_nothing(self, tree):
        assert FileScannerImpl(str(tree)).scan(stopped_flag=lambda: True) == []

    def test_progress_reported(self, tree):
        calls = []
        FileScannerImpl(str(tree)).scan(progress_callback=lambda *args: calls.append(args))
        assert calls[-1] == ("scanning", 5, None)


class TestScannerErrors:

    def test_missing_directory(self, tmp_path):
        with pytest.raises(DirectoryUnavailable, match="does not exist"):
            FileScannerImpl(str(tmp_path / "missing")).scan()

    def test_file_instead_of_directory(self, tmp_path):
        f = tmp_path / "file.jpg"
        f.write_bytes(b"x")
        with pytest.raises(DirectoryUnavailable, match="Not a directory"):
            FileScannerImpl(str(f)).scan()

    def test_empty_directory(self, tmp_path):
        assert FileScannerImpl(str(tmp_path)).scan() == []
