"""
Unit tests for filesystem utilities.
"""

import os
from pathlib import Path

import pytest

from nativelink.core.filesystem import (
    FilesystemError,
    create_staging_directory,
    executable_suffix,
    is_relative_to,
    latest_mtime,
    recursive_copy,
    replace_directory,
    safe_rmtree,
    to_posix_path,
)


@pytest.mark.unit
class TestPathHelpers:
    """Tests for path conversion helpers."""

    def test_to_posix_path_converts_backslashes(self):
        """Test that Windows separators become forward slashes."""
        assert to_posix_path("native\\build\\addon.node") == "native/build/addon.node"

    def test_is_relative_to(self, tmp_path):
        """Test parent containment checks."""
        assert is_relative_to(tmp_path / "a" / "b", tmp_path)
        assert not is_relative_to(tmp_path, tmp_path / "a")

    def test_executable_suffix_matches_host(self):
        """Test that suffixes are empty on Unix hosts."""
        if os.name == "nt":
            assert executable_suffix() == ".exe"
            assert executable_suffix(script=True) == ".cmd"
        else:
            assert executable_suffix() == ""
            assert executable_suffix(script=True) == ""


@pytest.mark.unit
class TestSafeRmtree:
    """Tests for safe_rmtree."""

    def test_removes_directory(self, tmp_path):
        """Test removing a directory tree."""
        target = tmp_path / "out"
        (target / "nested").mkdir(parents=True)
        (target / "nested" / "file.txt").write_text("x")

        safe_rmtree(target)

        assert not target.exists()

    def test_removes_symlink_not_target(self, tmp_path):
        """Test that a symlink is removed without touching its target."""
        real = tmp_path / "real"
        real.mkdir()
        (real / "keep.txt").write_text("x")
        link = tmp_path / "link"
        os.symlink(real, link)

        safe_rmtree(link)

        assert not link.is_symlink()
        assert (real / "keep.txt").exists()

    def test_missing_path_is_noop(self, tmp_path):
        """Test that removing a missing path does nothing."""
        safe_rmtree(tmp_path / "missing")

    def test_refuses_path_outside_prefix(self, tmp_path):
        """Test require_prefix protection."""
        outside = tmp_path / "outside"
        outside.mkdir()

        with pytest.raises(ValueError, match="Refusing to delete"):
            safe_rmtree(outside, require_prefix=tmp_path / "allowed")

        assert outside.exists()


@pytest.mark.unit
class TestCopyAndReplace:
    """Tests for copying and staging helpers."""

    def test_recursive_copy_preserves_mtime(self, tmp_path):
        """Test that copies keep the source modification times."""
        source = tmp_path / "src"
        source.mkdir()
        (source / "lib.so").write_bytes(b"data")
        os.utime(source / "lib.so", (1_000_000, 1_000_000))

        recursive_copy(source, tmp_path / "dst")

        assert (tmp_path / "dst" / "lib.so").stat().st_mtime == 1_000_000

    def test_recursive_copy_missing_source(self, tmp_path):
        """Test copying from a missing directory."""
        with pytest.raises(FilesystemError, match="does not exist"):
            recursive_copy(tmp_path / "missing", tmp_path / "dst")

    def test_recursive_copy_into_existing_directory(self, tmp_path):
        """Test merging into an existing destination."""
        source = tmp_path / "src"
        source.mkdir()
        (source / "a.txt").write_text("a")
        destination = tmp_path / "dst"
        destination.mkdir()

        recursive_copy(source, destination, dirs_exist_ok=True)

        assert (destination / "a.txt").read_text() == "a"

    def test_staging_directory_is_hidden(self, tmp_path):
        """Test that staging directories are hidden siblings."""
        staging = create_staging_directory(tmp_path / "android", "addon")

        assert staging.parent == tmp_path / "android"
        assert staging.name.startswith(".addon.")
        assert staging.is_dir()

    def test_replace_directory_swaps_contents(self, tmp_path):
        """Test replacing an existing output with a staged one."""
        destination = tmp_path / "addon"
        destination.mkdir()
        (destination / "old.txt").write_text("old")
        staging = create_staging_directory(tmp_path, "addon")
        (staging / "new.txt").write_text("new")

        replace_directory(staging, destination)

        assert (destination / "new.txt").exists()
        assert not (destination / "old.txt").exists()
        assert not staging.exists()


@pytest.mark.unit
class TestLatestMtime:
    """Tests for latest_mtime."""

    def test_uses_newest_nested_entry(self, tmp_path):
        """Test that the newest file anywhere in the tree wins."""
        root = tmp_path / "module"
        (root / "arm64-v8a").mkdir(parents=True)
        library = root / "arm64-v8a" / "lib.so"
        library.write_bytes(b"x")
        os.utime(root / "arm64-v8a", (100, 100))
        os.utime(root, (100, 100))
        os.utime(library, (5000, 5000))

        assert latest_mtime(root) == 5000

    def test_single_file(self, tmp_path):
        """Test a plain file."""
        path = tmp_path / "file"
        path.write_text("x")
        os.utime(path, (1234, 1234))

        assert latest_mtime(path) == 1234

    def test_missing_path(self, tmp_path):
        """Test that a missing path raises."""
        with pytest.raises(FileNotFoundError):
            latest_mtime(Path(tmp_path / "missing"))
