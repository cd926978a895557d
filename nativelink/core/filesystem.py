"""
Cross-platform file system utilities for nativelink.

This module provides the file operations the linking engine builds on:
- Path utilities (normalization, posix conversion, containment checks)
- Safe file operations (guarded deletion, symlink-preserving copies)
- Atomic directory replacement for materialized outputs
- Modification-time scanning for incremental decisions
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

from nativelink.core.exceptions import NativeLinkError

# Platform detection
IS_WINDOWS = os.name == "nt"
IS_UNIX = not IS_WINDOWS


# ============================================================================
# Error Handling
# ============================================================================


class FilesystemError(NativeLinkError):
    """Base exception for filesystem operations."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def normalize_path(path: Union[str, Path]) -> Path:
    """
    Normalize a path for consistent comparison across platforms.

    Resolves symlinks, makes path absolute, and normalizes separators.

    Args:
        path: Path to normalize

    Returns:
        Normalized absolute path
    """
    return Path(path).resolve().absolute()


def to_posix_path(path: Union[str, Path]) -> str:
    """
    Render a path with forward slashes regardless of the host convention.

    Example:
        >>> to_posix_path("lib\\\\android\\\\addon.android.node")
        'lib/android/addon.android.node'
    """
    return str(path).replace("\\", "/")


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is relative to (under) parent directory.

    Args:
        path: Path to check
        parent: Parent directory

    Returns:
        True if path is under parent directory

    Example:
        >>> is_relative_to(Path("/home/user/project/file.txt"), Path("/home/user"))
        True
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def executable_suffix(script: bool = False) -> str:
    """
    Host suffix for toolchain programs.

    Args:
        script: True for wrapper scripts (.cmd on Windows), False for binaries

    Returns:
        Suffix to append to program names ('' on Unix)
    """
    if not IS_WINDOWS:
        return ""
    return ".cmd" if script else ".exe"


# ============================================================================
# Safe File Operations
# ============================================================================


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree, file or symlink with safeguards.

    Args:
        path: Entry to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('/tmp/build', require_prefix='/tmp')
        >>> safe_rmtree('/usr/bin', require_prefix='/home')  # ValueError
    """
    path = Path(path)

    # Compare the entry itself, not a symlink's target
    absolute = Path(os.path.abspath(path))
    if require_prefix is not None:
        require_prefix = Path(os.path.abspath(require_prefix))
        if not is_relative_to(absolute, require_prefix):
            raise ValueError(
                f"Refusing to delete '{absolute}': not under required prefix '{require_prefix}'"
            )

    if not path.exists() and not path.is_symlink():
        return  # Already gone, nothing to do

    try:
        if path.is_symlink() or not path.is_dir():
            path.unlink()
        elif IS_WINDOWS:

            def handle_remove_readonly(func, path, exc):
                """Error handler for Windows read-only files."""
                if not os.access(path, os.W_OK):
                    os.chmod(path, 0o777)
                    func(path)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)

    except OSError as e:
        raise FilesystemError(f"Failed to remove '{path}': {e}") from e


def recursive_copy(
    source: Union[str, Path],
    destination: Union[str, Path],
    symlinks: bool = False,
    dirs_exist_ok: bool = False,
) -> None:
    """
    Recursively copy a directory tree, preserving file metadata.

    Args:
        source: Source directory
        destination: Destination directory
        symlinks: If True, copy symlinks as symlinks (default: follow symlinks)
        dirs_exist_ok: Merge into an existing destination instead of failing

    Raises:
        FilesystemError: If source is missing or not a directory
    """
    source = Path(source)
    destination = Path(destination)

    if not source.exists():
        raise FilesystemError(f"Source does not exist: {source}")

    if not source.is_dir():
        raise FilesystemError(f"Source is not a directory: {source}")

    # copy2 preserves modification times, which incremental linking relies on
    shutil.copytree(
        source,
        destination,
        symlinks=symlinks,
        copy_function=shutil.copy2,
        dirs_exist_ok=dirs_exist_ok,
    )


def create_staging_directory(parent: Path, name: str) -> Path:
    """
    Create a hidden scratch directory next to a final output.

    Hidden names keep in-progress outputs invisible to pruning.

    Args:
        parent: Directory that will hold the final output
        name: Final output name

    Returns:
        Path to the new empty staging directory
    """
    parent.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(dir=parent, prefix=f".{name}.", suffix=".partial"))


def replace_directory(staging: Path, destination: Path) -> None:
    """
    Move a fully written staging directory into its final place.

    Any previous entry at destination is removed first.

    Args:
        staging: Completed staging directory
        destination: Final output path
    """
    if destination.exists() or destination.is_symlink():
        safe_rmtree(destination)
    os.replace(staging, destination)


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists (idempotent).

    Args:
        path: Directory path

    Returns:
        Path object (resolved)
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path.resolve()


# ============================================================================
# Modification Times
# ============================================================================


def latest_mtime(path: Union[str, Path]) -> float:
    """
    Most recent modification time of a path and everything below it.

    Symlinks are not followed: a link's own timestamp counts.

    Args:
        path: File or directory

    Returns:
        Latest st_mtime found

    Raises:
        FileNotFoundError: If path does not exist
    """
    path = Path(path)
    latest = os.lstat(path).st_mtime

    if path.is_dir() and not path.is_symlink():
        for root, dirs, files in os.walk(path, followlinks=False):
            for name in dirs + files:
                latest = max(latest, os.lstat(os.path.join(root, name)).st_mtime)

    return latest


# ============================================================================
# Public API
# ============================================================================

__all__ = [
    # Exceptions
    "FilesystemError",
    # Path utilities
    "IS_WINDOWS",
    "IS_UNIX",
    "normalize_path",
    "to_posix_path",
    "is_relative_to",
    "executable_suffix",
    # Safe file operations
    "safe_rmtree",
    "recursive_copy",
    "create_staging_directory",
    "replace_directory",
    "ensure_directory",
    # Modification times
    "latest_mtime",
]
