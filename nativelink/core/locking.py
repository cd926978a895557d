"""
Concurrent access control for nativelink.

The platform output trees are the one shared mutable resource. Two `link`
runs for the same platform (for example an IDE build phase and a terminal)
must not interleave: one could prune an entry the other is still writing.
This module serializes them with cross-process file locks.

Usage:
    from nativelink.core.locking import LockManager

    lock_manager = LockManager(output_root)
    with lock_manager.platform_lock("android", timeout=60):
        results = link_modules(...)
        prune_linked_modules(...)
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout as LockTimeout

logger = logging.getLogger(__name__)


class LockManager:
    """
    Manages locks for nativelink output trees.

    Uses file-based locking with the `filelock` library for cross-platform
    compatibility and automatic cleanup on process death. Lock files are
    hidden entries in the output root, outside every platform subtree, so
    pruning never sees them.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Path):
        """
        Initialize lock manager.

        Args:
            lock_dir: Directory for lock files (usually the autolink root)
        """
        self.lock_dir = Path(lock_dir)
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    def lock_path(self, platform: str) -> Path:
        """Lock file guarding one platform's output tree."""
        return self.lock_dir / f".{platform}.lock"

    @contextmanager
    def platform_lock(self, platform: str, timeout: float = 300):
        """
        Acquire the lock for one platform's output tree.

        Args:
            platform: Platform name ('android' or 'apple')
            timeout: Maximum wait time in seconds (default: 300)

        Yields:
            None

        Raises:
            LockTimeout: If lock can't be acquired within timeout
        """
        lock_path = self.lock_path(platform)
        lock = FileLock(lock_path, timeout=timeout)

        try:
            with lock:
                logger.debug(f"Acquired {platform} output lock: {lock_path}")
                yield
                logger.debug(f"Released {platform} output lock: {lock_path}")
        except LockTimeout as e:
            logger.error(
                f"Could not acquire {platform} output lock after {timeout}s. "
                "Another nativelink process may be linking."
            )
            raise LockTimeout(
                f"Could not acquire {platform} output lock after {timeout}s. "
                "Another nativelink process may be linking."
            ) from e


__all__ = ["LockManager", "LockTimeout"]
