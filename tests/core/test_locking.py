"""
Unit tests for the locking module.

Tests cover:
- Lock file placement
- Lock acquisition and release
- Timeout behavior
"""

import pytest

from nativelink.core.locking import LockManager, LockTimeout


@pytest.mark.unit
class TestLockManager:
    """Tests for LockManager class."""

    def test_init_creates_lock_dir(self, tmp_path):
        """Test that the lock directory is created."""
        lock_dir = tmp_path / "auto-linked"
        manager = LockManager(lock_dir)

        assert manager.lock_dir == lock_dir
        assert lock_dir.is_dir()

    def test_lock_path_is_hidden_per_platform(self, tmp_path):
        """Test that each platform gets its own hidden lock file."""
        manager = LockManager(tmp_path)

        assert manager.lock_path("android") == tmp_path / ".android.lock"
        assert manager.lock_path("apple") == tmp_path / ".apple.lock"

    def test_platform_lock_acquire_and_release(self, tmp_path):
        """Test acquiring and releasing a platform lock."""
        manager = LockManager(tmp_path)

        with manager.platform_lock("android", timeout=5):
            assert manager.lock_path("android").exists()

        # Re-acquiring proves the lock was released
        with manager.platform_lock("android", timeout=1):
            pass

    def test_platforms_do_not_block_each_other(self, tmp_path):
        """Test that different platforms use independent locks."""
        manager = LockManager(tmp_path)

        with manager.platform_lock("android", timeout=1):
            with manager.platform_lock("apple", timeout=1):
                pass

    def test_platform_lock_timeout(self, tmp_path):
        """Test timeout when another holder has the lock."""
        from filelock import FileLock

        manager = LockManager(tmp_path)
        holder = FileLock(manager.lock_path("android"))

        with holder:
            with pytest.raises(LockTimeout):
                with manager.platform_lock("android", timeout=0.1):
                    pass
