"""
Tests for pruning stale autolinked modules.
"""

from pathlib import Path

import pytest

from nativelink.core.exceptions import LinkFailure
from nativelink.cross.targets import ANDROID, APPLE
from nativelink.linking.android import AndroidDirectoryLinker
from nativelink.linking.apple import AppleXcframeworkLinker
from nativelink.linking.engine import LinkResult
from nativelink.linking.pruner import prune_linked_modules


@pytest.fixture
def output_root(tmp_path):
    root = tmp_path / "out"
    for name in ("kept", "stale", ".kept.abc.partial"):
        (root / "android" / name).mkdir(parents=True)
    (root / ".android.lock").write_text("")
    (root / "apple" / "other.xcframework").mkdir(parents=True)
    return root


def result(name):
    return LinkResult(Path("/src") / name, name, Path("/out") / name)


@pytest.mark.unit
class TestPrune:
    """Tests for prune_linked_modules."""

    def test_removes_unmapped_entries(self, output_root):
        """Test that only entries without a result are removed."""
        linker = AndroidDirectoryLinker(output_root)

        removed = prune_linked_modules(ANDROID, [result("kept")], linker)

        assert removed == [output_root / "android" / "stale"]
        assert (output_root / "android" / "kept").is_dir()

    def test_empty_results_remove_everything(self, output_root):
        """Test that no modules means an empty autolink directory."""
        linker = AndroidDirectoryLinker(output_root)

        prune_linked_modules(ANDROID, [], linker)

        visible = [p for p in (output_root / "android").iterdir() if not p.name.startswith(".")]
        assert visible == []

    def test_hidden_entries_and_other_platforms_untouched(self, output_root):
        """Test staging directories, lock files and sibling platforms."""
        prune_linked_modules(ANDROID, [], AndroidDirectoryLinker(output_root))

        assert (output_root / "android" / ".kept.abc.partial").is_dir()
        assert (output_root / ".android.lock").exists()
        assert (output_root / "apple" / "other.xcframework").is_dir()

    def test_failed_modules_are_pruned(self, output_root):
        """Test that only successful results keep their entries."""
        failed = LinkResult(
            Path("/src/stale"), "stale", failure=LinkFailure("broken", Path("/src/stale"))
        )

        removed = prune_linked_modules(
            ANDROID, [result("kept"), failed], AndroidDirectoryLinker(output_root)
        )

        assert removed == [output_root / "android" / "stale"]
        assert (output_root / "android" / "kept").is_dir()

    def test_xcframework_entries(self, output_root):
        """Test that Apple entries are matched without their extension."""
        linker = AppleXcframeworkLinker(output_root)

        assert prune_linked_modules(APPLE, [result("other")], linker) == []
        assert prune_linked_modules(APPLE, [], linker) == [
            output_root / "apple" / "other.xcframework"
        ]

    def test_missing_output_directory(self, tmp_path):
        """Test pruning before anything was linked."""
        assert prune_linked_modules(ANDROID, [], AndroidDirectoryLinker(tmp_path)) == []

    def test_platform_mismatch(self, output_root):
        """Test passing the wrong platform's linker."""
        with pytest.raises(ValueError):
            prune_linked_modules(APPLE, [], AndroidDirectoryLinker(output_root))
