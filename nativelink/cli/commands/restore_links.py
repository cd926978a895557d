"""
Restore-links command.

Rebuilds the internal symlinks of the weak runtime's macOS frameworks,
which package managers and archive tools tend to dereference.
"""

import logging
from pathlib import Path

from nativelink.cli.utils import (
    load_app_config,
    pretty_path,
    require_weak_runtime_layout,
    safe_print,
)
from nativelink.core.packages import find_package_root
from nativelink.linking.apple import restore_weak_runtime_links

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the restore-links command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    from_path = Path(args.path).resolve()
    config = load_app_config(args, find_package_root(from_path))
    layout = require_weak_runtime_layout(args.prebuild_root, config, from_path)

    restored = restore_weak_runtime_links(layout)
    if not restored:
        safe_print(f"Symlinks in {pretty_path(layout.apple_prebuild_path)} are up to date")
    for framework_path in restored:
        safe_print(f"✓ Restored symlinks in {pretty_path(framework_path)}")

    return 0
