"""
Link command.

Discovers the native modules of an app's dependencies and links them into
the per-platform autolink directories, pruning entries that are no longer
depended on. After an Apple run the weak runtime's macOS framework
symlinks are restored.
"""

import logging
from pathlib import Path
from typing import List

from nativelink.cli.utils import (
    find_weak_runtime_layout,
    load_app_config,
    naming_from_args,
    pretty_path,
    print_error,
    resolve_app_root,
    resolve_output_root,
    safe_print,
)
from nativelink.core.filesystem import FilesystemError
from nativelink.core.locking import LockManager
from nativelink.cross.targets import APPLE, PLATFORMS
from nativelink.linking.apple import restore_weak_runtime_links
from nativelink.linking.base import get_linker, get_platform_display_name
from nativelink.linking.engine import LinkResult, link_modules
from nativelink.linking.pruner import prune_linked_modules

logger = logging.getLogger(__name__)


def report_results(results: List[LinkResult]) -> int:
    """
    Print one line per module.

    Returns:
        Number of failed modules
    """
    failures = [r for r in results if not r.ok]

    for result in results:
        if not result.ok:
            continue
        target = f" -> {result.output_path.name}" if result.output_path else ""
        if result.skipped:
            safe_print(f"- Skipped {pretty_path(result.original_path)}{target} (up to date)")
        else:
            safe_print(f"✓ Linked {pretty_path(result.original_path)}{target}")

    for result in failures:
        print_error(f"Failed to link {pretty_path(result.original_path)}", str(result.failure))
        if result.failure.output:
            print_error("Process output:", result.failure.output)

    return len(failures)


def run(args) -> int:
    """
    Run the link command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 if no platform was given or any module failed)
    """
    from_path = Path(args.path).resolve()
    safe_print(f"Auto-linking native modules from {pretty_path(from_path)}")

    platforms = [p for p in PLATFORMS if getattr(args, p, False)]
    if not platforms:
        print_error(
            "No platform specified, pass one or more of:",
            "  ".join(f"--{p}" for p in PLATFORMS),
        )
        return 1

    app_root = resolve_app_root(from_path)
    config = load_app_config(args, app_root)
    naming = naming_from_args(args, config)
    output_root = resolve_output_root(args.output_dir, config, app_root)
    prune = config.linking.prune if args.prune is None else args.prune
    max_workers = args.max_workers or config.linking.max_workers

    lock_manager = LockManager(output_root)
    exit_code = 0

    for platform in platforms:
        display_name = get_platform_display_name(platform)
        linker = get_linker(platform, output_root)
        logger.info(f"Linking {display_name} modules into {pretty_path(linker.output_dir)}")

        with lock_manager.platform_lock(platform):
            results = link_modules(
                platform,
                from_path,
                incremental=not args.force,
                naming=naming,
                linker=linker,
                max_workers=max_workers,
            )
            removed = prune_linked_modules(platform, results, linker) if prune else []

        if not results:
            safe_print("Found no native modules")

        if report_results(results):
            exit_code = 1

        for path in removed:
            safe_print(f"✗ Removed {path.name} (no longer linked)")

    if APPLE in platforms:
        layout = find_weak_runtime_layout(None, config, app_root)
        if layout is None:
            logger.debug("Weak runtime prebuilds not found, not restoring symlinks")
        else:
            try:
                restored = restore_weak_runtime_links(layout)
            except (FilesystemError, OSError) as e:
                print_error("Failed to restore weak runtime symlinks", str(e))
                return 1
            logger.info(f"Restored symlinks in {len(restored)} weak runtime framework(s)")

    return exit_code
