"""
Removal of stale autolinked modules.

After a platform's linking run, entries in its autolink directory that no
module maps to anymore (the dependency was removed, or renamed) are deleted.
"""

import logging
from pathlib import Path
from typing import List, Sequence

from nativelink.core.filesystem import safe_rmtree
from nativelink.linking.base import ModuleLinker
from nativelink.linking.engine import LinkResult

logger = logging.getLogger(__name__)


def prune_linked_modules(
    platform: str, results: Sequence[LinkResult], linker: ModuleLinker
) -> List[Path]:
    """
    Delete autolinked entries no current module maps to.

    Only successful results count as current: the entry of a module that
    failed to link is removed like any other stale entry. Hidden entries
    (staging directories of in-flight writes, lock files) are never touched,
    and only the platform's own directory is enumerated.

    Args:
        platform: Platform whose autolink directory to prune
        results: Every LinkResult of the platform's run
        linker: Linker for the platform

    Returns:
        Removed paths

    Raises:
        ValueError: If the linker is for another platform
        FilesystemError: If an entry cannot be removed
    """
    if linker.platform != platform:
        raise ValueError(f"Expected a {platform} linker, got a {linker.platform} one")

    output_dir = linker.output_dir
    if not output_dir.is_dir():
        return []

    current = {result.library_name for result in results if result.ok}

    removed = []
    for entry in sorted(output_dir.iterdir()):
        if entry.name.startswith("."):
            continue
        if linker.library_name_for_entry(entry) in current:
            continue
        safe_rmtree(entry, require_prefix=output_dir)
        logger.info(f"Pruned {entry.name}")
        removed.append(entry)

    return removed
