"""
Incremental linking engine.

Links every native module an application depends on into the platform's
autolink directory:

1. Discover all modules (must complete before naming, collisions are global),
   never looking inside the output root itself
2. Assign canonical, collision-free library names
3. Skip modules whose output is at least as new as their source
4. Materialize the rest concurrently through the platform's ModuleLinker

A module that fails to link is recorded on its LinkResult; the remaining
modules are still processed.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from nativelink.core.exceptions import LinkFailure, NativeLinkError
from nativelink.core.filesystem import latest_mtime
from nativelink.core.tasks import run_bounded
from nativelink.linking.base import ModuleLinker
from nativelink.linking.discovery import find_module_paths_by_dependency
from nativelink.linking.naming import NamingStrategy, get_library_map

logger = logging.getLogger(__name__)


@dataclass
class LinkResult:
    """
    Outcome of linking one module.

    Attributes:
        original_path: Source module directory
        library_name: Canonical library name
        output_path: Output entry (set unless the module failed)
        skipped: True if the output was already up to date
        failure: Why linking failed, if it did
    """

    original_path: Path
    library_name: str
    output_path: Optional[Path] = None
    skipped: bool = False
    failure: Optional[LinkFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def is_up_to_date(source: Path, output: Path) -> bool:
    """
    True if output exists and is at least as new as everything in source.

    Only reads timestamps.
    """
    if not output.exists():
        return False
    return latest_mtime(output) >= latest_mtime(source)


def link_module(
    module_path: Path,
    library_name: str,
    linker: ModuleLinker,
    incremental: bool = True,
) -> LinkResult:
    """
    Link one module, converting failures into a failed LinkResult.

    Args:
        module_path: Source module directory
        library_name: Canonical name for the module
        linker: Platform linker
        incremental: Skip the module if its output is up to date

    Returns:
        LinkResult for the module
    """
    output_path = linker.output_path(library_name)
    if incremental and is_up_to_date(module_path, output_path):
        return LinkResult(module_path, library_name, output_path, skipped=True)

    try:
        output_path = linker.link(module_path, library_name)
    except LinkFailure as e:
        failure = e
    except (NativeLinkError, OSError) as e:
        failure = LinkFailure(f"Failed to link {module_path}: {e}", module_path, cause=e)
    else:
        return LinkResult(module_path, library_name, output_path)

    logger.debug(f"Linking {module_path} failed: {failure}")
    return LinkResult(module_path, library_name, failure=failure)


def link_modules(
    platform: str,
    from_path: Path,
    incremental: bool,
    naming: NamingStrategy,
    linker: ModuleLinker,
    max_workers: Optional[int] = None,
) -> List[LinkResult]:
    """
    Link all of an application's native modules for one platform.

    Args:
        platform: Platform to link
        from_path: Any path inside the application package
        incremental: Skip modules whose outputs are up to date
        naming: Naming strategy for library names
        linker: Linker for the platform
        max_workers: Concurrency limit

    Returns:
        One LinkResult per discovered module, in discovery order; empty if the
        application has no modules

    Raises:
        DiscoveryError: If discovery fails
        ValueError: If the linker is for another platform
    """
    if linker.platform != platform:
        raise ValueError(f"Expected a {platform} linker, got a {linker.platform} one")

    dependencies = find_module_paths_by_dependency(
        from_path,
        platforms=(platform,),
        include_self=True,
        exclude=(linker.output_root,),
    )
    module_paths = [
        dependency.path / relative_path
        for dependency in dependencies.values()
        for relative_path in dependency.module_paths
    ]
    if not module_paths:
        return []

    library_map = get_library_map(module_paths, naming)
    logger.debug(f"Linking {len(library_map)} {platform} module(s) into {linker.output_dir}")

    def link_one(item):
        library_name, module_path = item
        return link_module(module_path, library_name, linker, incremental)

    outcomes = run_bounded(link_one, list(library_map.items()), max_workers=max_workers)

    results = []
    for outcome in outcomes:
        if outcome.ok:
            results.append(outcome.result)
            continue
        # link_module converts expected errors; anything else is a bug
        raise outcome.error

    return results
