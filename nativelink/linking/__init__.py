"""
Native module linking for nativelink.

Discovery of native modules across a dependency tree, canonical naming,
incremental per-platform linking and pruning of stale outputs.
"""

from nativelink.linking.discovery import (
    DependencyModules,
    ModuleDescriptor,
    find_module_paths_by_dependency,
    iter_modules,
)
from nativelink.linking.naming import (
    ModuleContext,
    NamingStrategy,
    determine_module_context,
    get_library_map,
    get_library_name,
    normalize_module_path,
    visualize_library_map,
)
from nativelink.linking.base import ModuleLinker, get_linker
from nativelink.linking.android import AndroidDirectoryLinker
from nativelink.linking.apple import (
    AppleXcframeworkLinker,
    restore_framework_links,
    restore_weak_runtime_links,
)
from nativelink.linking.engine import LinkResult, link_modules
from nativelink.linking.pruner import prune_linked_modules

__all__ = [
    "DependencyModules",
    "ModuleDescriptor",
    "find_module_paths_by_dependency",
    "iter_modules",
    "ModuleContext",
    "NamingStrategy",
    "determine_module_context",
    "get_library_map",
    "get_library_name",
    "normalize_module_path",
    "visualize_library_map",
    "ModuleLinker",
    "get_linker",
    "AndroidDirectoryLinker",
    "AppleXcframeworkLinker",
    "restore_framework_links",
    "restore_weak_runtime_links",
    "LinkResult",
    "link_modules",
    "prune_linked_modules",
]
