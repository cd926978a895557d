"""
Native module discovery.

Walks the dependency graph of an application (package.json `dependencies`
and `optionalDependencies`, resolved through node_modules) and collects,
per package, the relative paths of the compiled native modules it ships for
the requested platforms.

A package either declares its modules explicitly:

    {"nativeModules": {"android": ["prebuilds/addon.android.node"],
                       "apple": ["prebuilds/addon.apple.node"]}}

or they are found by scanning its directory tree for:
- Android: `*.android.node` directories, or directories with ABI-named
  children (arm64-v8a, armeabi-v7a, x86, x86_64) holding a `.so`
- Apple: `*.apple.node` directories (xcframeworks)
"""

import logging
import os
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set

from nativelink.core.exceptions import DiscoveryError
from nativelink.core.filesystem import to_posix_path
from nativelink.core.packages import (
    find_package_root,
    get_dependency_names,
    get_package_name,
    read_package_manifest,
    resolve_dependency,
)
from nativelink.cross.targets import ANDROID, ANDROID_TARGETS, APPLE, PLATFORMS

logger = logging.getLogger(__name__)

DECLARATION_FIELD = "nativeModules"

PLATFORM_EXTENSIONS = {
    ANDROID: ".android.node",
    APPLE: ".apple.node",
}

ANDROID_ABIS = frozenset(t.android_abi for t in ANDROID_TARGETS.values())

SKIPPED_DIRECTORIES = frozenset({"node_modules", "build"})


@dataclass
class DependencyModules:
    """Native modules shipped by one package."""

    path: Path
    module_paths: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {"path": str(self.path), "module_paths": list(self.module_paths)}


@dataclass(frozen=True)
class ModuleDescriptor:
    """
    One discovered native module.

    Attributes:
        package_name: Name of the owning package
        package_path: Root directory of the owning package
        relative_path: Module path inside the package (posix separators)
        platform: Platform the module is built for
    """

    package_name: str
    package_path: Path
    relative_path: str
    platform: str

    @property
    def module_path(self) -> Path:
        return self.package_path / self.relative_path


def _real_path(path: Path) -> Path:
    return Path(os.path.realpath(path))


# ============================================================================
# Module Recognition
# ============================================================================


def _is_android_abi_directory(path: Path) -> bool:
    for child in path.iterdir():
        if child.name in ANDROID_ABIS and child.is_dir():
            if any(f.name.endswith(".so") for f in child.iterdir()):
                return True
    return False


def is_native_module(path: Path, platform: str) -> bool:
    """
    Check whether a directory is a native module for a platform.

    Raises:
        DiscoveryError: If the directory cannot be read
    """
    if not path.is_dir():
        return False
    if path.name.endswith(PLATFORM_EXTENSIONS[platform]):
        return True
    if platform == ANDROID:
        try:
            return _is_android_abi_directory(path)
        except OSError as e:
            raise DiscoveryError(f"Cannot read {path}: {e}") from e
    return False


def module_platform(path: Path, platforms: Iterable[str]) -> Optional[str]:
    """First of platforms the directory is a module for, if any."""
    for platform in platforms:
        if is_native_module(path, platform):
            return platform
    return None


def scan_module_paths(
    package_path: Path, platforms: Iterable[str], exclude: Iterable[Path] = ()
) -> List[str]:
    """
    Scan a package directory for native modules.

    Skips node_modules, build and hidden directories as well as the
    directories in exclude (autolink output inside the app), and does not
    descend into matched modules.

    Returns:
        Sorted relative posix paths

    Raises:
        DiscoveryError: If a directory cannot be read
    """
    platforms = tuple(platforms)
    excluded = {_real_path(path) for path in exclude}
    found: List[str] = []

    def on_error(error: OSError):
        raise DiscoveryError(f"Cannot read {error.filename}: {error}") from error

    for root, dirs, _files in os.walk(package_path, onerror=on_error):
        root_path = Path(root)
        kept = []
        for name in sorted(dirs):
            if name.startswith(".") or name in SKIPPED_DIRECTORIES:
                continue
            candidate = root_path / name
            if excluded and _real_path(candidate) in excluded:
                logger.debug(f"Not scanning output directory {candidate}")
                continue
            if module_platform(candidate, platforms) is not None:
                found.append(to_posix_path(candidate.relative_to(package_path)))
            else:
                kept.append(name)
        dirs[:] = kept

    return sorted(found)


def declared_module_paths(
    package_path: Path, manifest: Dict[str, object], platforms: Iterable[str]
) -> Optional[List[str]]:
    """
    Module paths a package declares in its manifest.

    Returns:
        Declared paths for the requested platforms, or None without a declaration

    Raises:
        DiscoveryError: If the declaration is malformed
    """
    declaration = manifest.get(DECLARATION_FIELD)
    if declaration is None:
        return None
    if not isinstance(declaration, dict):
        raise DiscoveryError(
            f"Expected '{DECLARATION_FIELD}' to be an object in {package_path / 'package.json'}"
        )

    paths: List[str] = []
    for platform in platforms:
        entries = declaration.get(platform) or []
        if isinstance(entries, str):
            entries = [entries]
        for entry in entries:
            module_path = package_path / entry
            if not module_path.exists():
                logger.warning(
                    f"{package_path.name} declares a missing {platform} module: {entry}"
                )
                continue
            relative = to_posix_path(Path(os.path.normpath(entry)))
            if relative not in paths:
                paths.append(relative)
    return paths


def find_module_paths(
    package_path: Path, platforms: Iterable[str], exclude: Iterable[Path] = ()
) -> List[str]:
    """Native module paths of one package, relative to its root."""
    platforms = tuple(platforms)
    manifest = read_package_manifest(package_path)
    declared = declared_module_paths(package_path, manifest, platforms)
    if declared is not None:
        return declared
    return scan_module_paths(package_path, platforms, exclude)


# ============================================================================
# Dependency Graph Traversal
# ============================================================================


def iter_dependency_packages(app_root: Path) -> Iterator[Path]:
    """
    Breadth-first walk of installed dependencies, excluding app_root itself.

    Unresolvable (not installed) dependencies are logged and skipped.
    """
    visited: Set[Path] = {app_root.resolve()}
    queue = deque([app_root])

    while queue:
        package_path = queue.popleft()
        for name in get_dependency_names(package_path):
            dependency_path = resolve_dependency(name, package_path)
            if dependency_path is None:
                logger.warning(
                    f"Dependency {name} of {package_path} is not installed, skipping"
                )
                continue
            if dependency_path in visited:
                continue
            visited.add(dependency_path)
            queue.append(dependency_path)
            yield dependency_path


def find_module_paths_by_dependency(
    from_path: Path,
    platforms: Iterable[str] = PLATFORMS,
    include_self: bool = True,
    exclude: Iterable[Path] = (),
) -> "OrderedDict[str, DependencyModules]":
    """
    Discover native modules across an application's dependency tree.

    Args:
        from_path: Any path inside the application package
        platforms: Platforms whose modules to collect
        include_self: Also scan the application package itself
        exclude: Directories never scanned, such as the autolink output root

    Returns:
        Package name -> DependencyModules, in traversal order; packages
        without modules are left out, so an empty result is valid

    Raises:
        DiscoveryError: If from_path is outside any package or state is unreadable
    """
    if isinstance(platforms, str):
        platforms = (platforms,)
    platforms = tuple(p for p in PLATFORMS if p in set(platforms))

    exclude = tuple(exclude)
    app_root = find_package_root(Path(from_path))
    if app_root is None:
        raise DiscoveryError(f"No package.json found at or above {from_path}")

    candidates: List[Path] = [app_root] if include_self else []
    candidates.extend(iter_dependency_packages(app_root))

    result: "OrderedDict[str, DependencyModules]" = OrderedDict()
    for package_path in candidates:
        name = get_package_name(package_path)
        if name in result:
            logger.debug(f"Skipping another copy of {name} at {package_path}")
            continue
        module_paths = find_module_paths(package_path, platforms, exclude)
        if module_paths:
            result[name] = DependencyModules(path=package_path, module_paths=module_paths)

    logger.debug(
        f"Found {sum(len(d.module_paths) for d in result.values())} module(s) "
        f"in {len(result)} package(s) below {app_root}"
    )
    return result


def iter_modules(
    dependencies: Dict[str, DependencyModules], platform: str
) -> Iterator[ModuleDescriptor]:
    """Flatten a discovery result into module descriptors for one platform."""
    for package_name, dependency in dependencies.items():
        for relative_path in dependency.module_paths:
            yield ModuleDescriptor(
                package_name=package_name,
                package_path=dependency.path,
                relative_path=relative_path,
                platform=platform,
            )
