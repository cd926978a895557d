"""
Apple module linking and framework symlink restoration.

An Apple module is an xcframework: an `Info.plist` listing one framework
bundle per slice. Linking composes `<name>.xcframework` in the Apple autolink
directory with every framework (and its executable) renamed to the canonical
library name, so several modules can be embedded side by side.

macOS frameworks are versioned bundles that rely on internal symlinks
(`Versions/Current`, `<entry> -> Versions/Current/<entry>`). Archive and copy
tools that dereference links turn them into duplicate directories, which
breaks code signing; restore_framework_links rebuilds them.
"""

import logging
import os
import plistlib
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from nativelink.core.exceptions import LinkFailure
from nativelink.core.filesystem import recursive_copy, safe_rmtree
from nativelink.core.process import run_process
from nativelink.cross.prebuilds import WeakRuntimeLayout
from nativelink.cross.targets import APPLE
from nativelink.linking.base import ModuleLinker

logger = logging.getLogger(__name__)

XCFRAMEWORK_EXTENSION = ".xcframework"
FRAMEWORK_EXTENSION = ".framework"
INFO_PLIST = "Info.plist"
CURRENT_VERSION = "Current"
DEFAULT_VERSION = "A"

MACOS_SLICES = ("macos-x86_64", "macos-arm64", "macos-arm64_x86_64")

# Sealed per version, never linked at the bundle root
UNLINKED_ENTRIES = frozenset({"_CodeSignature"})


# ============================================================================
# Framework Bundle Structure
# ============================================================================


def _link_target(path: Path) -> Optional[str]:
    return os.readlink(path) if path.is_symlink() else None


def _replace_with_symlink(path: Path, target: str) -> bool:
    """Point path at target, replacing whatever is there. Returns True on change."""
    if _link_target(path) == target:
        return False
    if path.exists() or path.is_symlink():
        safe_rmtree(path)
    os.symlink(target, path)
    logger.debug(f"Restored symlink: {path} -> {target}")
    return True


def is_versioned_framework(framework_path: Path) -> bool:
    """True for macOS-style bundles with a Versions directory."""
    return (framework_path / "Versions").is_dir()


def _find_version_name(versions_path: Path) -> str:
    current = versions_path / CURRENT_VERSION
    target = _link_target(current)
    if target is not None and (versions_path / target).is_dir():
        return target

    versions = sorted(
        p.name
        for p in versions_path.iterdir()
        if p.is_dir() and not p.is_symlink() and p.name != CURRENT_VERSION
    )
    if not versions:
        # Current was dereferenced into the only copy of the bundle contents
        if current.is_dir() and not current.is_symlink():
            current.rename(versions_path / DEFAULT_VERSION)
        return DEFAULT_VERSION
    if DEFAULT_VERSION in versions:
        return DEFAULT_VERSION
    return versions[-1]


def restore_framework_links(framework_path: Path) -> bool:
    """
    Rebuild the internal symlinks of a versioned framework bundle.

    Recreates `Versions/Current` and a top-level `<entry> ->
    Versions/Current/<entry>` link for every entry of the current version
    except `_CodeSignature`, replacing dereferenced copies and dropping
    links to entries that no longer exist. Shallow (iOS style) bundles are
    left alone.

    Args:
        framework_path: Path to a `.framework` directory

    Returns:
        True if anything was changed
    """
    framework_path = Path(framework_path)
    if not is_versioned_framework(framework_path):
        return False

    versions_path = framework_path / "Versions"
    version = _find_version_name(versions_path)
    version_path = versions_path / version
    if not version_path.is_dir():
        logger.warning(f"{framework_path} has no version directory, not restoring links")
        return False

    changed = _replace_with_symlink(versions_path / CURRENT_VERSION, version)

    entries = sorted(
        p.name for p in version_path.iterdir() if p.name not in UNLINKED_ENTRIES
    )
    for entry in entries:
        target = f"Versions/{CURRENT_VERSION}/{entry}"
        changed |= _replace_with_symlink(framework_path / entry, target)

    for path in list(framework_path.iterdir()):
        target = _link_target(path)
        if target is None or not target.startswith("Versions/"):
            continue
        if path.name in UNLINKED_ENTRIES or not path.exists():
            path.unlink()
            logger.debug(f"Removed stray symlink: {path}")
            changed = True

    return changed


def restore_weak_runtime_links(layout: WeakRuntimeLayout) -> List[Path]:
    """
    Restore the weak runtime framework's symlinks in every macOS slice.

    Missing slices or frameworks are skipped silently.

    Returns:
        Frameworks whose links were changed
    """
    restored = []
    for slice_name in MACOS_SLICES:
        framework_path = layout.apple_prebuild_path / slice_name / layout.framework_name
        if not framework_path.is_dir():
            continue
        if restore_framework_links(framework_path):
            restored.append(framework_path)
    return restored


def framework_contents(framework_path: Path) -> Tuple[Path, Path]:
    """
    Directory holding a framework's executable and the path of its Info.plist.

    Raises:
        LinkFailure: If the bundle has no Info.plist
    """
    if is_versioned_framework(framework_path):
        contents = (framework_path / "Versions" / CURRENT_VERSION).resolve()
        info_plist = contents / "Resources" / INFO_PLIST
    else:
        contents = framework_path
        info_plist = contents / INFO_PLIST

    if not info_plist.is_file():
        raise LinkFailure(f"Expected {info_plist} to exist", framework_path)
    return contents, info_plist


# ============================================================================
# Plist Helpers
# ============================================================================


def read_plist(path: Path) -> Dict:
    """
    Raises:
        LinkFailure: If the file is missing or not a valid property list
    """
    try:
        with open(path, "rb") as f:
            data = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException, ValueError) as e:
        raise LinkFailure(f"Failed to read {path}: {e}", path, cause=e) from e
    if not isinstance(data, dict):
        raise LinkFailure(f"Expected a dictionary in {path}", path)
    return data


def write_plist(path: Path, data: Dict) -> None:
    with open(path, "wb") as f:
        plistlib.dump(data, f, fmt=plistlib.FMT_XML)


# ============================================================================
# Linker
# ============================================================================


class AppleXcframeworkLinker(ModuleLinker):
    """Links Apple modules into `<output root>/apple/<name>.xcframework`."""

    platform = APPLE

    def output_name(self, library_name: str) -> str:
        return f"{library_name}{XCFRAMEWORK_EXTENSION}"

    def materialize(self, module_path: Path, library_name: str, staging: Path) -> None:
        info = read_plist(module_path / INFO_PLIST)
        libraries = info.get("AvailableLibraries")
        if not isinstance(libraries, list) or not libraries:
            raise LinkFailure(
                f"Expected AvailableLibraries in {module_path / INFO_PLIST}", module_path
            )

        framework_name = f"{library_name}{FRAMEWORK_EXTENSION}"
        for library in libraries:
            identifier = library.get("LibraryIdentifier")
            library_path = library.get("LibraryPath")
            if not identifier or not library_path:
                raise LinkFailure(
                    f"Incomplete library entry in {module_path / INFO_PLIST}", module_path
                )
            if not library_path.endswith(FRAMEWORK_EXTENSION):
                raise LinkFailure(
                    f"Expected a framework in slice {identifier}, got {library_path}",
                    module_path,
                )

            source = module_path / identifier / library_path
            if not source.is_dir():
                raise LinkFailure(f"Expected {source} to exist", module_path)

            destination = staging / identifier / framework_name
            recursive_copy(source, destination, symlinks=True)
            binary_path = self.rename_framework(destination, library_name)

            library["LibraryPath"] = framework_name
            if "BinaryPath" in library:
                library["BinaryPath"] = binary_path.relative_to(
                    staging / identifier
                ).as_posix()

        write_plist(staging / INFO_PLIST, info)

    def rename_framework(self, framework_path: Path, library_name: str) -> Path:
        """
        Rename a copied framework's executable and bundle metadata.

        Returns:
            Path of the executable relative to the bundle's logical layout
            (`<name>.framework/<name>` or `.../Versions/A/<name>`)
        """
        # Copies made without preserving links need them back before renaming
        restore_framework_links(framework_path)
        contents, info_plist = framework_contents(framework_path)

        bundle_info = read_plist(info_plist)
        executable = bundle_info.get("CFBundleExecutable")
        if not executable or not (contents / executable).is_file():
            raise LinkFailure(
                f"Expected the executable named in {info_plist} to exist", framework_path
            )

        binary = contents / library_name
        if executable != library_name:
            (contents / executable).rename(binary)
        bundle_info["CFBundleExecutable"] = library_name
        bundle_info["CFBundleName"] = library_name
        write_plist(info_plist, bundle_info)

        if is_versioned_framework(framework_path):
            restore_framework_links(framework_path)
            binary = framework_path / "Versions" / contents.name / library_name

        update_install_name(binary, library_name)
        return binary


def update_install_name(binary: Path, library_name: str) -> None:
    """
    Set a renamed framework binary's install name.

    Skipped when install_name_tool is not available (non-macOS hosts).

    Raises:
        SpawnFailure: If install_name_tool fails
    """
    tool = shutil.which("install_name_tool")
    if tool is None:
        logger.debug(f"install_name_tool not found, keeping install name of {binary}")
        return
    run_process(
        [tool, "-id", f"@rpath/{library_name}{FRAMEWORK_EXTENSION}/{library_name}", str(binary)]
    )
