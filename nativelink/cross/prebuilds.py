"""
Weak runtime prebuilds and native artifact location.

Native modules link against a small host-runtime shim library ("weak runtime",
`weak-node-api` by default) that ships prebuilt for every target:

    <root>/weak-node-api.xcframework/<slice>/weak-node-api.framework
    <root>/weak-node-api.android.node/<abi>/libweak-node-api.so

This module locates the best prebuilt artifact for a target and, in the other
direction, assembles freshly built Android libraries into the same
`<name>.android.node/<abi>/` layout.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional

from nativelink.core.exceptions import ConfigurationError
from nativelink.core.packages import find_package_root, resolve_dependency
from nativelink.cross.targets import ANDROID_TARGETS, TargetDescriptor

logger = logging.getLogger(__name__)

DEFAULT_WEAK_RUNTIME_LIBRARY = "weak-node-api"
ANDROID_LIBS_EXTENSION = ".android.node"


@dataclass(frozen=True)
class WeakRuntimeLayout:
    """
    On-disk layout of the weak runtime prebuilds.

    Attributes:
        root: Directory holding the xcframework and the Android libs directory
        library_name: Name of the shim library to link against
    """

    root: Path
    library_name: str = DEFAULT_WEAK_RUNTIME_LIBRARY

    @property
    def apple_prebuild_path(self) -> Path:
        return self.root / f"{self.library_name}.xcframework"

    @property
    def android_prebuild_path(self) -> Path:
        return self.root / f"{self.library_name}{ANDROID_LIBS_EXTENSION}"

    @property
    def framework_name(self) -> str:
        return f"{self.library_name}.framework"


def find_default_prebuild_root(
    from_path: Path, library_name: str = DEFAULT_WEAK_RUNTIME_LIBRARY
) -> Optional[Path]:
    """
    Locate the weak runtime's Release build directory among app dependencies.

    Args:
        from_path: Any path inside the application package
        library_name: Package name of the weak runtime

    Returns:
        `<package>/build/Release` if the dependency is installed, else None
    """
    app_root = find_package_root(from_path)
    if app_root is None:
        return None

    package_path = resolve_dependency(library_name, app_root)
    if package_path is None:
        logger.debug(f"{library_name} is not installed below {app_root}")
        return None

    return package_path / "build" / "Release"


def get_apple_framework_slice_path(
    layout: WeakRuntimeLayout, target: TargetDescriptor
) -> Path:
    """
    Pick the xcframework slice to link an Apple target against.

    Universal slices come first in each target's candidate list, so the
    artifact covering the most architectures wins when several exist.

    Raises:
        ConfigurationError: If none of the target's candidate slices exist
    """
    for slice_name in target.apple_slices:
        candidate = layout.apple_prebuild_path / slice_name
        if candidate.is_dir():
            logger.debug(f"Using slice {slice_name} for {target.triple}")
            return candidate

    raise ConfigurationError(
        f"No matching slice found in {layout.apple_prebuild_path} for target {target.triple} "
        f"(looked for: {', '.join(target.apple_slices)})",
        instructions=f"Build {layout.library_name} for Apple platforms first",
    )


def get_android_library_path(
    layout: WeakRuntimeLayout, target: TargetDescriptor
) -> Path:
    """
    Directory holding the weak runtime library for an Android target's ABI.

    Raises:
        ConfigurationError: If the target has no ABI or the directory is missing
    """
    if target.android_abi is None:
        raise ConfigurationError(f"{target.triple} is not an Android target")

    library_path = layout.android_prebuild_path / target.android_abi
    if not library_path.is_dir():
        raise ConfigurationError(
            f"Expected {layout.library_name} for {target.android_abi} at {library_path}",
            instructions=f"Build {layout.library_name} for Android first",
        )
    return library_path


# ============================================================================
# Android Libs Directory Assembly
# ============================================================================


def determine_library_basename(library_path: Path) -> str:
    """
    Library name without 'lib' prefix and shared library suffix.

    Example:
        >>> determine_library_basename(Path("target/release/libmy_addon.so"))
        'my_addon'
    """
    name = Path(library_path).name
    for suffix in (".so", ".dylib"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    if name.startswith("lib"):
        name = name[3:]
    return name


def determine_android_libs_filename(library_paths: Iterable[Path]) -> str:
    """
    Name of the `.android.node` directory for a set of per-ABI builds.

    Raises:
        ValueError: If the libraries do not share one basename
    """
    basenames = {determine_library_basename(p) for p in library_paths}
    if len(basenames) != 1:
        raise ValueError(
            f"Expected all libraries to share a basename, got: {sorted(basenames)}"
        )
    return f"{basenames.pop()}{ANDROID_LIBS_EXTENSION}"


def create_android_libs_directory(
    output_path: Path, libraries_by_triple: Mapping[str, Path]
) -> Path:
    """
    Assemble per-target Android libraries into `<output>/<abi>/<lib>.so`.

    An existing directory at output_path is replaced.

    Args:
        output_path: Directory to create (usually named `<name>.android.node`)
        libraries_by_triple: Built library per Android target triple

    Returns:
        output_path
    """
    if output_path.exists():
        shutil.rmtree(output_path)

    for triple, library_path in libraries_by_triple.items():
        target = ANDROID_TARGETS.get(triple)
        if target is None:
            raise ValueError(f"Not an Android target: {triple}")

        abi_path = output_path / target.android_abi
        abi_path.mkdir(parents=True, exist_ok=True)
        shutil.copy2(library_path, abi_path / Path(library_path).name)
        logger.debug(f"Copied {library_path} -> {abi_path}")

    return output_path
