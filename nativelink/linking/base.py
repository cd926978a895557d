"""
Platform module linkers.

A ModuleLinker materializes one discovered native module into its platform's
autolink directory under a canonical library name. There is one
implementation per platform, chosen once through get_linker.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from nativelink.core.filesystem import (
    create_staging_directory,
    replace_directory,
    safe_rmtree,
)
from nativelink.cross.targets import ANDROID, APPLE, PLATFORMS

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_ROOT = Path(".nativelink") / "auto-linked"

PLATFORM_DISPLAY_NAMES = {
    ANDROID: "Android",
    APPLE: "Apple",
}


def get_platform_display_name(platform: str) -> str:
    """
    Raises:
        ValueError: For an unknown platform
    """
    try:
        return PLATFORM_DISPLAY_NAMES[platform]
    except KeyError:
        raise ValueError(f"Unknown platform: {platform}") from None


class ModuleLinker(ABC):
    """
    Materializes modules into one platform's autolink directory.

    Subclasses implement `output_name` (the directory entry a library name
    maps to) and `materialize` (writing a module into a staging directory).
    `link` takes care of writing atomically: the module is built in a hidden
    sibling directory and swapped into place only once complete.

    Attributes:
        platform: Platform name
        output_root: Directory holding every platform's autolink directory
    """

    platform: str = ""

    def __init__(self, output_root: Path):
        self.output_root = Path(output_root)

    @property
    def output_dir(self) -> Path:
        """This platform's autolink directory."""
        return self.output_root / self.platform

    @abstractmethod
    def output_name(self, library_name: str) -> str:
        """Name of the output entry for a library name."""

    @abstractmethod
    def materialize(self, module_path: Path, library_name: str, staging: Path) -> None:
        """
        Write the linked form of a module into an empty staging directory.

        Raises:
            LinkFailure: If the module does not have the expected shape
            SpawnFailure: If an external helper fails
            OSError: If copying fails
        """

    def output_path(self, library_name: str) -> Path:
        """Where a library ends up."""
        return self.output_dir / self.output_name(library_name)

    def library_name_for_entry(self, entry: Path) -> str:
        """Inverse of output_name, used when pruning."""
        name = entry.name
        suffix = self.output_name("")
        if suffix and name.endswith(suffix):
            return name[: -len(suffix)]
        return name

    def link(self, module_path: Path, library_name: str) -> Path:
        """
        Materialize one module.

        Args:
            module_path: Source module directory
            library_name: Canonical library name

        Returns:
            Path to the output entry
        """
        destination = self.output_path(library_name)
        staging = create_staging_directory(self.output_dir, destination.name)
        try:
            self.materialize(Path(module_path), library_name, staging)
            replace_directory(staging, destination)
        finally:
            if staging.exists():
                safe_rmtree(staging)

        logger.debug(f"Linked {module_path} -> {destination}")
        return destination


def get_linker(platform: str, output_root: Path) -> ModuleLinker:
    """
    Linker for a platform.

    Raises:
        ValueError: For an unknown platform
    """
    # Imported here, the implementations import this module
    from nativelink.linking.android import AndroidDirectoryLinker
    from nativelink.linking.apple import AppleXcframeworkLinker

    linkers = {
        ANDROID: AndroidDirectoryLinker,
        APPLE: AppleXcframeworkLinker,
    }
    if platform not in linkers:
        raise ValueError(
            f"Unknown platform: {platform} (expected one of {list(PLATFORMS)})"
        )
    return linkers[platform](output_root)
