"""
Android module linking.

An Android module is a directory with one subdirectory per ABI, each holding
a single shared library. Linking copies it into the Android autolink
directory and renames every library to `lib<name>.so`, the name the app's
build loads it by.
"""

import logging
from pathlib import Path
from typing import List

from nativelink.core.exceptions import LinkFailure
from nativelink.core.filesystem import recursive_copy
from nativelink.cross.targets import ANDROID
from nativelink.linking.base import ModuleLinker
from nativelink.linking.discovery import ANDROID_ABIS

logger = logging.getLogger(__name__)


def android_library_filename(library_name: str) -> str:
    """
    Example:
        >>> android_library_filename("sqlite--sqlite")
        'libsqlite--sqlite.so'
    """
    return f"lib{library_name}.so"


class AndroidDirectoryLinker(ModuleLinker):
    """Links Android modules into `<output root>/android/<name>/<abi>/lib<name>.so`."""

    platform = ANDROID

    def output_name(self, library_name: str) -> str:
        return library_name

    def materialize(self, module_path: Path, library_name: str, staging: Path) -> None:
        recursive_copy(module_path, staging, dirs_exist_ok=True)

        abi_dirs = sorted(
            p for p in staging.iterdir() if p.is_dir() and p.name in ANDROID_ABIS
        )
        if not abi_dirs:
            raise LinkFailure(
                f"Expected at least one ABI directory ({', '.join(sorted(ANDROID_ABIS))}) "
                f"in {module_path}",
                module_path,
            )

        filename = android_library_filename(library_name)
        for abi_dir in abi_dirs:
            libraries: List[Path] = [
                p for p in abi_dir.iterdir() if p.is_file() and p.name.endswith(".so")
            ]
            if len(libraries) != 1:
                raise LinkFailure(
                    f"Expected exactly one library in {module_path / abi_dir.name}, "
                    f"found {len(libraries)}",
                    module_path,
                )
            libraries[0].rename(abi_dir / filename)
            logger.debug(f"{abi_dir.name}: {libraries[0].name} -> {filename}")
