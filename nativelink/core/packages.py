"""
Package tree primitives.

An application and its dependencies are laid out the way npm installs them:
every package root holds a `package.json`, and dependencies are resolved by
looking for `node_modules/<name>` in the requiring package's directory and
then in each of its ancestors.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from nativelink.core.exceptions import DiscoveryError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"
DEPENDENCY_FIELDS = ("dependencies", "optionalDependencies")


def find_package_root(from_path: Path) -> Optional[Path]:
    """
    Find the nearest directory at or above from_path holding a package.json.

    Args:
        from_path: File or directory inside a package

    Returns:
        Package root, or None when from_path is not inside any package
    """
    current = Path(from_path).absolute()
    if not current.is_dir():
        current = current.parent

    for candidate in (current, *current.parents):
        if (candidate / MANIFEST_NAME).is_file():
            return candidate
    return None


def read_package_manifest(package_path: Path) -> Dict[str, Any]:
    """
    Read and parse a package's package.json.

    Raises:
        DiscoveryError: If the manifest is unreadable or not a JSON object
    """
    manifest_path = Path(package_path) / MANIFEST_NAME
    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise DiscoveryError(f"Cannot read {manifest_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise DiscoveryError(f"Invalid JSON in {manifest_path}: {e}") from e

    if not isinstance(data, dict):
        raise DiscoveryError(f"Expected an object in {manifest_path}")
    return data


def get_package_name(package_path: Path) -> str:
    """Declared package name, falling back to the directory name."""
    name = read_package_manifest(package_path).get("name")
    if isinstance(name, str) and name:
        return name
    logger.debug(f"No name in {Path(package_path) / MANIFEST_NAME}, using directory name")
    return Path(package_path).name


def get_dependency_names(package_path: Path) -> List[str]:
    """Names of a package's runtime dependencies, in manifest order."""
    manifest = read_package_manifest(package_path)
    names: List[str] = []
    for field in DEPENDENCY_FIELDS:
        section = manifest.get(field) or {}
        if not isinstance(section, dict):
            raise DiscoveryError(
                f"Expected '{field}' to be an object in {Path(package_path) / MANIFEST_NAME}"
            )
        for name in section:
            if name not in names:
                names.append(name)
    return names


def resolve_dependency(name: str, from_package: Path) -> Optional[Path]:
    """
    Resolve a dependency the way Node does, walking up node_modules folders.

    Args:
        name: Dependency package name (may be scoped, e.g. '@org/pkg')
        from_package: Root of the package declaring the dependency

    Returns:
        Real path of the dependency's package root, or None if not installed
    """
    from_package = Path(from_package).absolute()
    for directory in (from_package, *from_package.parents):
        candidate = directory / "node_modules" / name
        if (candidate / MANIFEST_NAME).is_file():
            return candidate.resolve()
    return None
