"""
Canonical naming of native modules.

Every discovered module gets a stable output name derived from its owning
package's name and its path inside that package, e.g.
`@acme/sqlite` + `native/sqlite.android.node` -> `sqlite--sqlite`. The name is
used as the linked library's file name, so two different modules must never
share one: `get_library_map` folds a short path-derived digest into any names
that would otherwise collide.
"""

import hashlib
import logging
import posixpath
import re
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from nativelink.core.exceptions import DiscoveryError
from nativelink.core.filesystem import to_posix_path
from nativelink.core.packages import find_package_root, get_package_name

logger = logging.getLogger(__name__)

NAMING_CHOICES = ("strip", "keep", "omit")
NAME_SEPARATOR = "--"

# Longest first, so '.android.node' wins over '.node'
MODULE_EXTENSIONS = (
    ".android.node",
    ".apple.node",
    ".xcframework",
    ".framework",
    ".dylib",
    ".node",
    ".so",
)

DISAMBIGUATOR_LENGTH = 6

_UNSAFE_CHARACTERS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class NamingStrategy:
    """
    How much of a module's origin goes into its library name.

    Attributes:
        package_name: 'keep' the full (scoped) name, 'strip' the scope, or 'omit' it
        path_suffix: 'keep' the relative path, 'strip' it to the basename, or 'omit' it
    """

    package_name: str = "strip"
    path_suffix: str = "strip"

    def __post_init__(self):
        for option in ("package_name", "path_suffix"):
            value = getattr(self, option)
            if value not in NAMING_CHOICES:
                raise ValueError(
                    f"Invalid {option} naming: {value} (expected one of {list(NAMING_CHOICES)})"
                )
        if self.package_name == "omit" and self.path_suffix == "omit":
            raise ValueError("Cannot omit both the package name and the path suffix")


@dataclass(frozen=True)
class ModuleContext:
    """Where a module lives: its package and its normalized path inside it."""

    package_name: str
    relative_path: str


def strip_module_extension(basename: str) -> str:
    """Remove one known module/library extension from a file name."""
    for extension in MODULE_EXTENSIONS:
        if basename.endswith(extension) and len(basename) > len(extension):
            return basename[: -len(extension)]
    return basename


def normalize_module_path(module_path) -> str:
    """
    Platform-neutral form of a module path.

    Separators become '/', the directory part is normalized, and the basename
    loses its module extension and any 'lib' prefix.

    Example:
        >>> normalize_module_path("native\\\\build\\\\..\\\\libsqlite.android.node")
        'native/sqlite'
    """
    path = to_posix_path(module_path)
    dirname, basename = posixpath.split(path)
    stripped = strip_module_extension(basename)
    if stripped.startswith("lib") and len(stripped) > 3:
        stripped = stripped[3:]

    if not dirname:
        return stripped
    dirname = posixpath.normpath(dirname)
    if dirname == ".":
        return stripped
    return posixpath.join(dirname, stripped)


def determine_module_context(module_path: Path) -> ModuleContext:
    """
    Split a module path at the boundary of the package that contains it.

    Raises:
        DiscoveryError: If the path is not inside any package
    """
    module_path = Path(module_path).absolute()
    package_root = find_package_root(module_path.parent)
    if package_root is None:
        raise DiscoveryError(f"No package.json found above {module_path}")

    relative = module_path.relative_to(package_root)
    return ModuleContext(
        package_name=get_package_name(package_root),
        relative_path=normalize_module_path(relative),
    )


def escape_path(value: str) -> str:
    """
    Make a string safe for use in a file name.

    Example:
        >>> escape_path("native/sqlite")
        'native-sqlite'
    """
    return _UNSAFE_CHARACTERS.sub("-", value.replace("/", "-")).strip("-")


def escape_package_name(package_name: str) -> str:
    """
    Example:
        >>> escape_package_name("@acme/sqlite")
        'acme--sqlite'
    """
    return NAME_SEPARATOR.join(
        escape_path(part) for part in package_name.lstrip("@").split("/")
    )


def library_name_from_context(context: ModuleContext, naming: NamingStrategy) -> str:
    """Library name for an already determined module context."""
    parts = []

    if naming.package_name == "keep":
        parts.append(escape_package_name(context.package_name))
    elif naming.package_name == "strip":
        parts.append(escape_path(context.package_name.split("/")[-1]))

    if naming.path_suffix == "keep":
        parts.append(escape_path(context.relative_path))
    elif naming.path_suffix == "strip":
        parts.append(escape_path(posixpath.basename(context.relative_path)))

    return NAME_SEPARATOR.join(p for p in parts if p)


def get_library_name(module_path: Path, naming: NamingStrategy) -> str:
    """
    Canonical library name of one module.

    Deterministic: the same path and strategy always give the same name.
    Uniqueness across modules is the job of get_library_map.
    """
    return library_name_from_context(determine_module_context(module_path), naming)


def module_disambiguator(
    context: ModuleContext, length: int = DISAMBIGUATOR_LENGTH, salt: str = ""
) -> str:
    """Short digest of a module's package and relative path."""
    key = f"{context.package_name}:{context.relative_path}{salt}".encode("utf-8")
    return hashlib.sha256(key).hexdigest()[:length]


def get_library_map(
    module_paths: Iterable[Path], naming: NamingStrategy
) -> "OrderedDict[str, Path]":
    """
    Assign a unique library name to every module.

    Modules whose natural names collide get a digest suffix; the digest grows
    until every name in the map is distinct.

    Args:
        module_paths: Absolute module paths (duplicates are ignored)
        naming: Naming strategy

    Returns:
        Library name -> module path, in input order
    """
    paths: List[Path] = []
    seen = set()
    for path in module_paths:
        path = Path(path).absolute()
        if path not in seen:
            seen.add(path)
            paths.append(path)

    contexts = {path: determine_module_context(path) for path in paths}
    names = {path: library_name_from_context(contexts[path], naming) for path in paths}

    length = DISAMBIGUATOR_LENGTH
    while True:
        colliding = _colliding_paths(paths, names)
        if not colliding:
            break
        if length > 64:
            raise DiscoveryError(
                f"Cannot derive unique names for: {', '.join(str(p) for p in colliding)}"
            )
        for path in colliding:
            base = library_name_from_context(contexts[path], naming)
            # Two installed copies of one package share a context
            salt = f":{path}" if length > DISAMBIGUATOR_LENGTH else ""
            digest = module_disambiguator(contexts[path], length, salt)
            names[path] = f"{base}{NAME_SEPARATOR}{digest}"
            logger.debug(f"Disambiguated {path} as {names[path]}")
        length += 2

    return OrderedDict((names[path], path) for path in paths)


def _colliding_paths(paths: Sequence[Path], names: Dict[Path, str]) -> List[Path]:
    counts: Dict[str, int] = {}
    for path in paths:
        counts[names[path]] = counts.get(names[path], 0) + 1
    return [path for path in paths if counts[names[path]] > 1]


def visualize_library_map(library_map: Dict[str, Path]) -> str:
    """
    Render a library map as an indented tree for terminal output.

    Example:
        sqlite--sqlite
          └─ /app/node_modules/@acme/sqlite/native/sqlite.android.node
    """
    lines = []
    for library_name, module_path in library_map.items():
        lines.append(f"  {library_name}")
        lines.append(f"    └─ {module_path}")
    return "\n".join(lines)
