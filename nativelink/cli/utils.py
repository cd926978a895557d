"""
Shared utilities for CLI commands.

Provides common functionality used across multiple CLI commands to
eliminate duplication and ensure consistent behavior.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from nativelink.config.parser import NativeLinkConfig, load_config
from nativelink.core.exceptions import ConfigurationError, DiscoveryError
from nativelink.core.packages import find_package_root
from nativelink.cross.prebuilds import WeakRuntimeLayout, find_default_prebuild_root
from nativelink.linking.naming import NamingStrategy

logger = logging.getLogger(__name__)


# ============================================================================
# Output Helpers
# ============================================================================


def print_error(message: str, details: Optional[str] = None):
    """
    Print formatted error message to stderr.

    Args:
        message: Error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def print_warning(message: str):
    """Print formatted warning message to stderr."""
    print(f"WARNING: {message}", file=sys.stderr)


def safe_print(message: str, file=None):
    """
    Print a message, replacing characters the console cannot encode.

    Args:
        message: Message to print
        file: Stream (default: stdout)
    """
    file = file or sys.stdout
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        encoding = getattr(file, "encoding", None) or "ascii"
        print(message.encode(encoding, errors="replace").decode(encoding), file=file)


def pretty_path(path: Path, base: Optional[Path] = None) -> str:
    """
    Shorten a path for display: relative to base (default: cwd) when below it.

    Example:
        >>> pretty_path(Path.cwd() / "node_modules" / "addon")
        'node_modules/addon'
    """
    path = Path(path)
    base = Path(base) if base is not None else Path.cwd()
    try:
        relative = path.relative_to(base)
    except ValueError:
        return str(path)
    return str(relative) if str(relative) != "." else "."


# ============================================================================
# Application and Configuration Resolution
# ============================================================================


def resolve_app_root(from_path: Path) -> Path:
    """
    Application package root containing a path.

    Raises:
        DiscoveryError: If no package.json exists at or above from_path
    """
    app_root = find_package_root(Path(from_path))
    if app_root is None:
        raise DiscoveryError(f"No package.json found at or above {from_path}")
    return app_root


def load_app_config(args, app_root: Optional[Path]) -> NativeLinkConfig:
    """
    Load nativelink.yaml for a command.

    An explicit --config wins; otherwise the file next to the app's
    package.json is used if present.
    """
    config_path = getattr(args, "config", None)
    if app_root is None and config_path is None:
        return NativeLinkConfig()

    config = load_config(app_root or Path.cwd(), config_path)
    if config.source is not None:
        logger.debug(f"Loaded configuration from {config.source}")
    return config


def naming_from_args(args, config: NativeLinkConfig) -> NamingStrategy:
    """Naming strategy from --package-name/--path-suffix over config values."""
    return NamingStrategy(
        package_name=getattr(args, "package_name", None) or config.linking.package_name,
        path_suffix=getattr(args, "path_suffix", None) or config.linking.path_suffix,
    )


def resolve_output_root(
    override: Optional[Path], config: NativeLinkConfig, app_root: Path
) -> Path:
    """Autolink root: --output-dir, then linking.output_dir, relative to the app."""
    output_root = Path(override) if override else config.linking.output_dir
    if not output_root.is_absolute():
        output_root = app_root / output_root
    return Path(os.path.abspath(output_root))


def find_weak_runtime_layout(
    override: Optional[Path], config: NativeLinkConfig, from_path: Path
) -> Optional[WeakRuntimeLayout]:
    """
    Weak runtime prebuild layout, if it can be located.

    Lookup order: --prebuild-root, weak_runtime.prebuild_root, then the
    weak runtime package among the app's dependencies.
    """
    library_name = config.weak_runtime.library_name
    root = override or config.weak_runtime.prebuild_root
    if root is None:
        root = find_default_prebuild_root(Path(from_path), library_name)
    if root is None:
        return None
    return WeakRuntimeLayout(root=Path(root).absolute(), library_name=library_name)


def require_weak_runtime_layout(
    override: Optional[Path], config: NativeLinkConfig, from_path: Path
) -> WeakRuntimeLayout:
    """
    Raises:
        ConfigurationError: If the weak runtime prebuilds cannot be located
    """
    layout = find_weak_runtime_layout(override, config, from_path)
    if layout is None:
        name = config.weak_runtime.library_name
        raise ConfigurationError(
            f"Could not locate the {name} prebuilds",
            instructions=(
                f"Install the {name} package, pass --prebuild-root, "
                "or set weak_runtime.prebuild_root in nativelink.yaml"
            ),
            command=f"npm install {name}",
        )
    return layout
