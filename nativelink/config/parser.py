"""YAML configuration parser for nativelink.

This module provides parsing and validation for nativelink.yaml configuration files.
The file is optional: every field has a default, and CLI flags override it.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from nativelink.core.exceptions import ConfigFileError
from nativelink.cross.targets import (
    ALL_TARGETS,
    CONFIGURATIONS,
    DEFAULT_ANDROID_API_LEVEL,
)
from nativelink.linking.naming import NAMING_CHOICES

CONFIG_FILENAME = "nativelink.yaml"
DEFAULT_OUTPUT_DIR = ".nativelink/auto-linked"


@dataclass
class WeakRuntimeConfig:
    """Where the weak runtime prebuilds live."""

    prebuild_root: Optional[Path] = None  # Default: located among dependencies
    library_name: str = "weak-node-api"


@dataclass
class BuildSettings:
    """Cargo build settings."""

    configuration: str = "release"  # 'debug', 'release'
    ndk_version: Optional[str] = None  # Required for Android targets
    android_api_level: int = DEFAULT_ANDROID_API_LEVEL
    targets: List[str] = field(default_factory=list)  # Empty: --target/--android/--apple required
    max_workers: Optional[int] = None


@dataclass
class LinkingSettings:
    """Autolinking settings."""

    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    package_name: str = "strip"  # 'strip', 'keep', 'omit'
    path_suffix: str = "strip"  # 'strip', 'keep', 'omit'
    prune: bool = True
    max_workers: Optional[int] = None


@dataclass
class NativeLinkConfig:
    """Complete nativelink configuration."""

    version: int = 1
    weak_runtime: WeakRuntimeConfig = field(default_factory=WeakRuntimeConfig)
    build: BuildSettings = field(default_factory=BuildSettings)
    linking: LinkingSettings = field(default_factory=LinkingSettings)
    source: Optional[Path] = None  # File the values came from, if any


def parse_config(config_path: Path) -> NativeLinkConfig:
    """
    Parse nativelink.yaml configuration file.

    Relative paths in the file resolve against its directory.

    Args:
        config_path: Path to nativelink.yaml

    Returns:
        Parsed and validated configuration

    Raises:
        ConfigFileError: If configuration is invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigFileError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigFileError(f"Invalid YAML syntax in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigFileError(f"Expected a mapping at the top of {config_path}")

    config = _parse_and_validate(data, config_path.parent.absolute())
    config.source = config_path
    return config


def load_config(app_root: Path, config_path: Optional[Path] = None) -> NativeLinkConfig:
    """
    Load the configuration for an application.

    Args:
        app_root: Application package root
        config_path: Explicit file (must exist); default is app_root/nativelink.yaml

    Returns:
        Parsed configuration, or defaults when there is no file

    Raises:
        ConfigFileError: If the file is invalid or an explicit file is missing
    """
    if config_path is not None:
        return parse_config(Path(config_path))

    default_path = Path(app_root) / CONFIG_FILENAME
    if default_path.is_file():
        return parse_config(default_path)

    return NativeLinkConfig()


def _parse_and_validate(data: dict, base_dir: Path) -> NativeLinkConfig:
    """Parse and validate configuration data."""
    version = data.get("version", 1)
    if version != 1:
        raise ConfigFileError(f"Unsupported version: {version} (expected 1)")

    unknown = set(data) - {"version", "weak_runtime", "build", "linking"}
    if unknown:
        raise ConfigFileError(f"Unknown configuration sections: {sorted(unknown)}")

    return NativeLinkConfig(
        version=version,
        weak_runtime=_parse_weak_runtime(_section(data, "weak_runtime"), base_dir),
        build=_parse_build(_section(data, "build")),
        linking=_parse_linking(_section(data, "linking"), base_dir),
    )


def _section(data: dict, name: str) -> Dict[str, Any]:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigFileError(f"{name} must be a mapping")
    return section


def _resolve_path(value: Any, base_dir: Path, name: str) -> Path:
    if not isinstance(value, str) or not value:
        raise ConfigFileError(f"{name} must be a non-empty path")
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path


def _parse_workers(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigFileError(f"{name} must be a positive integer, got {value!r}")
    return value


def _parse_choice(value: Any, choices, name: str) -> str:
    if value not in choices:
        raise ConfigFileError(f"Invalid {name}: {value} (expected one of {list(choices)})")
    return value


def _parse_weak_runtime(data: dict, base_dir: Path) -> WeakRuntimeConfig:
    """Parse weak runtime configuration."""
    prebuild_root = data.get("prebuild_root")
    library_name = data.get("library_name", "weak-node-api")
    if not isinstance(library_name, str) or not library_name:
        raise ConfigFileError("weak_runtime.library_name must be a non-empty string")

    return WeakRuntimeConfig(
        prebuild_root=(
            _resolve_path(prebuild_root, base_dir, "weak_runtime.prebuild_root")
            if prebuild_root is not None
            else None
        ),
        library_name=library_name,
    )


def _parse_build(data: dict) -> BuildSettings:
    """Parse build configuration."""
    configuration = _parse_choice(
        data.get("configuration", "release"), CONFIGURATIONS, "build.configuration"
    )

    ndk_version = data.get("ndk_version")
    if ndk_version is not None:
        # YAML reads an unquoted 27.1 as a float
        ndk_version = str(ndk_version)

    api_level = data.get("android_api_level", DEFAULT_ANDROID_API_LEVEL)
    if isinstance(api_level, bool) or not isinstance(api_level, int) or api_level < 1:
        raise ConfigFileError(
            f"build.android_api_level must be a positive integer, got {api_level!r}"
        )

    targets = data.get("targets") or []
    if not isinstance(targets, list):
        raise ConfigFileError("build.targets must be a list")
    for triple in targets:
        if triple not in ALL_TARGETS:
            raise ConfigFileError(
                f"Unsupported target in build.targets: {triple} "
                f"(expected one of {list(ALL_TARGETS)})"
            )

    return BuildSettings(
        configuration=configuration,
        ndk_version=ndk_version,
        android_api_level=api_level,
        targets=list(targets),
        max_workers=_parse_workers(data.get("max_workers"), "build.max_workers"),
    )


def _parse_linking(data: dict, base_dir: Path) -> LinkingSettings:
    """Parse linking configuration."""
    prune = data.get("prune", True)
    if not isinstance(prune, bool):
        raise ConfigFileError(f"linking.prune must be true or false, got {prune!r}")

    return LinkingSettings(
        output_dir=_resolve_path(
            data.get("output_dir", DEFAULT_OUTPUT_DIR), base_dir, "linking.output_dir"
        ),
        package_name=_parse_choice(
            data.get("package_name", "strip"), NAMING_CHOICES, "linking.package_name"
        ),
        path_suffix=_parse_choice(
            data.get("path_suffix", "strip"), NAMING_CHOICES, "linking.path_suffix"
        ),
        prune=prune,
        max_workers=_parse_workers(data.get("max_workers"), "linking.max_workers"),
    )
