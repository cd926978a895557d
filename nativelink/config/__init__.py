"""Configuration module for nativelink.

This module provides YAML configuration parsing and validation for nativelink.yaml.
"""

from nativelink.config.parser import (
    CONFIG_FILENAME,
    WeakRuntimeConfig,
    BuildSettings,
    LinkingSettings,
    NativeLinkConfig,
    parse_config,
    load_config,
)

__all__ = [
    "CONFIG_FILENAME",
    "WeakRuntimeConfig",
    "BuildSettings",
    "LinkingSettings",
    "NativeLinkConfig",
    "parse_config",
    "load_config",
]
