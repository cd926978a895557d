"""
Cross-compilation support for nativelink.

This package holds the target catalog, the weak runtime artifact locator,
the toolchain environment resolver and the cargo build driver.
"""

from nativelink.cross.targets import (
    ANDROID,
    APPLE,
    PLATFORMS,
    ALL_TARGETS,
    ANDROID_TARGETS,
    APPLE_TARGETS,
    TargetDescriptor,
    AndroidBuildConfig,
    AppleBuildConfig,
    build_config_for,
    get_target,
)
from nativelink.cross.prebuilds import WeakRuntimeLayout, find_default_prebuild_root
from nativelink.cross.resolver import ResolvedTarget, TargetResolver
from nativelink.cross.cargo import BuildOutcome, build, build_targets

__all__ = [
    "ANDROID",
    "APPLE",
    "PLATFORMS",
    "ALL_TARGETS",
    "ANDROID_TARGETS",
    "APPLE_TARGETS",
    "TargetDescriptor",
    "AndroidBuildConfig",
    "AppleBuildConfig",
    "build_config_for",
    "get_target",
    "WeakRuntimeLayout",
    "find_default_prebuild_root",
    "ResolvedTarget",
    "TargetResolver",
    "BuildOutcome",
    "build",
    "build_targets",
]
