"""
Cross-compilation target catalog.

Static tables describing every supported Rust cross-compilation target: its
platform family, its Android ABI directory, or its ordered list of Apple
xcframework slices (universal slices first). The tables are read-only
mappings built once at import time.

This module also holds the tagged build configuration: Android builds need an
NDK version and API level, Apple builds must not carry them.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Union

from nativelink.core.exceptions import ConfigurationError

ANDROID = "android"
APPLE = "apple"
PLATFORMS: Tuple[str, ...] = (ANDROID, APPLE)

CONFIGURATIONS: Tuple[str, ...] = ("debug", "release")

DEFAULT_ANDROID_API_LEVEL = 24


@dataclass(frozen=True)
class TargetDescriptor:
    """
    One cross-compilation target.

    Attributes:
        triple: Rust target triple (e.g., 'aarch64-linux-android')
        platform: 'android' or 'apple'
        android_abi: Android ABI directory name (Android only)
        apple_slices: Candidate xcframework slices in priority order (Apple only)
        simulator: True for Apple simulator targets
        tier: Rust platform support tier (3 needs nightly and build-std)
    """

    triple: str
    platform: str
    android_abi: Optional[str] = None
    apple_slices: Tuple[str, ...] = ()
    simulator: bool = False
    tier: int = 2

    @property
    def universal_slices(self) -> Tuple[str, ...]:
        """Candidate slices covering more than one architecture."""
        return tuple(s for s in self.apple_slices if is_universal_slice(s))


def _android(triple: str, abi: str) -> TargetDescriptor:
    return TargetDescriptor(triple=triple, platform=ANDROID, android_abi=abi)


def _apple(triple: str, *slices: str, simulator: bool = False, tier: int = 2):
    return TargetDescriptor(
        triple=triple,
        platform=APPLE,
        apple_slices=tuple(slices),
        simulator=simulator,
        tier=tier,
    )


ANDROID_TARGETS: Mapping[str, TargetDescriptor] = MappingProxyType(
    {
        "aarch64-linux-android": _android("aarch64-linux-android", "arm64-v8a"),
        "armv7-linux-androideabi": _android("armv7-linux-androideabi", "armeabi-v7a"),
        "i686-linux-android": _android("i686-linux-android", "x86"),
        "x86_64-linux-android": _android("x86_64-linux-android", "x86_64"),
    }
)

APPLE_TARGETS: Mapping[str, TargetDescriptor] = MappingProxyType(
    {
        "aarch64-apple-darwin": _apple(
            "aarch64-apple-darwin", "macos-arm64_x86_64", "macos-arm64"
        ),
        "x86_64-apple-darwin": _apple(
            "x86_64-apple-darwin", "macos-arm64_x86_64", "macos-x86_64"
        ),
        "aarch64-apple-ios": _apple("aarch64-apple-ios", "ios-arm64"),
        "aarch64-apple-ios-sim": _apple(
            "aarch64-apple-ios-sim",
            "ios-arm64_x86_64-simulator",
            "ios-arm64-simulator",
            simulator=True,
        ),
        "x86_64-apple-ios": _apple(
            "x86_64-apple-ios",
            "ios-arm64_x86_64-simulator",
            "ios-x86_64-simulator",
            simulator=True,
        ),
        "aarch64-apple-visionos": _apple(
            "aarch64-apple-visionos", "xros-arm64", tier=3
        ),
        "aarch64-apple-visionos-sim": _apple(
            "aarch64-apple-visionos-sim",
            "xros-arm64_x86_64-simulator",
            "xros-arm64-simulator",
            simulator=True,
            tier=3,
        ),
        # No x86_64 visionOS simulator target exists in rustc
        "aarch64-apple-tvos": _apple("aarch64-apple-tvos", "tvos-arm64", tier=3),
        "aarch64-apple-tvos-sim": _apple(
            "aarch64-apple-tvos-sim",
            "tvos-arm64_x86_64-simulator",
            "tvos-arm64-simulator",
            simulator=True,
            tier=3,
        ),
        "x86_64-apple-tvos": _apple(
            "x86_64-apple-tvos",
            "tvos-arm64_x86_64-simulator",
            "tvos-x86_64-simulator",
            simulator=True,
            tier=3,
        ),
    }
)

ALL_TARGETS: Mapping[str, TargetDescriptor] = MappingProxyType(
    {**ANDROID_TARGETS, **APPLE_TARGETS}
)


def get_target(triple: str) -> TargetDescriptor:
    """
    Look up a target by triple.

    Raises:
        ConfigurationError: If the triple is not in the catalog
    """
    try:
        return ALL_TARGETS[triple]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported target: {triple}",
            instructions=f"Use one of: {', '.join(ALL_TARGETS)}",
        ) from None


def default_targets(platform: str) -> Tuple[TargetDescriptor, ...]:
    """Targets built when only a platform is requested (third tier excluded)."""
    table = ANDROID_TARGETS if platform == ANDROID else APPLE_TARGETS
    return tuple(t for t in table.values() if t.tier < 3)


def is_android_target(triple: str) -> bool:
    return triple in ANDROID_TARGETS


def is_apple_target(triple: str) -> bool:
    return triple in APPLE_TARGETS


def is_third_tier_target(triple: str) -> bool:
    target = ALL_TARGETS.get(triple)
    return target is not None and target.tier >= 3


def is_universal_slice(slice_name: str) -> bool:
    """
    Check whether an xcframework slice bundles several architectures.

    Example:
        >>> is_universal_slice("ios-arm64_x86_64-simulator")
        True
        >>> is_universal_slice("ios-arm64")
        False
    """
    parts = slice_name.split("-")
    return len(parts) > 1 and "_" in parts[1].replace("x86_64", "x86-64")


# ============================================================================
# Android Toolchain Naming
# ============================================================================


def get_target_android_arch(triple: str) -> str:
    """
    Compiler architecture prefix for an Android triple.

    The 32-bit ARM triple starts with 'armv7' but the NDK clang wrappers are
    named 'armv7a-...', so that one architecture is mapped explicitly.

    Example:
        >>> get_target_android_arch("armv7-linux-androideabi")
        'armv7a'
        >>> get_target_android_arch("aarch64-linux-android")
        'aarch64'
    """
    first = triple.split("-")[0]
    if first == "armv7":
        return "armv7a"
    return first


def get_target_android_platform(
    triple: str, api_level: int = DEFAULT_ANDROID_API_LEVEL
) -> str:
    """
    NDK platform component for an Android triple.

    Example:
        >>> get_target_android_platform("armv7-linux-androideabi")
        'androideabi24'
        >>> get_target_android_platform("x86_64-linux-android", 31)
        'android31'
    """
    if get_target_android_arch(triple) == "armv7a":
        return f"androideabi{api_level}"
    return f"android{api_level}"


# ============================================================================
# Build Configuration
# ============================================================================


def _check_configuration(configuration: str) -> None:
    if configuration not in CONFIGURATIONS:
        raise ValueError(
            f"Invalid configuration: {configuration} (expected one of {list(CONFIGURATIONS)})"
        )


@dataclass(frozen=True)
class AndroidBuildConfig:
    """Build settings for an Android target."""

    configuration: str
    ndk_version: str
    android_api_level: int = DEFAULT_ANDROID_API_LEVEL

    def __post_init__(self):
        _check_configuration(self.configuration)
        if not self.ndk_version:
            raise ValueError("ndk_version is required for Android builds")


@dataclass(frozen=True)
class AppleBuildConfig:
    """Build settings for an Apple target."""

    configuration: str

    def __post_init__(self):
        _check_configuration(self.configuration)


BuildConfig = Union[AndroidBuildConfig, AppleBuildConfig]


def build_config_for(
    target: TargetDescriptor,
    configuration: str,
    ndk_version: Optional[str] = None,
    android_api_level: int = DEFAULT_ANDROID_API_LEVEL,
) -> BuildConfig:
    """
    Pick the build configuration variant matching a target's platform.

    Raises:
        ConfigurationError: If an Android target is requested without an NDK version
    """
    if target.platform == ANDROID:
        if not ndk_version:
            raise ConfigurationError(
                f"An NDK version is required to build {target.triple}",
                instructions="Pass --ndk-version or set build.ndk_version in nativelink.yaml",
            )
        return AndroidBuildConfig(
            configuration=configuration,
            ndk_version=ndk_version,
            android_api_level=android_api_level,
        )
    return AppleBuildConfig(configuration=configuration)
