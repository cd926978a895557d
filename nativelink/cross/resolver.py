"""
Cross-compilation target resolver.

Turns a target from the catalog plus a build configuration into the weak
runtime artifact to link against and the full environment the Rust build
needs: NDK clang wrappers as linkers for Android, framework search paths for
Apple, and link flags encoded the way cargo reads them from the environment.

The result is a pure function of the target, the configuration, the process
environment and what exists on disk.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from packaging.version import InvalidVersion, Version

from nativelink.core.exceptions import ConfigurationError
from nativelink.core.filesystem import executable_suffix
from nativelink.cross.prebuilds import (
    WeakRuntimeLayout,
    get_android_library_path,
    get_apple_framework_slice_path,
)
from nativelink.cross.targets import (
    ANDROID,
    ANDROID_TARGETS,
    APPLE,
    AndroidBuildConfig,
    AppleBuildConfig,
    BuildConfig,
    TargetDescriptor,
    get_target_android_arch,
    get_target_android_platform,
)

logger = logging.getLogger(__name__)

# Cargo splits CARGO_ENCODED_RUSTFLAGS on the ASCII unit separator
RUSTFLAGS_SEPARATOR = "\x1f"

SDK_ROOT_VARIABLES = ("ANDROID_HOME", "ANDROID_SDK_ROOT")


@dataclass(frozen=True)
class ResolvedTarget:
    """
    Everything needed to build one target.

    Attributes:
        target: Target that was resolved
        artifact_path: Weak runtime directory (ABI dir or xcframework slice)
        environment: Variables to merge over the ambient environment
    """

    target: TargetDescriptor
    artifact_path: Path
    environment: Dict[str, str] = field(default_factory=dict)


def encode_rustflags(flags: Sequence[str]) -> str:
    """
    Encode rustc flags for CARGO_ENCODED_RUSTFLAGS.

    Example:
        >>> encode_rustflags(["-l", "weak-node-api"])
        '-l\\x1fweak-node-api'
    """
    return RUSTFLAGS_SEPARATOR.join(flags)


def cargo_linker_variable(triple: str) -> str:
    """
    Name of cargo's per-target linker variable.

    Example:
        >>> cargo_linker_variable("armv7-linux-androideabi")
        'CARGO_TARGET_ARMV7_LINUX_ANDROIDEABI_LINKER'
    """
    return f"CARGO_TARGET_{triple.upper().replace('-', '_')}_LINKER"


def get_llvm_toolchain_bin_path(ndk_path: Path) -> Path:
    """
    Locate the bin directory of the NDK's single prebuilt LLVM toolchain.

    Raises:
        ConfigurationError: If zero or several host toolchains are installed
    """
    prebuilt_path = ndk_path / "toolchains" / "llvm" / "prebuilt"
    if not prebuilt_path.is_dir():
        raise ConfigurationError(
            f"Expected an LLVM toolchain in {prebuilt_path}",
            instructions="Reinstall the NDK; its LLVM toolchain is missing",
        )

    candidates = sorted(p for p in prebuilt_path.iterdir() if p.is_dir())
    if not candidates:
        raise ConfigurationError(
            f"Expected an LLVM toolchain to be installed in {prebuilt_path}"
        )
    if len(candidates) > 1:
        raise ConfigurationError(
            f"Expected a single LLVM toolchain in {prebuilt_path}, found: "
            f"{', '.join(p.name for p in candidates)}",
            instructions="Remove the toolchains for hosts you do not build on",
        )
    return candidates[0] / "bin"


def list_installed_ndk_versions(sdk_root: Path) -> List[str]:
    """NDK versions installed under an SDK root, oldest first."""
    ndk_root = sdk_root / "ndk"
    if not ndk_root.is_dir():
        return []

    def sort_key(name: str):
        try:
            return (0, Version(name), name)
        except InvalidVersion:
            return (1, Version("0"), name)

    return sorted((p.name for p in ndk_root.iterdir() if p.is_dir()), key=sort_key)


def _join_and_check(directory: Path, name: str) -> Path:
    path = directory / name
    if not path.exists():
        raise ConfigurationError(
            f"Expected {path} to exist",
            instructions="Check that the NDK supports the requested API level",
        )
    return path


class TargetResolver:
    """
    Resolve targets against a weak runtime layout and an environment.

    Example:
        resolver = TargetResolver(WeakRuntimeLayout(Path("build/Release")))
        resolved = resolver.resolve(
            get_target("aarch64-apple-ios"), AppleBuildConfig("release")
        )
        env = {**os.environ, **resolved.environment}
    """

    def __init__(
        self, layout: WeakRuntimeLayout, environ: Optional[Mapping[str, str]] = None
    ):
        self.layout = layout
        self.environ = dict(os.environ if environ is None else environ)

    def resolve(self, target: TargetDescriptor, config: BuildConfig) -> ResolvedTarget:
        """
        Resolve a target's weak runtime artifact and build environment.

        Raises:
            TypeError: If the configuration variant does not match the platform
            ConfigurationError: If a toolchain component cannot be located
        """
        if target.platform == ANDROID:
            if not isinstance(config, AndroidBuildConfig):
                raise TypeError(
                    f"Android target {target.triple} needs an AndroidBuildConfig"
                )
            return self._resolve_android(target, config)

        if target.platform == APPLE:
            if not isinstance(config, AppleBuildConfig):
                raise TypeError(f"Apple target {target.triple} needs an AppleBuildConfig")
            return self._resolve_apple(target)

        raise TypeError(f"Unexpected platform for {target.triple}: {target.platform}")

    def get_sdk_root(self) -> Path:
        """
        Android SDK root from the environment.

        Raises:
            ConfigurationError: If no SDK root variable points at a directory
        """
        for variable in SDK_ROOT_VARIABLES:
            value = self.environ.get(variable)
            if value and Path(value).is_dir():
                return Path(value)
            if value:
                logger.debug(f"{variable}={value} does not exist")

        raise ConfigurationError(
            "Missing ANDROID_HOME environment variable",
            instructions="Set ANDROID_HOME to the Android SDK directory",
            command="export ANDROID_HOME=/path/to/Android/sdk",
        )

    def get_ndk_path(self, ndk_version: str) -> Path:
        """
        NDK directory for a version.

        Raises:
            ConfigurationError: With the sdkmanager command installing that version
        """
        sdk_root = self.get_sdk_root()
        ndk_path = sdk_root / "ndk" / ndk_version
        if not ndk_path.is_dir():
            installed = list_installed_ndk_versions(sdk_root)
            instructions = (
                f"Installed NDK versions: {', '.join(installed)}"
                if installed
                else "No NDK is installed"
            )
            raise ConfigurationError(
                f"Expected NDK at {ndk_path}",
                instructions=instructions,
                command=f'sdkmanager --install "ndk;{ndk_version}"',
            )
        return ndk_path

    def _resolve_android(
        self, target: TargetDescriptor, config: AndroidBuildConfig
    ) -> ResolvedTarget:
        ndk_path = self.get_ndk_path(config.ndk_version)
        bin_path = get_llvm_toolchain_bin_path(ndk_path)
        api_level = config.android_api_level
        cmd = executable_suffix(script=True)
        exe = executable_suffix()

        environment: Dict[str, str] = {}

        # Every Android linker, so multi-target cargo invocations work too
        for triple in ANDROID_TARGETS:
            arch = get_target_android_arch(triple)
            platform = get_target_android_platform(triple, api_level)
            linker = _join_and_check(bin_path, f"{arch}-linux-{platform}-clang{cmd}")
            environment[cargo_linker_variable(triple)] = str(linker)

        arch = get_target_android_arch(target.triple)
        platform = get_target_android_platform(target.triple, api_level)
        compiler_prefix = f"{arch}-linux-{platform}"
        environment["TARGET_CC"] = str(
            _join_and_check(bin_path, f"{compiler_prefix}-clang{cmd}")
        )
        environment["TARGET_CXX"] = str(
            _join_and_check(bin_path, f"{compiler_prefix}-clang++{cmd}")
        )
        environment["TARGET_AR"] = str(_join_and_check(bin_path, f"llvm-ar{exe}"))
        environment["TARGET_RANLIB"] = str(
            _join_and_check(bin_path, f"llvm-ranlib{exe}")
        )
        environment["ANDROID_NDK"] = str(ndk_path)

        ambient_path = self.environ.get("PATH")
        environment["PATH"] = (
            f"{bin_path}{os.pathsep}{ambient_path}" if ambient_path else str(bin_path)
        )

        library_path = get_android_library_path(self.layout, target)
        environment["CARGO_ENCODED_RUSTFLAGS"] = encode_rustflags(
            ["-L", str(library_path), "-l", self.layout.library_name]
        )

        logger.debug(f"Resolved {target.triple} against {library_path}")
        return ResolvedTarget(target, library_path, environment)

    def _resolve_apple(self, target: TargetDescriptor) -> ResolvedTarget:
        slice_path = get_apple_framework_slice_path(self.layout, target)
        environment = {
            "CARGO_ENCODED_RUSTFLAGS": encode_rustflags(
                [
                    "-L",
                    f"framework={slice_path}",
                    "-l",
                    f"framework={self.layout.library_name}",
                ]
            )
        }

        logger.debug(f"Resolved {target.triple} against {slice_path}")
        return ResolvedTarget(target, slice_path, environment)


def get_target_environment_variables(
    target: TargetDescriptor,
    config: BuildConfig,
    layout: WeakRuntimeLayout,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Shorthand for TargetResolver(layout, environ).resolve(...).environment."""
    return TargetResolver(layout, environ).resolve(target, config).environment
