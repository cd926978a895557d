"""
Unit tests for the cross-compilation target resolver.
"""

import os

import pytest

from nativelink.core.exceptions import ConfigurationError
from nativelink.cross.prebuilds import WeakRuntimeLayout
from nativelink.cross.resolver import (
    RUSTFLAGS_SEPARATOR,
    TargetResolver,
    cargo_linker_variable,
    encode_rustflags,
    get_llvm_toolchain_bin_path,
    get_target_environment_variables,
    list_installed_ndk_versions,
)
from nativelink.cross.targets import (
    ANDROID_TARGETS,
    AndroidBuildConfig,
    AppleBuildConfig,
    get_target,
)


@pytest.fixture
def resolver_env(android_sdk):
    sdk_root, _ = android_sdk
    return {"ANDROID_HOME": str(sdk_root), "PATH": "/usr/bin"}


@pytest.mark.unit
class TestHelpers:
    """Tests for encoding helpers."""

    def test_encode_rustflags(self):
        """Test the unit-separator encoding."""
        assert encode_rustflags(["-L", "/a b", "-l", "x"]) == "-L\x1f/a b\x1f-l\x1fx"

    def test_cargo_linker_variable(self):
        """Test variable naming."""
        assert cargo_linker_variable("aarch64-linux-android") == (
            "CARGO_TARGET_AARCH64_LINUX_ANDROID_LINKER"
        )

    def test_single_llvm_toolchain_required(self, tmp_path):
        """Test that several host toolchains are ambiguous."""
        prebuilt = tmp_path / "toolchains" / "llvm" / "prebuilt"
        (prebuilt / "linux-x86_64").mkdir(parents=True)
        (prebuilt / "darwin-x86_64").mkdir()

        with pytest.raises(ConfigurationError, match="single LLVM toolchain"):
            get_llvm_toolchain_bin_path(tmp_path)

    def test_installed_ndk_versions_sorted(self, tmp_path):
        """Test version ordering."""
        for version in ("27.1.12297006", "25.2.9519653", "26.0.10792818"):
            (tmp_path / "ndk" / version).mkdir(parents=True)

        assert list_installed_ndk_versions(tmp_path) == [
            "25.2.9519653",
            "26.0.10792818",
            "27.1.12297006",
        ]


@pytest.mark.unit
class TestAndroidResolution:
    """Tests for resolving Android targets."""

    def test_emits_all_four_linkers_for_one_target(self, android_sdk, weak_runtime_root, resolver_env):
        """Test that every Android linker is set even for a single target."""
        _, ndk_version = android_sdk
        resolver = TargetResolver(WeakRuntimeLayout(weak_runtime_root), resolver_env)

        resolved = resolver.resolve(
            get_target("aarch64-linux-android"), AndroidBuildConfig("release", ndk_version)
        )

        for triple in ANDROID_TARGETS:
            assert cargo_linker_variable(triple) in resolved.environment
        armv7_linker = resolved.environment[cargo_linker_variable("armv7-linux-androideabi")]
        assert os.path.basename(armv7_linker).startswith("armv7a-linux-androideabi24-clang")

    def test_compiler_and_tool_variables(self, android_sdk, weak_runtime_root, resolver_env):
        """Test TARGET_* variables, NDK path and PATH extension."""
        sdk_root, ndk_version = android_sdk
        resolver = TargetResolver(WeakRuntimeLayout(weak_runtime_root), resolver_env)

        env = resolver.resolve(
            get_target("x86_64-linux-android"), AndroidBuildConfig("debug", ndk_version, 31)
        ).environment

        assert os.path.basename(env["TARGET_CC"]).startswith("x86_64-linux-android31-clang")
        assert os.path.basename(env["TARGET_CXX"]).startswith("x86_64-linux-android31-clang++")
        assert os.path.basename(env["TARGET_AR"]).startswith("llvm-ar")
        assert os.path.basename(env["TARGET_RANLIB"]).startswith("llvm-ranlib")
        assert env["ANDROID_NDK"] == str(sdk_root / "ndk" / ndk_version)
        bin_path, rest = env["PATH"].split(os.pathsep, 1)
        assert bin_path.endswith("bin")
        assert rest == "/usr/bin"

    def test_rustflags_link_weak_runtime(self, android_sdk, weak_runtime_root, resolver_env):
        """Test the encoded search path and library flags."""
        _, ndk_version = android_sdk
        layout = WeakRuntimeLayout(weak_runtime_root)

        resolved = TargetResolver(layout, resolver_env).resolve(
            get_target("aarch64-linux-android"), AndroidBuildConfig("release", ndk_version)
        )

        flags = resolved.environment["CARGO_ENCODED_RUSTFLAGS"].split(RUSTFLAGS_SEPARATOR)
        assert flags == ["-L", str(layout.android_prebuild_path / "arm64-v8a"), "-l", "weak-node-api"]
        assert resolved.artifact_path == layout.android_prebuild_path / "arm64-v8a"

    def test_missing_sdk_root(self, weak_runtime_root):
        """Test the remediation for a missing ANDROID_HOME."""
        resolver = TargetResolver(WeakRuntimeLayout(weak_runtime_root), {"PATH": "/usr/bin"})

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve(
                get_target("aarch64-linux-android"), AndroidBuildConfig("release", "27.1.12297006")
            )

        assert "ANDROID_HOME" in exc_info.value.message
        assert exc_info.value.command.startswith("export ANDROID_HOME=")

    def test_sdk_root_fallback_variable(self, android_sdk, weak_runtime_root):
        """Test that ANDROID_SDK_ROOT is used when ANDROID_HOME is unset."""
        sdk_root, _ = android_sdk
        resolver = TargetResolver(
            WeakRuntimeLayout(weak_runtime_root), {"ANDROID_SDK_ROOT": str(sdk_root)}
        )

        assert resolver.get_sdk_root() == sdk_root

    def test_missing_ndk_version(self, android_sdk, weak_runtime_root, resolver_env):
        """Test that a missing NDK suggests the sdkmanager command."""
        resolver = TargetResolver(WeakRuntimeLayout(weak_runtime_root), resolver_env)

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve(
                get_target("aarch64-linux-android"), AndroidBuildConfig("release", "21.4.7075529")
            )

        assert exc_info.value.command == 'sdkmanager --install "ndk;21.4.7075529"'
        assert "27.1.12297006" in exc_info.value.instructions

    def test_unsupported_api_level(self, android_sdk, weak_runtime_root, resolver_env):
        """Test that missing compiler wrappers are reported."""
        _, ndk_version = android_sdk
        resolver = TargetResolver(WeakRuntimeLayout(weak_runtime_root), resolver_env)

        with pytest.raises(ConfigurationError, match="to exist"):
            resolver.resolve(
                get_target("aarch64-linux-android"), AndroidBuildConfig("release", ndk_version, 19)
            )

    def test_config_variant_mismatch(self, weak_runtime_root, resolver_env):
        """Test that an Apple configuration cannot build an Android target."""
        resolver = TargetResolver(WeakRuntimeLayout(weak_runtime_root), resolver_env)

        with pytest.raises(TypeError):
            resolver.resolve(get_target("aarch64-linux-android"), AppleBuildConfig("release"))


@pytest.mark.unit
class TestAppleResolution:
    """Tests for resolving Apple targets."""

    def test_framework_flags(self, weak_runtime_root):
        """Test framework search path and library flags."""
        layout = WeakRuntimeLayout(weak_runtime_root)

        env = get_target_environment_variables(
            get_target("aarch64-apple-ios"), AppleBuildConfig("release"), layout, {}
        )

        flags = env["CARGO_ENCODED_RUSTFLAGS"].split(RUSTFLAGS_SEPARATOR)
        assert flags == [
            "-L",
            f"framework={layout.apple_prebuild_path / 'ios-arm64'}",
            "-l",
            "framework=weak-node-api",
        ]

    def test_universal_macos_slice(self, weak_runtime_root):
        """Test that darwin targets pick the universal macOS slice."""
        resolved = TargetResolver(WeakRuntimeLayout(weak_runtime_root), {}).resolve(
            get_target("x86_64-apple-darwin"), AppleBuildConfig("release")
        )

        assert resolved.artifact_path.name == "macos-arm64_x86_64"

    def test_missing_slice_is_fatal(self, weak_runtime_root):
        """Test that resolution fails without a candidate slice."""
        resolver = TargetResolver(WeakRuntimeLayout(weak_runtime_root), {})

        with pytest.raises(ConfigurationError, match="No matching slice"):
            resolver.resolve(get_target("aarch64-apple-visionos"), AppleBuildConfig("release"))
