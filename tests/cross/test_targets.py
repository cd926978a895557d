"""
Unit tests for the cross-compilation target catalog.
"""

import pytest

from nativelink.core.exceptions import ConfigurationError
from nativelink.cross.targets import (
    ALL_TARGETS,
    ANDROID,
    ANDROID_TARGETS,
    APPLE,
    APPLE_TARGETS,
    AndroidBuildConfig,
    AppleBuildConfig,
    build_config_for,
    default_targets,
    get_target,
    get_target_android_arch,
    get_target_android_platform,
    is_android_target,
    is_apple_target,
    is_third_tier_target,
    is_universal_slice,
)


@pytest.mark.unit
class TestCatalog:
    """Tests for the static target tables."""

    def test_android_abis(self):
        """Test the ABI directory of every Android target."""
        abis = {triple: t.android_abi for triple, t in ANDROID_TARGETS.items()}

        assert abis == {
            "aarch64-linux-android": "arm64-v8a",
            "armv7-linux-androideabi": "armeabi-v7a",
            "i686-linux-android": "x86",
            "x86_64-linux-android": "x86_64",
        }

    def test_tables_are_read_only(self):
        """Test that the catalog cannot be mutated."""
        with pytest.raises(TypeError):
            ALL_TARGETS["riscv64-linux-android"] = None

    def test_apple_slices_list_universal_first(self):
        """Test that universal slices precede single-architecture ones."""
        for target in APPLE_TARGETS.values():
            universal = [is_universal_slice(s) for s in target.apple_slices]
            assert universal == sorted(universal, reverse=True), target.triple

    def test_visionos_and_tvos_are_third_tier(self):
        """Test tier flags."""
        assert is_third_tier_target("aarch64-apple-visionos")
        assert is_third_tier_target("aarch64-apple-tvos-sim")
        assert not is_third_tier_target("aarch64-apple-ios")
        assert not is_third_tier_target("aarch64-linux-android")

    def test_default_targets_exclude_third_tier(self):
        """Test platform defaults."""
        apple = [t.triple for t in default_targets(APPLE)]

        assert "aarch64-apple-ios" in apple
        assert "aarch64-apple-visionos" not in apple
        assert len(default_targets(ANDROID)) == 4

    def test_platform_predicates(self):
        """Test is_android_target/is_apple_target."""
        assert is_android_target("i686-linux-android")
        assert not is_android_target("aarch64-apple-ios")
        assert is_apple_target("x86_64-apple-darwin")

    def test_unknown_target(self):
        """Test that unknown triples are configuration errors."""
        with pytest.raises(ConfigurationError, match="Unsupported target"):
            get_target("mips-unknown-linux")


@pytest.mark.unit
class TestAndroidNaming:
    """Tests for NDK compiler naming."""

    def test_armv7_uses_armv7a_prefix(self):
        """Test the 32-bit ARM compiler prefix."""
        assert "armv7-linux-androideabi".startswith("armv7")
        assert get_target_android_arch("armv7-linux-androideabi") == "armv7a"

    @pytest.mark.parametrize(
        "triple, expected",
        [
            ("aarch64-linux-android", "aarch64"),
            ("i686-linux-android", "i686"),
            ("x86_64-linux-android", "x86_64"),
        ],
    )
    def test_other_arches_use_triple_prefix(self, triple, expected):
        """Test that other architectures keep the triple's first component."""
        assert get_target_android_arch(triple) == expected

    def test_platform_strings(self):
        """Test that only 32-bit ARM uses the eabi platform string."""
        assert get_target_android_platform("armv7-linux-androideabi") == "androideabi24"
        for triple in ("aarch64-linux-android", "i686-linux-android", "x86_64-linux-android"):
            assert get_target_android_platform(triple) == "android24"
        assert get_target_android_platform("aarch64-linux-android", 31) == "android31"


@pytest.mark.unit
class TestBuildConfig:
    """Tests for the tagged build configuration."""

    def test_android_config_for_android_target(self):
        """Test picking the Android variant."""
        config = build_config_for(get_target("aarch64-linux-android"), "release", "27.1.12297006", 31)

        assert config == AndroidBuildConfig("release", "27.1.12297006", 31)

    def test_apple_config_has_no_android_fields(self):
        """Test picking the Apple variant."""
        config = build_config_for(get_target("aarch64-apple-ios"), "debug", "27.1.12297006")

        assert config == AppleBuildConfig("debug")
        assert not hasattr(config, "ndk_version")

    def test_android_without_ndk(self):
        """Test that Android builds require an NDK version."""
        with pytest.raises(ConfigurationError, match="NDK version"):
            build_config_for(get_target("x86_64-linux-android"), "release")

    def test_invalid_configuration(self):
        """Test configuration validation."""
        with pytest.raises(ValueError, match="Invalid configuration"):
            AppleBuildConfig("profile")
