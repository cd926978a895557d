"""
Pytest configuration and shared fixtures for nativelink tests.

The fixtures build small npm-style package trees, native module layouts and
fake Android SDKs on disk under tmp_path.
"""

import json
import os
import plistlib
from pathlib import Path
from typing import Dict, Iterable, Optional

import pytest

from nativelink.cross.targets import ANDROID_TARGETS, get_target_android_arch, get_target_android_platform


def _write_manifest(package_path: Path, manifest: Dict) -> Path:
    package_path.mkdir(parents=True, exist_ok=True)
    (package_path / "package.json").write_text(json.dumps(manifest, indent=2))
    return package_path


@pytest.fixture
def make_package():
    """
    Factory creating a package directory with a package.json.

    Example:
        def test_x(tmp_path, make_package):
            app = make_package(tmp_path / "app", "app", dependencies=["dep"])
    """

    def factory(
        package_path: Path,
        name: Optional[str],
        dependencies: Iterable[str] = (),
        **extra,
    ) -> Path:
        manifest = dict(extra)
        if name is not None:
            manifest["name"] = name
        manifest["version"] = "1.0.0"
        deps = list(dependencies)
        if deps:
            manifest["dependencies"] = {dep: "*" for dep in deps}
        return _write_manifest(Path(package_path), manifest)

    return factory


@pytest.fixture
def make_android_module():
    """
    Factory creating an Android module directory: `<path>/<abi>/<library>`.

    Returns the module directory.
    """

    def factory(
        module_path: Path,
        abis: Iterable[str] = ("arm64-v8a",),
        library: str = "lib.so",
    ) -> Path:
        for abi in abis:
            abi_path = Path(module_path) / abi
            abi_path.mkdir(parents=True, exist_ok=True)
            (abi_path / library).write_bytes(b"\x7fELF" + abi.encode())
        return Path(module_path)

    return factory


def _write_plist(path: Path, data: Dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        plistlib.dump(data, f)


@pytest.fixture
def make_framework():
    """
    Factory creating a framework bundle.

    Shallow bundles hold the executable and Info.plist at the top; versioned
    bundles use Versions/A with the usual symlinks.
    """

    def factory(framework_path: Path, executable: str, versioned: bool = False) -> Path:
        framework_path = Path(framework_path)
        info = {
            "CFBundleExecutable": executable,
            "CFBundleName": executable,
            "CFBundleIdentifier": f"org.example.{executable}",
            "CFBundlePackageType": "FMWK",
        }
        if not versioned:
            framework_path.mkdir(parents=True, exist_ok=True)
            (framework_path / executable).write_bytes(b"\xcf\xfa\xed\xfe")
            _write_plist(framework_path / "Info.plist", info)
            return framework_path

        version_path = framework_path / "Versions" / "A"
        version_path.mkdir(parents=True)
        (version_path / executable).write_bytes(b"\xcf\xfa\xed\xfe")
        _write_plist(version_path / "Resources" / "Info.plist", info)
        os.symlink("A", framework_path / "Versions" / "Current")
        os.symlink(f"Versions/Current/{executable}", framework_path / executable)
        os.symlink("Versions/Current/Resources", framework_path / "Resources")
        return framework_path

    return factory


@pytest.fixture
def make_xcframework(make_framework):
    """
    Factory creating an xcframework with one framework per slice.

    Returns the xcframework directory.
    """

    def factory(
        xcframework_path: Path,
        executable: str = "addon",
        slices: Iterable[str] = ("ios-arm64", "ios-arm64_x86_64-simulator"),
        versioned_slices: Iterable[str] = (),
    ) -> Path:
        xcframework_path = Path(xcframework_path)
        versioned = set(versioned_slices)
        libraries = []
        for identifier in list(slices) + [s for s in versioned if s not in slices]:
            make_framework(
                xcframework_path / identifier / f"{executable}.framework",
                executable,
                versioned=identifier in versioned,
            )
            libraries.append(
                {
                    "LibraryIdentifier": identifier,
                    "LibraryPath": f"{executable}.framework",
                    "SupportedPlatform": identifier.split("-")[0],
                }
            )
        _write_plist(
            xcframework_path / "Info.plist",
            {
                "AvailableLibraries": libraries,
                "CFBundlePackageType": "XFWK",
                "XCFrameworkFormatVersion": "1.0",
            },
        )
        return xcframework_path

    return factory


@pytest.fixture
def app_with_dependencies(tmp_path, make_package, make_android_module):
    """
    App with two installed dependencies: 'with-module' ships an Android
    module at android/arm64-v8a/lib.so, 'without-module' ships none.
    """
    app = make_package(
        tmp_path / "app", "app", dependencies=["with-module", "without-module"]
    )
    with_module = make_package(app / "node_modules" / "with-module", "with-module")
    make_android_module(with_module / "android")
    without_module = make_package(app / "node_modules" / "without-module", "without-module")
    (without_module / "index.js").write_text("module.exports = {};\n")
    return app


@pytest.fixture
def android_sdk(tmp_path):
    """
    Fake Android SDK with NDK 27.1.12297006 and one host LLVM toolchain.

    Returns (sdk_root, ndk_version).
    """
    ndk_version = "27.1.12297006"
    sdk_root = tmp_path / "sdk"
    bin_path = (
        sdk_root / "ndk" / ndk_version / "toolchains" / "llvm" / "prebuilt" / "linux-x86_64" / "bin"
    )
    bin_path.mkdir(parents=True)

    suffix = ".cmd" if os.name == "nt" else ""
    exe = ".exe" if os.name == "nt" else ""
    for api_level in (24, 31):
        for triple in ANDROID_TARGETS:
            prefix = f"{get_target_android_arch(triple)}-linux-{get_target_android_platform(triple, api_level)}"
            (bin_path / f"{prefix}-clang{suffix}").touch()
            (bin_path / f"{prefix}-clang++{suffix}").touch()
    (bin_path / f"llvm-ar{exe}").touch()
    (bin_path / f"llvm-ranlib{exe}").touch()

    return sdk_root, ndk_version


@pytest.fixture
def weak_runtime_root(tmp_path, make_framework):
    """
    Weak runtime prebuilds: every Android ABI plus an xcframework with
    universal macOS, iOS device and universal iOS simulator slices.
    """
    root = tmp_path / "weak-node-api" / "build" / "Release"
    for target in ANDROID_TARGETS.values():
        abi_path = root / "weak-node-api.android.node" / target.android_abi
        abi_path.mkdir(parents=True)
        (abi_path / "libweak-node-api.so").write_bytes(b"\x7fELF")

    xcframework = root / "weak-node-api.xcframework"
    make_framework(
        xcframework / "macos-arm64_x86_64" / "weak-node-api.framework",
        "weak-node-api",
        versioned=True,
    )
    for identifier in ("ios-arm64", "ios-arm64_x86_64-simulator"):
        make_framework(xcframework / identifier / "weak-node-api.framework", "weak-node-api")
    return root
