"""
Build command.

Cross-compiles a Rust crate for the requested Android and Apple targets,
linking every target against the weak runtime prebuilds. Targets build
concurrently; one failing target does not stop the others.
"""

import logging
from pathlib import Path
from typing import Dict, List

from nativelink.cli.utils import (
    load_app_config,
    pretty_path,
    print_error,
    require_weak_runtime_layout,
    safe_print,
)
from nativelink.core.exceptions import BuildError
from nativelink.core.packages import find_package_root
from nativelink.cross.cargo import build_targets, ensure_cargo, ensure_installed_targets
from nativelink.cross.prebuilds import (
    create_android_libs_directory,
    determine_android_libs_filename,
)
from nativelink.cross.resolver import TargetResolver
from nativelink.cross.targets import (
    ANDROID,
    APPLE,
    BuildConfig,
    TargetDescriptor,
    build_config_for,
    default_targets,
    get_target,
)

logger = logging.getLogger(__name__)


def select_targets(args, configured: List[str]) -> List[TargetDescriptor]:
    """
    Targets from --target/--android/--apple, else from the configuration.

    Duplicates are dropped, first occurrence wins.
    """
    selected: List[TargetDescriptor] = [get_target(t) for t in args.targets or []]
    if args.android:
        selected.extend(default_targets(ANDROID))
    if args.apple:
        selected.extend(default_targets(APPLE))
    if not selected:
        selected = [get_target(t) for t in configured]

    unique: Dict[str, TargetDescriptor] = {}
    for target in selected:
        unique.setdefault(target.triple, target)
    return list(unique.values())


def run(args) -> int:
    """
    Run the build command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 if any target failed)
    """
    crate_path = Path(args.crate_path).resolve()
    if not (crate_path / "Cargo.toml").is_file():
        print_error(f"No Cargo.toml found in {crate_path}")
        return 1

    config = load_app_config(args, find_package_root(crate_path))
    settings = config.build

    targets = select_targets(args, settings.targets)
    if not targets:
        print_error(
            "No targets specified",
            "Pass --target, --android or --apple, or set build.targets in nativelink.yaml",
        )
        return 1

    configuration = args.configuration or settings.configuration
    ndk_version = args.ndk_version or settings.ndk_version
    api_level = args.android_api_level or settings.android_api_level

    # Fail before spawning anything if a configuration is incomplete
    configs: Dict[str, BuildConfig] = {
        t.triple: build_config_for(t, configuration, ndk_version, api_level)
        for t in targets
    }

    layout = require_weak_runtime_layout(args.prebuild_root, config, crate_path)
    ensure_cargo()
    ensure_installed_targets(targets)

    resolver = TargetResolver(layout)
    outcomes = build_targets(
        targets,
        lambda target: configs[target.triple],
        resolver,
        crate_path,
        max_workers=args.max_workers or settings.max_workers,
    )

    android_libraries = {}
    failed = 0
    for outcome in outcomes:
        triple = outcome.target.triple
        if outcome.ok:
            safe_print(f"✓ Built {triple} -> {pretty_path(outcome.library_path)}")
            if outcome.target.platform == ANDROID:
                android_libraries[triple] = outcome.library_path
            continue

        failed += 1
        print_error(f"Failed to build {triple}", str(outcome.error))
        if isinstance(outcome.error, BuildError) and outcome.error.output:
            print(outcome.error.output)

    if args.output and android_libraries:
        filename = determine_android_libs_filename(android_libraries.values())
        output_path = create_android_libs_directory(
            Path(args.output).resolve() / filename, android_libraries
        )
        safe_print(f"✓ Assembled {pretty_path(output_path)}")

    return 1 if failed else 0
