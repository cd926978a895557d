"""
Cargo build invocation.

Issues one `cargo build` per target with the resolver's environment merged
over the ambient one, then locates the single dynamic library the crate's
cdylib produced. Several targets build concurrently on a bounded pool; one
target failing never cancels the others.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Sequence

from nativelink.core.exceptions import (
    AmbiguousOutputError,
    BuildError,
    ConfigurationError,
    SpawnFailure,
)
from nativelink.core.process import run_process
from nativelink.core.tasks import run_bounded
from nativelink.cross.resolver import TargetResolver
from nativelink.cross.targets import BuildConfig, TargetDescriptor, is_third_tier_target

logger = logging.getLogger(__name__)

DYNAMIC_LIBRARY_SUFFIXES = (".so", ".dylib")
RUST_INSTALL_URL = (
    "https://doc.rust-lang.org/cargo/getting-started/installation.html"
)


@dataclass
class BuildOutcome:
    """Result of building one target: a library path or the error that stopped it."""

    target: TargetDescriptor
    library_path: Optional[Path] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def ensure_cargo() -> str:
    """
    Check that cargo is available.

    Returns:
        The `cargo --version` line

    Raises:
        ConfigurationError: If cargo cannot be run
    """
    try:
        version = run_process(["cargo", "--version"]).strip()
    except SpawnFailure as e:
        raise ConfigurationError(
            "You need a Rust toolchain to build native modules",
            instructions=f"Install Rust and cargo: {RUST_INSTALL_URL}",
        ) from e

    logger.info(f"Using {version}")
    return version


def ensure_installed_targets(targets: Iterable[TargetDescriptor]) -> None:
    """
    Check that rustup has the standard library for every requested target.

    Third tier targets are skipped: they rebuild the standard library.

    Raises:
        ConfigurationError: With the rustup command adding missing targets
    """
    try:
        output = run_process(["rustup", "target", "list", "--installed"])
    except SpawnFailure as e:
        raise ConfigurationError(
            "Could not list installed Rust targets (is rustup installed?)",
            instructions=f"Install Rust through rustup: {RUST_INSTALL_URL}",
        ) from e

    installed = {line.strip() for line in output.splitlines() if line.strip()}
    missing = [
        t.triple
        for t in targets
        if not is_third_tier_target(t.triple) and t.triple not in installed
    ]
    if missing:
        raise ConfigurationError(
            f"Missing Rust targets: {', '.join(missing)}",
            command=f"rustup target add {' '.join(missing)}",
        )


def get_cargo_build_args(target: TargetDescriptor, configuration: str) -> List[str]:
    """
    Arguments for `cargo` building one target.

    Example:
        >>> get_cargo_build_args(get_target("aarch64-apple-visionos"), "release")
        ['+nightly', 'build', '--target', 'aarch64-apple-visionos', '--release',
         '-Z', 'build-std=std,panic_abort']
    """
    args = ["build", "--target", target.triple]
    if configuration.lower() == "release":
        args.append("--release")
    if is_third_tier_target(target.triple):
        # Third tier targets ship no prebuilt standard library
        args.insert(0, "+nightly")
        args.extend(["-Z", "build-std=std,panic_abort"])
    return args


def find_dynamic_library(output_dir: Path) -> Path:
    """
    The single dynamic library in a cargo output directory.

    Raises:
        AmbiguousOutputError: If there is not exactly one
    """
    if output_dir.is_dir():
        candidates = sorted(
            p.name
            for p in output_dir.iterdir()
            if p.is_file() and p.name.endswith(DYNAMIC_LIBRARY_SUFFIXES)
        )
    else:
        candidates = []

    if len(candidates) != 1:
        raise AmbiguousOutputError(output_dir, candidates)
    return output_dir / candidates[0]


def build(
    target: TargetDescriptor,
    config: BuildConfig,
    resolver: TargetResolver,
    crate_path: Path,
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    """
    Build a crate for one target.

    Args:
        target: Target to build
        config: Matching build configuration variant
        resolver: Resolver providing the toolchain environment
        crate_path: Directory containing Cargo.toml
        environ: Ambient environment (default: os.environ)

    Returns:
        Path to the produced dynamic library

    Raises:
        ConfigurationError: If the target cannot be resolved
        BuildError: If cargo exits non-zero
        AmbiguousOutputError: If the build did not produce exactly one library
    """
    resolved = resolver.resolve(target, config)
    env = dict(os.environ if environ is None else environ)
    env.update(resolved.environment)

    command = ["cargo", *get_cargo_build_args(target, config.configuration)]
    logger.info(f"Building {target.triple} ({config.configuration})")

    try:
        run_process(command, env=env, cwd=crate_path)
    except SpawnFailure as e:
        raise BuildError(
            f"cargo build failed for {target.triple} with exit code {e.returncode}",
            command=command,
            returncode=e.returncode,
            output=e.output,
        ) from e

    output_dir = crate_path / "target" / target.triple / config.configuration
    library_path = find_dynamic_library(output_dir)
    logger.debug(f"Built {library_path}")
    return library_path


def build_targets(
    targets: Sequence[TargetDescriptor],
    config_for: Callable[[TargetDescriptor], BuildConfig],
    resolver: TargetResolver,
    crate_path: Path,
    max_workers: Optional[int] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> List[BuildOutcome]:
    """
    Build several targets concurrently.

    Args:
        targets: Targets to build
        config_for: Build configuration for each target
        resolver: Shared resolver
        crate_path: Directory containing Cargo.toml
        max_workers: Concurrency limit
        environ: Ambient environment

    Returns:
        One BuildOutcome per target, in input order
    """

    def build_one(target: TargetDescriptor) -> Path:
        return build(target, config_for(target), resolver, crate_path, environ)

    outcomes = run_bounded(build_one, targets, max_workers=max_workers)
    return [
        BuildOutcome(target=o.item, library_path=o.result, error=o.error)
        for o in outcomes
    ]
