"""
Core functionality for nativelink.

This package contains the foundational modules that other components depend on.
"""

from .exceptions import (
    NativeLinkError,
    ConfigurationError,
    ConfigFileError,
    SpawnFailure,
    BuildError,
    AmbiguousOutputError,
    DiscoveryError,
    LinkFailure,
)

from .locking import (
    LockManager,
    LockTimeout,
)

from .process import run_process

from .tasks import (
    TaskOutcome,
    run_bounded,
    default_max_workers,
)

__all__ = [
    "NativeLinkError",
    "ConfigurationError",
    "ConfigFileError",
    "SpawnFailure",
    "BuildError",
    "AmbiguousOutputError",
    "DiscoveryError",
    "LinkFailure",
    "LockManager",
    "LockTimeout",
    "run_process",
    "TaskOutcome",
    "run_bounded",
    "default_max_workers",
]
