"""
Centralized exception hierarchy for nativelink.

This module defines all custom exceptions used across the codebase
so that the CLI can report them consistently at the command boundary.
"""

from pathlib import Path
from typing import List, Optional, Sequence


# ============================================================================
# Base Exceptions
# ============================================================================


class NativeLinkError(Exception):
    """Base exception for all nativelink errors."""

    pass


# ============================================================================
# Toolchain Resolution Exceptions
# ============================================================================


class ConfigurationError(NativeLinkError):
    """
    A required toolchain component is missing or ambiguous.

    These are fixable conditions: when the fix is a known action the error
    carries human instructions and/or the exact command to run.
    """

    def __init__(
        self,
        message: str,
        instructions: Optional[str] = None,
        command: Optional[str] = None,
    ):
        self.message = message
        self.instructions = instructions
        self.command = command
        super().__init__(self._format())

    def _format(self) -> str:
        lines = [self.message]
        if self.instructions:
            lines.append(f"  Fix: {self.instructions}")
        if self.command:
            lines.append(f"  Run: {self.command}")
        return "\n".join(lines)


class ConfigFileError(NativeLinkError):
    """Configuration file parsing or validation error."""

    pass


# ============================================================================
# Process and Build Exceptions
# ============================================================================


class SpawnFailure(NativeLinkError):
    """An external process exited non-zero or could not be started."""

    def __init__(self, command: Sequence[str], returncode: int, output: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"Command failed with exit code {returncode}: {' '.join(self.command)}"
        )


class BuildError(NativeLinkError):
    """The external build invocation exited non-zero."""

    def __init__(self, message: str, command: Sequence[str], returncode: int, output: str):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        super().__init__(message)


class AmbiguousOutputError(NativeLinkError):
    """A build produced zero or several libraries where one was expected."""

    def __init__(self, output_dir: Path, candidates: List[str]):
        self.output_dir = output_dir
        self.candidates = list(candidates)
        if candidates:
            found = ", ".join(candidates)
        else:
            found = "none"
        super().__init__(
            f"Expected a single dynamic library in {output_dir} (found: {found})"
        )


# ============================================================================
# Discovery and Linking Exceptions
# ============================================================================


class DiscoveryError(NativeLinkError):
    """Dependency tree traversal hit unreadable filesystem state."""

    pass


class LinkFailure(NativeLinkError):
    """
    A single module failed to materialize.

    The linking engine stores these on the module's result instead of
    raising them, so one failure never aborts the rest of the batch.
    """

    def __init__(
        self, message: str, module_path: Path, cause: Optional[BaseException] = None
    ):
        self.module_path = module_path
        self.cause = cause
        super().__init__(message)

    @property
    def output(self) -> str:
        """Captured process output of the underlying failure, if any."""
        if isinstance(self.cause, SpawnFailure):
            return self.cause.output
        return ""
