"""
External process execution for nativelink.

Commands run with their combined output buffered; callers decide whether to
surface it. A non-zero exit becomes a SpawnFailure carrying that output.
"""

import logging
import subprocess
from pathlib import Path
from typing import Mapping, Optional, Sequence

from nativelink.core.exceptions import SpawnFailure

logger = logging.getLogger(__name__)


def run_process(
    command: Sequence[str],
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> str:
    """
    Run a command and return its combined stdout/stderr.

    Args:
        command: Program and arguments
        env: Complete environment for the child (inherits ours if None)
        cwd: Working directory

    Returns:
        Captured output

    Raises:
        SpawnFailure: If the program is missing or exits non-zero
    """
    logger.debug(f"Running: {' '.join(command)}")

    try:
        result = subprocess.run(
            list(command),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
    except OSError as e:
        raise SpawnFailure(command, -1, str(e)) from e

    if result.returncode != 0:
        raise SpawnFailure(command, result.returncode, result.stdout or "")

    return result.stdout or ""
