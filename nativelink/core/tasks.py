"""
Bounded concurrent fan-out.

Linking and building work on independent modules/targets is spread over a
thread pool with an explicit worker limit. Every item gets its own outcome:
an exception in one task is captured there and never cancels the others.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

MAX_WORKERS_CEILING = 32


def default_max_workers() -> int:
    """Default pool size: one per core plus I/O headroom, capped at 32."""
    return min(MAX_WORKERS_CEILING, (os.cpu_count() or 1) + 4)


@dataclass
class TaskOutcome(Generic[T, R]):
    """Result of running one item through run_bounded."""

    item: T
    result: Optional[R] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_bounded(
    func: Callable[[T], R],
    items: Iterable[T],
    max_workers: Optional[int] = None,
) -> List[TaskOutcome]:
    """
    Apply func to every item with at most max_workers running at once.

    Args:
        func: Work function
        items: Inputs
        max_workers: Concurrency limit (default: default_max_workers())

    Returns:
        One TaskOutcome per item, in input order
    """
    items = list(items)
    if not items:
        return []

    if max_workers is None:
        max_workers = default_max_workers()
    if max_workers < 1:
        raise ValueError(f"max_workers must be positive, got {max_workers}")

    workers = min(max_workers, len(items))
    logger.debug(f"Running {len(items)} task(s) on {workers} worker(s)")

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(func, item) for item in items]

    outcomes = []
    for item, future in zip(items, futures):
        error = future.exception()
        if error is not None:
            if not isinstance(error, Exception):
                raise error
            outcomes.append(TaskOutcome(item=item, error=error))
        else:
            outcomes.append(TaskOutcome(item=item, result=future.result()))

    return outcomes
