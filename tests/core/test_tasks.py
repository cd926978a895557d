"""
Unit tests for bounded concurrent fan-out.
"""

import threading
import time

import pytest

from nativelink.core.tasks import MAX_WORKERS_CEILING, default_max_workers, run_bounded


@pytest.mark.unit
class TestRunBounded:
    """Tests for run_bounded."""

    def test_results_in_input_order(self):
        """Test that outcomes keep the order of the inputs."""

        def slow_square(n):
            time.sleep(0.01 * (5 - n))
            return n * n

        outcomes = run_bounded(slow_square, [1, 2, 3, 4], max_workers=4)

        assert [o.item for o in outcomes] == [1, 2, 3, 4]
        assert [o.result for o in outcomes] == [1, 4, 9, 16]

    def test_failure_does_not_cancel_siblings(self):
        """Test that one failing item leaves the others intact."""

        def work(n):
            if n == 2:
                raise RuntimeError("boom")
            return n

        outcomes = run_bounded(work, [1, 2, 3], max_workers=2)

        assert [o.ok for o in outcomes] == [True, False, True]
        assert isinstance(outcomes[1].error, RuntimeError)
        assert outcomes[2].result == 3

    def test_respects_worker_limit(self):
        """Test that no more than max_workers run at once."""
        lock = threading.Lock()
        running = 0
        peak = 0

        def work(_):
            nonlocal running, peak
            with lock:
                running += 1
                peak = max(peak, running)
            time.sleep(0.02)
            with lock:
                running -= 1

        run_bounded(work, range(8), max_workers=2)

        assert peak <= 2

    def test_empty_input(self):
        """Test that no items means no outcomes."""
        assert run_bounded(lambda x: x, []) == []

    def test_invalid_worker_count(self):
        """Test that a non-positive limit is rejected."""
        with pytest.raises(ValueError, match="positive"):
            run_bounded(lambda x: x, [1], max_workers=0)

    def test_default_max_workers_is_capped(self):
        """Test the default pool size bounds."""
        assert 1 <= default_max_workers() <= MAX_WORKERS_CEILING
