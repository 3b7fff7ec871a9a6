"""Unit tests for the in-memory metrics collector."""

import threading

import pytest

from infrastructure.metrics import InMemoryMetricsCollector


@pytest.mark.unit
class TestInMemoryMetricsCollector:
    """Tests for InMemoryMetricsCollector."""

    def test_counters_accumulate(self, metrics):
        """Counters add up per name."""
        metrics.record_counter("sync.operations.enqueued")
        metrics.record_counter("sync.operations.enqueued", 2)

        assert metrics.get_counter("sync.operations.enqueued") == 3

    def test_tags_identify_series(self, metrics):
        """Different tags are separate series, tag order does not matter."""
        metrics.record_counter("sync.operations.failed", operation_type="CREATE")
        metrics.record_counter("sync.operations.failed", operation_type="DELETE")
        metrics.record_counter("x", a=1, b=2)

        assert metrics.get_counter("sync.operations.failed", operation_type="CREATE") == 1
        assert metrics.get_counter("sync.operations.failed") == 0
        assert metrics.get_counter("x", b=2, a=1) == 1

    def test_unknown_series(self, metrics):
        """Unrecorded series read as empty."""
        assert metrics.get_counter("missing") == 0
        assert metrics.get_gauge("missing") is None
        assert metrics.get_timer("missing") is None

    def test_timers_track_distribution(self, metrics):
        """Timers keep count, total, min and max."""
        for duration in (120.0, 80.0, 200.0):
            metrics.record_timer("sync.operation.duration", duration)

        assert metrics.get_timer("sync.operation.duration") == {
            "count": 3,
            "total_ms": 400.0,
            "min_ms": 80.0,
            "max_ms": 200.0,
        }

    def test_gauges_keep_last_value(self, metrics):
        """Gauges are overwritten."""
        metrics.record_gauge("sync.worker.running", 1)
        metrics.record_gauge("sync.worker.running", 0)

        assert metrics.get_gauge("sync.worker.running") == 0

    def test_snapshot_renders_tags(self, metrics):
        """Snapshots render tagged series names."""
        metrics.record_counter("sync.operations.completed", operation_type="UPDATE")
        metrics.record_gauge("sync.health.overall", 0.5)

        snapshot = metrics.snapshot()

        assert snapshot["counters"] == {
            "sync.operations.completed{operation_type=UPDATE}": 1
        }
        assert snapshot["gauges"] == {"sync.health.overall": 0.5}
        assert snapshot["timers"] == {}

    def test_reset(self, metrics):
        """reset drops every series."""
        metrics.record_counter("a")
        metrics.record_timer("b", 1.0)
        metrics.record_gauge("c", 1.0)

        metrics.reset()

        assert metrics.snapshot() == {"counters": {}, "timers": {}, "gauges": {}}

    def test_thread_safe_counters(self):
        """Concurrent increments are not lost."""
        collector = InMemoryMetricsCollector()

        def _work():
            for _ in range(1000):
                collector.record_counter("hits")

        threads = [threading.Thread(target=_work) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert collector.get_counter("hits") == 4000
