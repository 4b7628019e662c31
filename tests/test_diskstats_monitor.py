"""Tests for ProcDiskStatsDeltaMonitor."""

from unittest.mock import patch

import pytest

from proc_metrics.monitoring.base import SnapshotHolder
from proc_metrics.monitoring.diskstats_monitor import (
    COUNTER_METRICS,
    METRIC_TIME_DELTA_METRIC,
    QUEUE_METRIC,
    ProcDiskStatsDeltaMonitor,
)
from proc_metrics.monitoring.emitter import CollectingEmitter


def diskstats_line(device: str, base: int, in_flight: int = 0) -> str:
    counters = [base + i for i in range(8)] + [in_flight] + [base + 9, base + 10]
    return f"   8       0 {device} " + " ".join(str(c) for c in counters)


class TestProcDiskStatsDeltaMonitor:
    """Tests for disk totals and deltas."""

    @pytest.fixture
    def diskstats(self, tmp_path):
        path = tmp_path / "diskstats"
        path.write_text(diskstats_line("sda", 100, in_flight=3) + "\n")
        return path

    @pytest.fixture
    def monitor(self, diskstats):
        monitor = ProcDiskStatsDeltaMonitor(diskstats_path=diskstats)
        monitor.start()
        return monitor

    def test_first_poll_emits_totals_only(self, monitor):
        """Test that totals and queue are reported before any delta exists."""
        emitter = CollectingEmitter()

        assert monitor.monitor(emitter) is True

        counts = emitter.metric_counts()
        assert all(name.endswith("/total") or name == QUEUE_METRIC for name in counts)
        assert len(emitter.events) == len(COUNTER_METRICS) + 1
        (queue,) = emitter.events_named(QUEUE_METRIC)
        assert queue.value == 3
        assert queue.dimensions["device"] == "sda"
        assert emitter.events_named("sys/disk/read/complete/total")[0].value == 100

    def test_second_poll_emits_deltas(self, diskstats, monitor):
        """Test counter deltas and the elapsed time between polls."""
        emitter = CollectingEmitter()
        monitor.monitor(emitter)
        diskstats.write_text(diskstats_line("sda", 150, in_flight=1) + "\n")
        emitter.reset()

        monitor.monitor(emitter)

        for suffix, _ in COUNTER_METRICS:
            (event,) = emitter.events_named(f"sys/disk/{suffix}/delta")
            assert event.value == 50
        assert emitter.events_named("sys/disk/timeMs/delta")[0].value == 50
        (elapsed,) = emitter.events_named(METRIC_TIME_DELTA_METRIC)
        assert elapsed.value >= 0
        # Totals keep being reported alongside deltas
        assert emitter.events_named("sys/disk/read/complete/total")[0].value == 150

    def test_new_device_has_no_delta(self, diskstats, monitor):
        """Test that a device absent from the previous snapshot gets totals only."""
        emitter = CollectingEmitter()
        monitor.monitor(emitter)
        diskstats.write_text(
            diskstats_line("sda", 150) + "\n" + diskstats_line("sdb", 10) + "\n"
        )
        emitter.reset()

        monitor.monitor(emitter)

        delta_devices = {
            e.dimensions["device"] for e in emitter.events if e.metric.endswith("/delta")
        }
        total_devices = {
            e.dimensions["device"] for e in emitter.events if e.metric.endswith("/total")
        }
        assert delta_devices == {"sda"}
        assert total_devices == {"sda", "sdb"}

    def test_lost_race_skips_cycle(self, diskstats, monitor):
        """Test that a poll pre-empted by a concurrent poll emits neither totals nor deltas."""
        emitter = CollectingEmitter()
        monitor.monitor(emitter)
        diskstats.write_text(diskstats_line("sda", 150) + "\n")
        emitter.reset()

        slot = monitor._holder
        real_get = slot.get

        def get_then_concurrent_store():
            prior = real_get()
            assert slot.compare_and_set(prior, SnapshotHolder(prior.payload, prior.timestamp_ns))
            return prior

        with patch.object(slot, "get", side_effect=get_then_concurrent_store):
            assert monitor.monitor(emitter) is True

        assert emitter.events == []

    def test_malformed_table_raises(self, diskstats, monitor):
        """Test that a format change fails the poll loudly."""
        diskstats.write_text("8 0 sda 1 2 3\n")
        with pytest.raises(ValueError):
            monitor.monitor(CollectingEmitter())

    def test_missing_file_raises(self, tmp_path):
        """Test that an unreadable table propagates the I/O error."""
        monitor = ProcDiskStatsDeltaMonitor(diskstats_path=tmp_path / "missing")
        monitor.start()
        with pytest.raises(FileNotFoundError):
            monitor.monitor(CollectingEmitter())
