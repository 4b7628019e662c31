"""Tests for CpuAcctDeltaMonitor."""

from unittest.mock import MagicMock, patch

import pytest

from proc_metrics.cgroups.discoverer import ProcCgroupDiscoverer
from proc_metrics.cgroups.pid import PidDiscoverer
from proc_metrics.monitoring.base import SnapshotHolder
from proc_metrics.monitoring.cpuacct_monitor import (
    CPU_TIME_DELTA_METRIC,
    CPU_TIME_ELAPSED_METRIC,
    CpuAcctDeltaMonitor,
)
from proc_metrics.monitoring.emitter import CollectingEmitter


class FixedPid(PidDiscoverer):
    def __init__(self, pid: int) -> None:
        self.pid = pid

    def get_pid(self) -> int:
        return self.pid


class TestCpuAcctDeltaMonitor:
    """Tests for cgroup cpu time delta reporting."""

    @pytest.fixture
    def group_dir(self, fake_proc):
        return fake_proc.build()

    @pytest.fixture
    def monitor(self, fake_proc, group_dir):
        monitor = CpuAcctDeltaMonitor(
            dimensions={"service": ["api"]},
            pid_discoverer=FixedPid(fake_proc.pid),
            cgroup_discoverer=ProcCgroupDiscoverer(fake_proc.root),
        )
        monitor.start()
        return monitor

    def test_first_poll_emits_nothing(self, fake_proc, group_dir, monitor):
        """Test that the first snapshot is only stored."""
        fake_proc.write_usage_all(group_dir, [(0, 100, 10), (1, 200, 20)])
        emitter = CollectingEmitter()

        assert monitor.monitor(emitter) is True
        assert emitter.events == []

    def test_second_poll_emits_deltas(self, fake_proc, group_dir, monitor):
        """Test per-cpu user and system deltas plus elapsed time."""
        emitter = CollectingEmitter()
        fake_proc.write_usage_all(group_dir, [(0, 100, 10), (1, 200, 20)])
        monitor.monitor(emitter)
        fake_proc.write_usage_all(group_dir, [(0, 150, 12), (1, 260, 29)])

        assert monitor.monitor(emitter) is True

        deltas = {
            (e.dimensions["cpuName"], e.dimensions["cpuTime"]): e.value
            for e in emitter.events_named(CPU_TIME_DELTA_METRIC)
        }
        assert deltas == {("0", "usr"): 50, ("0", "sys"): 2, ("1", "usr"): 60, ("1", "sys"): 9}
        (elapsed,) = emitter.events_named(CPU_TIME_ELAPSED_METRIC)
        assert elapsed.value >= 0
        assert all(e.dimensions["service"] == ("api",) for e in emitter.events)

    def test_128_cpus_identical_reads(self, fake_proc, group_dir, monitor):
        """Test 2 * 128 zero deltas plus one elapsed event for identical reads."""
        rows = [(i, 1000 + i, 500 + i) for i in range(128)]
        emitter = CollectingEmitter()
        fake_proc.write_usage_all(group_dir, rows)
        monitor.monitor(emitter)

        monitor.monitor(emitter)

        assert len(emitter.events) == 2 * 128 + 1
        assert all(e.value == 0 for e in emitter.events_named(CPU_TIME_DELTA_METRIC))

    def test_cpu_count_change_skips_per_cpu_series(self, fake_proc, group_dir, monitor):
        """Test that a cpu count change only drops the per-cpu deltas."""
        emitter = CollectingEmitter()
        fake_proc.write_usage_all(group_dir, [(0, 100, 10), (1, 200, 20)])
        monitor.monitor(emitter)
        fake_proc.write_usage_all(group_dir, [(0, 100, 10), (1, 200, 20), (2, 1, 1)])

        assert monitor.monitor(emitter) is True

        assert emitter.events_named(CPU_TIME_DELTA_METRIC) == []
        assert len(emitter.events_named(CPU_TIME_ELAPSED_METRIC)) == 1

    def test_missing_cgroup_continues(self):
        """Test that an absent cgroup directory skips the cycle but keeps polling."""
        discoverer = MagicMock()
        discoverer.discover.return_value = None
        monitor = CpuAcctDeltaMonitor(pid_discoverer=FixedPid(1), cgroup_discoverer=discoverer)
        monitor.start()
        emitter = CollectingEmitter()

        assert monitor.monitor(emitter) is True
        assert monitor.monitor(emitter) is True
        assert emitter.events == []

    def test_stopped_monitor_signals_stop(self, monitor):
        """Test that a stopped monitor does not poll."""
        monitor.stop()
        assert monitor.monitor(CollectingEmitter()) is False

    def test_lost_race_skips_cycle(self, fake_proc, group_dir, monitor):
        """Test that a poll pre-empted by a concurrent poll emits nothing."""
        emitter = CollectingEmitter()
        fake_proc.write_usage_all(group_dir, [(0, 100, 10)])
        monitor.monitor(emitter)
        fake_proc.write_usage_all(group_dir, [(0, 150, 12)])

        slot = monitor._prior_snapshot
        real_get = slot.get

        def get_then_concurrent_store():
            prior = real_get()
            # Another poller swaps its snapshot in before this one can
            assert slot.compare_and_set(prior, SnapshotHolder(prior.payload, prior.timestamp_ns))
            return prior

        with patch.object(slot, "get", side_effect=get_then_concurrent_store):
            assert monitor.monitor(emitter) is True

        assert emitter.events == []
