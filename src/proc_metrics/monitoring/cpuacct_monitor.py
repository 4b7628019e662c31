"""Per-cpu cgroup cpu time deltas.

Each poll snapshots ``cpuacct.usage_all`` for the monitored process's cgroup
and emits how many nanoseconds of user and system time the group consumed on
each cpu since the previous poll.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime

from proc_metrics.cgroups.cpuacct import CpuAcct, CpuAcctMetric
from proc_metrics.cgroups.discoverer import CgroupDiscoverer, ProcCgroupDiscoverer
from proc_metrics.cgroups.pid import InterningPidDiscoverer, PidDiscoverer
from proc_metrics.core.constants import DEFAULT_METRICS_FEED
from proc_metrics.monitoring.base import FeedDefiningMonitor, SnapshotHolder, SnapshotSlot
from proc_metrics.monitoring.emitter import Emitter

logger = logging.getLogger(__name__)

CPU_TIME_DELTA_METRIC = "cgroup/cpu_time_delta_ns"
CPU_TIME_ELAPSED_METRIC = "cgroup/cpu_time_delta_ns_elapsed"


class CpuAcctDeltaMonitor(FeedDefiningMonitor):
    """Emits cpu time deltas from the cgroup ``cpuacct`` controller.

    Safe to poll concurrently: overlapping polls race on a snapshot slot and
    only the winner reports.

    Args:
        feed: Feed name for emitted events
        dimensions: Extra dimensions for every event
        pid_discoverer: Source of the monitored pid
        cgroup_discoverer: Resolves the cpuacct cgroup directory
    """

    def __init__(
        self,
        feed: str = DEFAULT_METRICS_FEED,
        dimensions: Mapping[str, Sequence[str]] | None = None,
        pid_discoverer: PidDiscoverer | None = None,
        cgroup_discoverer: CgroupDiscoverer | None = None,
    ) -> None:
        super().__init__(feed, dimensions)
        self._pid_discoverer = pid_discoverer or InterningPidDiscoverer()
        self._cgroup_discoverer = cgroup_discoverer or ProcCgroupDiscoverer()
        self._prior_snapshot: SnapshotSlot[CpuAcctMetric] = SnapshotSlot()

    def do_monitor(self, emitter: Emitter) -> bool:
        prior = self._prior_snapshot.get()
        snapshot = CpuAcct(self._cgroup_discoverer, self._pid_discoverer).snapshot()
        nano_time = time.monotonic_ns()
        now = datetime.now(UTC)
        if snapshot is None:
            return True

        if not self._prior_snapshot.compare_and_set(
            prior, SnapshotHolder(snapshot, nano_time, now)
        ):
            logger.debug("Pre-empted by another monitor run")
            return True
        if prior is None:
            logger.info("Detected first run, storing result for next run")
            return True

        elapsed_ns = nano_time - prior.timestamp_ns
        if snapshot.cpu_count != prior.payload.cpu_count:
            logger.warning(
                f"Prior CPU count [{prior.payload.cpu_count}] does not match current "
                f"cpu count [{snapshot.cpu_count}]. Skipping metrics emission"
            )
        else:
            delta = snapshot.cumulative_since(prior.payload)
            for cpu in range(delta.cpu_count):
                for cpu_time, value in (("usr", delta.usr_time(cpu)), ("sys", delta.sys_time(cpu))):
                    builder = (
                        self.builder()
                        .set_dimension("cpuName", str(cpu))
                        .set_dimension("cpuTime", cpu_time)
                    )
                    emitter.emit(builder.build(CPU_TIME_DELTA_METRIC, value, now))

        emitter.emit(self.builder().build(CPU_TIME_ELAPSED_METRIC, elapsed_ns, now))
        return True
