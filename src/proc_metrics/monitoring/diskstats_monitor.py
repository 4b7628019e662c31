"""Block device totals and deltas from /proc/diskstats."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path

from proc_metrics.core.constants import DEFAULT_DISKSTATS_PATH, DEFAULT_METRICS_FEED
from proc_metrics.monitoring.base import FeedDefiningMonitor, SnapshotHolder, SnapshotSlot
from proc_metrics.monitoring.diskstats import DiskMetric, ProcDiskStats
from proc_metrics.monitoring.emitter import Emitter
from proc_metrics.monitoring.events import MetricEventBuilder

logger = logging.getLogger(__name__)

# (metric suffix, DiskMetric attribute) for every cumulative counter
COUNTER_METRICS: tuple[tuple[str, str], ...] = (
    ("read/complete", "r_complete"),
    ("read/merge", "r_merge"),
    ("read/sector", "r_sector"),
    ("read/timeMs", "r_time_ms"),
    ("write/complete", "w_complete"),
    ("write/merge", "w_merge"),
    ("write/sector", "w_sector"),
    ("write/timeMs", "w_time_ms"),
    ("timeMs", "active_time_ms"),
    ("weightedTimeMs", "weighted_active_time_ms"),
)

QUEUE_METRIC = "sys/disk/queue"
METRIC_TIME_DELTA_METRIC = "sys/disk/metricTimeNs/delta"


class ProcDiskStatsDeltaMonitor(FeedDefiningMonitor):
    """Emits per-device disk counters, as running totals and as deltas.

    Totals (and the in-flight queue gauge) are emitted on every reported poll,
    deltas from the second reported poll onward and only for devices that
    were present in the previous snapshot.

    Args:
        feed: Feed name for emitted events
        dimensions: Extra dimensions for every event
        diskstats_path: Location of the disk statistics table
    """

    def __init__(
        self,
        feed: str = DEFAULT_METRICS_FEED,
        dimensions: Mapping[str, Sequence[str]] | None = None,
        diskstats_path: Path | str = DEFAULT_DISKSTATS_PATH,
    ) -> None:
        super().__init__(feed, dimensions)
        self._diskstats_path = Path(diskstats_path)
        self._holder: SnapshotSlot[ProcDiskStats] = SnapshotSlot()

    def do_monitor(self, emitter: Emitter) -> bool:
        prior = self._holder.get()
        lines = self._diskstats_path.read_text(encoding="utf-8").splitlines()
        nano_time = time.monotonic_ns()
        now = datetime.now(UTC)  # As close to read time as possible
        disk_stats = ProcDiskStats.parse(lines)

        if not self._holder.compare_and_set(prior, SnapshotHolder(disk_stats, nano_time, now)):
            logger.warning("Lost race for reporting metrics, skipping reporting")
            return True

        for metric in disk_stats.disk_metrics:
            builder = self._device_builder(metric.device)
            self._emit_counters(emitter, builder, metric, "total", now)
            # The queue gauge has no delta counterpart
            emitter.emit(builder.build(QUEUE_METRIC, metric.active_count, now))

        if prior is None:
            logger.debug("Skipping delta for first report")
            return True

        prior_metrics = prior.payload.by_device()
        elapsed_ns = nano_time - prior.timestamp_ns
        for metric in disk_stats.disk_metrics:
            prior_metric = prior_metrics.get(metric.device)
            if prior_metric is None:
                logger.warning(f"Skipping delta for new device [{metric.device}]")
                continue
            delta = metric.delta_since(prior_metric)
            builder = self._device_builder(delta.device)
            self._emit_counters(emitter, builder, delta, "delta", now)
            emitter.emit(builder.build(METRIC_TIME_DELTA_METRIC, elapsed_ns, now))

        missing = prior_metrics.keys() - disk_stats.by_device().keys()
        if missing:
            logger.warning(f"Devices disappeared since last report: {sorted(missing)}")
        return True

    def _device_builder(self, device: str) -> MetricEventBuilder:
        return self.builder().set_dimension("device", device)

    @staticmethod
    def _emit_counters(
        emitter: Emitter,
        builder: MetricEventBuilder,
        metric: DiskMetric,
        kind: str,
        timestamp: datetime,
    ) -> None:
        for suffix, attribute in COUNTER_METRICS:
            emitter.emit(
                builder.build(f"sys/disk/{suffix}/{kind}", getattr(metric, attribute), timestamp)
            )
