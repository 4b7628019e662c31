"""Interpreter and process metrics for the running Python process.

- RuntimeMonitor: gc activity, process memory and process cpu
- ThreadsMonitor: live/daemon thread counts and thread churn
- ProcessCpuMonitor: process cpu only

Process counters come from the shared psutil handle; gc and thread figures
come from the interpreter itself.
"""

from __future__ import annotations

import gc
import logging
import threading
from collections.abc import Mapping, Sequence

import psutil

from proc_metrics.core.constants import DEFAULT_METRICS_FEED
from proc_metrics.monitoring.base import CompoundMonitor, FeedDefiningMonitor
from proc_metrics.monitoring.emitter import Emitter
from proc_metrics.monitoring.events import MetricEventBuilder
from proc_metrics.monitoring.keyed_diff import KeyedDiff
from proc_metrics.utils.process_handle import get_process_handle

logger = logging.getLogger(__name__)


def emit_process_cpu(emitter: Emitter, builder: MetricEventBuilder, diff: KeyedDiff) -> None:
    """Emit process cpu time deltas (milliseconds) and the cpu percentage.

    psutil failures are logged and nothing is emitted for this poll.
    """
    handle = get_process_handle()
    try:
        cpu_times = handle.cpu_times()
        cpu_percent = handle.cpu_percent(interval=None)
    except psutil.Error as e:
        logger.error(f"Failed to get process cpu: {e}")
        return

    user_ms = int(cpu_times.user * 1000)
    sys_ms = int(cpu_times.system * 1000)
    proc_diff = diff.to(
        "proc/cpu",
        {
            "python/cpu/total": user_ms + sys_ms,
            "python/cpu/sys": sys_ms,
            "python/cpu/user": user_ms,
        },
    )
    if proc_diff is not None:
        for metric, value in proc_diff.items():
            emitter.emit(builder.build(metric, value))
    emitter.emit(builder.build("python/cpu/percent", cpu_percent))


class RuntimeMonitor(FeedDefiningMonitor):
    """Garbage collector, memory and cpu metrics of this process."""

    def __init__(
        self,
        feed: str = DEFAULT_METRICS_FEED,
        dimensions: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        super().__init__(feed, dimensions)
        self._key_diff = KeyedDiff()

    def do_monitor(self, emitter: Emitter) -> bool:
        self._emit_gc(emitter)
        self._emit_memory(emitter)
        emit_process_cpu(emitter, self.builder(), self._key_diff)
        return True

    def _emit_gc(self, emitter: Emitter) -> None:
        # Collections and collected objects are cumulative; pending counts are gauges
        for generation, stats in enumerate(gc.get_stats()):
            builder = self.builder().set_dimension("gcGen", str(generation))
            diff = self._key_diff.to(
                f"gc/{generation}",
                {
                    "python/gc/count": stats.get("collections", 0),
                    "python/gc/collected": stats.get("collected", 0),
                    "python/gc/uncollectable": stats.get("uncollectable", 0),
                },
            )
            if diff is not None:
                for metric, value in diff.items():
                    emitter.emit(builder.build(metric, value))

        for generation, count in enumerate(gc.get_count()):
            builder = self.builder().set_dimension("gcGen", str(generation))
            emitter.emit(builder.build("python/gc/pending", count))

    def _emit_memory(self, emitter: Emitter) -> None:
        try:
            memory_info = get_process_handle().memory_info()
        except psutil.Error as e:
            logger.error(f"Failed to get process memory: {e}")
            return
        builder = self.builder()
        emitter.emit(builder.build("python/mem/rss", memory_info.rss))
        emitter.emit(builder.build("python/mem/vms", memory_info.vms))


class ThreadsMonitor(FeedDefiningMonitor):
    """Thread counts, plus threads started and finished since the last poll."""

    def __init__(
        self,
        feed: str = DEFAULT_METRICS_FEED,
        dimensions: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        super().__init__(feed, dimensions)
        self._last_idents: frozenset[int] = frozenset()

    def do_monitor(self, emitter: Emitter) -> bool:
        threads = threading.enumerate()
        idents = frozenset(t.ident for t in threads if t.ident is not None)
        live = len(threads)
        started = len(idents - self._last_idents)
        finished = len(self._last_idents - idents)

        builder = self.builder()
        emitter.emit(builder.build("python/threads/daemon", sum(1 for t in threads if t.daemon)))
        emitter.emit(builder.build("python/threads/live", live))
        emitter.emit(builder.build("python/threads/started", started))
        emitter.emit(builder.build("python/threads/finished", finished))

        self._last_idents = idents
        return True


class ProcessCpuMonitor(FeedDefiningMonitor):
    """Process cpu time deltas and cpu percentage."""

    def __init__(
        self,
        feed: str = DEFAULT_METRICS_FEED,
        dimensions: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        super().__init__(feed, dimensions)
        self._diff = KeyedDiff()

    def do_monitor(self, emitter: Emitter) -> bool:
        emit_process_cpu(emitter, self.builder(), self._diff)
        return True


def create_compound_runtime_monitor(
    dimensions: Mapping[str, Sequence[str]] | None = None,
    feed: str = DEFAULT_METRICS_FEED,
) -> CompoundMonitor:
    """Runtime and thread monitors polled together as one unit."""
    return CompoundMonitor(RuntimeMonitor(feed, dimensions), ThreadsMonitor(feed, dimensions))
