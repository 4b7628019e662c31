"""Monitoring module - monitors, emitters and the monitor scheduler."""

from __future__ import annotations

from proc_metrics.monitoring.base import (
    AbstractMonitor,
    CompoundMonitor,
    FeedDefiningMonitor,
    Monitor,
    SnapshotHolder,
    SnapshotSlot,
)
from proc_metrics.monitoring.cpuacct_monitor import CpuAcctDeltaMonitor
from proc_metrics.monitoring.diskstats import DiskMetric, ProcDiskStats, parse_disk_metric
from proc_metrics.monitoring.diskstats_monitor import ProcDiskStatsDeltaMonitor
from proc_metrics.monitoring.emitter import (
    CollectingEmitter,
    Emitter,
    FanOutEmitter,
    JsonLinesEmitter,
    LoggingEmitter,
)
from proc_metrics.monitoring.events import MetricEvent, MetricEventBuilder
from proc_metrics.monitoring.factory import build_monitor, build_monitors
from proc_metrics.monitoring.keyed_diff import KeyedDiff
from proc_metrics.monitoring.runtime_monitor import (
    ProcessCpuMonitor,
    RuntimeMonitor,
    ThreadsMonitor,
    create_compound_runtime_monitor,
)
from proc_metrics.monitoring.scheduler import MonitorScheduler, ScheduledTask, Signal
from proc_metrics.monitoring.sys_monitor import SysMonitor

__all__ = [
    "AbstractMonitor",
    "build_monitor",
    "build_monitors",
    "CollectingEmitter",
    "CompoundMonitor",
    "CpuAcctDeltaMonitor",
    "create_compound_runtime_monitor",
    "DiskMetric",
    "Emitter",
    "FanOutEmitter",
    "FeedDefiningMonitor",
    "JsonLinesEmitter",
    "KeyedDiff",
    "LoggingEmitter",
    "MetricEvent",
    "MetricEventBuilder",
    "Monitor",
    "MonitorScheduler",
    "parse_disk_metric",
    "ProcDiskStats",
    "ProcDiskStatsDeltaMonitor",
    "ProcessCpuMonitor",
    "RuntimeMonitor",
    "ScheduledTask",
    "Signal",
    "SnapshotHolder",
    "SnapshotSlot",
    "SysMonitor",
    "ThreadsMonitor",
]
