"""Build monitor instances from configuration."""

from __future__ import annotations

from proc_metrics.cgroups.discoverer import ProcCgroupDiscoverer
from proc_metrics.cgroups.pid import InterningPidDiscoverer
from proc_metrics.core.schemas import MonitorName, MonitorSchedulerConfig
from proc_metrics.monitoring.base import Monitor
from proc_metrics.monitoring.cpuacct_monitor import CpuAcctDeltaMonitor
from proc_metrics.monitoring.diskstats_monitor import ProcDiskStatsDeltaMonitor
from proc_metrics.monitoring.runtime_monitor import (
    ProcessCpuMonitor,
    create_compound_runtime_monitor,
)
from proc_metrics.monitoring.sys_monitor import SysMonitor


def build_monitor(name: MonitorName, config: MonitorSchedulerConfig) -> Monitor:
    """Create the monitor registered under ``name``.

    Raises:
        ValueError: If ``name`` is not a known monitor
    """
    feed = config.feed
    dimensions = config.dimensions
    if name == MonitorName.CPUACCT:
        return CpuAcctDeltaMonitor(
            feed,
            dimensions,
            pid_discoverer=InterningPidDiscoverer(),
            cgroup_discoverer=ProcCgroupDiscoverer(config.proc_root),
        )
    if name == MonitorName.DISKSTATS:
        return ProcDiskStatsDeltaMonitor(feed, dimensions, config.diskstats_path)
    if name == MonitorName.RUNTIME:
        return create_compound_runtime_monitor(dimensions, feed)
    if name == MonitorName.PROCESS_CPU:
        return ProcessCpuMonitor(feed, dimensions)
    if name == MonitorName.SYS:
        return SysMonitor(feed, dimensions, dirs=config.dirs)
    raise ValueError(f"Unknown monitor: {name}")


def build_monitors(config: MonitorSchedulerConfig) -> list[Monitor]:
    """Create one monitor per configured name, in configuration order."""
    return [build_monitor(name, config) for name in config.monitors]
