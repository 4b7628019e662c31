"""proc-metrics - periodic process, cgroup and host metrics collection."""

from __future__ import annotations

from proc_metrics.core.schemas import MonitorName, MonitorSchedulerConfig
from proc_metrics.monitoring.scheduler import MonitorScheduler

__version__ = "0.1.0"

__all__ = [
    "MonitorName",
    "MonitorScheduler",
    "MonitorSchedulerConfig",
    "__version__",
]
