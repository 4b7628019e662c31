"""Core module - configuration and schemas."""

from __future__ import annotations

from proc_metrics.core.config import load_config
from proc_metrics.core.constants import (
    CPUACCT_SUBSYSTEM,
    DEFAULT_DISKSTATS_PATH,
    DEFAULT_EMITTER_PERIOD_SECONDS,
    DEFAULT_METRICS_FEED,
    DEFAULT_PROC_ROOT,
)
from proc_metrics.core.schemas import MonitorName, MonitorSchedulerConfig

__all__ = [
    "CPUACCT_SUBSYSTEM",
    "DEFAULT_DISKSTATS_PATH",
    "DEFAULT_EMITTER_PERIOD_SECONDS",
    "DEFAULT_METRICS_FEED",
    "DEFAULT_PROC_ROOT",
    "load_config",
    "MonitorName",
    "MonitorSchedulerConfig",
]
