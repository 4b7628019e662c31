"""Pydantic schemas for proc-metrics.

This module defines the configuration contract for the monitor scheduler:
which monitors to run, how often, and which dimensions to attach to their
metrics.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from proc_metrics.core.constants import (
    DEFAULT_DISKSTATS_PATH,
    DEFAULT_EMITTER_PERIOD_SECONDS,
    DEFAULT_METRICS_FEED,
    DEFAULT_PROC_ROOT,
)


class MonitorName(str, Enum):
    """Monitors that can be enabled from configuration."""

    CPUACCT = "cpuacct"  # cgroup cpu accounting deltas
    DISKSTATS = "diskstats"  # /proc/diskstats totals and deltas
    RUNTIME = "runtime"  # interpreter gc, threads, process memory and cpu
    PROCESS_CPU = "process_cpu"  # process cpu only
    SYS = "sys"  # host memory, swap, filesystems, disks, network, cpu


class MonitorSchedulerConfig(BaseModel):
    """Top-level scheduler configuration.

    This is the main configuration loaded from YAML/JSON files.

    Attributes:
        emitter_period_seconds: Period between two polls of the same monitor
        feed: Feed name stamped on emitted metric events
        dimensions: Extra dimensions added to every metric event
        monitors: Monitors to register with the scheduler
        proc_root: Mount point of the proc filesystem
        diskstats_path: Location of the disk statistics table
        dirs: Directory trees whose disk usage the sys monitor reports
    """

    emitter_period_seconds: float = Field(
        default=DEFAULT_EMITTER_PERIOD_SECONDS, gt=0, description="Polling period in seconds"
    )
    feed: str = Field(default=DEFAULT_METRICS_FEED, min_length=1)
    dimensions: dict[str, list[str]] = Field(default_factory=dict)
    monitors: list[MonitorName] = Field(
        default_factory=lambda: [MonitorName.RUNTIME],
        description="Monitors to schedule",
    )
    proc_root: Path = Field(default=DEFAULT_PROC_ROOT)
    diskstats_path: Path = Field(default=DEFAULT_DISKSTATS_PATH)
    dirs: list[Path] = Field(default_factory=list)

    @field_validator("dimensions", mode="before")
    @classmethod
    def normalize_dimensions(cls, v: object) -> object:
        """Accept single string values as one-element dimension lists."""
        if isinstance(v, dict):
            return {k: [val] if isinstance(val, str) else val for k, val in v.items()}
        return v

    @field_validator("monitors")
    @classmethod
    def validate_unique_monitors(cls, v: list[MonitorName]) -> list[MonitorName]:
        """Reject the same monitor listed twice."""
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate monitors in configuration: {[m.value for m in v]}")
        return v
