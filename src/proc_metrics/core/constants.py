"""Shared constants for proc-metrics.

Centralized kernel paths and metric feed defaults used across modules.
"""

from __future__ import annotations

from pathlib import Path

# Default feed attached to every metric event unless a monitor overrides it.
DEFAULT_METRICS_FEED = "metrics"

# Kernel pseudo-filesystem locations.
DEFAULT_PROC_ROOT = Path("/proc")
DEFAULT_DISKSTATS_PATH = DEFAULT_PROC_ROOT / "diskstats"

# Filesystem types as they appear in the third column of /proc/mounts.
PROC_FS_TYPE = "proc"
CGROUP_FS_TYPE = "cgroup"

# cgroup v1 cpu accounting controller and its per-cpu usage file.
CPUACCT_SUBSYSTEM = "cpuacct"
CPUACCT_USAGE_ALL_FILE = "cpuacct.usage_all"

# Default polling period for the monitor scheduler.
DEFAULT_EMITTER_PERIOD_SECONDS = 60.0
