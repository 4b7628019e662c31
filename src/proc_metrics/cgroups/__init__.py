"""cgroups module - process and cgroup discovery, cpu accounting."""

from __future__ import annotations

from proc_metrics.cgroups.cpuacct import CpuAcct, CpuAcctMetric, parse_cpuacct
from proc_metrics.cgroups.discoverer import (
    CgroupDiscoverer,
    ProcCgroupDiscoverer,
    ProcCgroupsEntry,
    ProcMountsEntry,
    ProcPidCgroupEntry,
)
from proc_metrics.cgroups.pid import (
    IndeterminatePidError,
    InterningPidDiscoverer,
    PidDiscoverer,
    PsutilPidDiscoverer,
    get_probable_pid,
)

__all__ = [
    "CgroupDiscoverer",
    "CpuAcct",
    "CpuAcctMetric",
    "IndeterminatePidError",
    "InterningPidDiscoverer",
    "PidDiscoverer",
    "ProcCgroupDiscoverer",
    "ProcCgroupsEntry",
    "ProcMountsEntry",
    "ProcPidCgroupEntry",
    "PsutilPidDiscoverer",
    "get_probable_pid",
    "parse_cpuacct",
]
