"""Per-cpu accounting from the cgroup v1 ``cpuacct`` controller.

``cpuacct.usage_all`` reports cumulative user and system nanoseconds consumed
by the group on each cpu:

    cpu user system
    0 3742718390834 63270307585
    1 3706447426186 51590224232
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from proc_metrics.cgroups.discoverer import CgroupDiscoverer
from proc_metrics.cgroups.pid import PidDiscoverer
from proc_metrics.core.constants import CPUACCT_SUBSYSTEM, CPUACCT_USAGE_ALL_FILE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CpuAcctMetric:
    """Cumulative user/system time per logical cpu, indexed by cpu id."""

    usr_times: tuple[int, ...]
    sys_times: tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.usr_times) != len(self.sys_times):
            raise ValueError("Lengths must match")

    @property
    def cpu_count(self) -> int:
        return len(self.usr_times)

    def usr_time(self, cpu: int | None = None) -> int:
        """User time for one cpu, or summed over all cpus when ``cpu`` is None."""
        return sum(self.usr_times) if cpu is None else self.usr_times[cpu]

    def sys_time(self, cpu: int | None = None) -> int:
        """System time for one cpu, or summed over all cpus when ``cpu`` is None."""
        return sum(self.sys_times) if cpu is None else self.sys_times[cpu]

    def time(self) -> int:
        return self.usr_time() + self.sys_time()

    def cumulative_since(self, other: CpuAcctMetric) -> CpuAcctMetric:
        """Per-cpu time elapsed between ``other`` and this snapshot.

        Raises:
            ValueError: If the snapshots cover a different number of cpus
        """
        if self.cpu_count != other.cpu_count:
            raise ValueError(
                f"Cpu count mismatch: [{self.cpu_count}] != [{other.cpu_count}]"
            )
        return CpuAcctMetric(
            usr_times=tuple(a - b for a, b in zip(self.usr_times, other.usr_times)),
            sys_times=tuple(a - b for a, b in zip(self.sys_times, other.sys_times)),
        )


def parse_cpuacct(lines: Iterable[str]) -> CpuAcctMetric:
    """Parse the contents of ``cpuacct.usage_all``.

    The first line is a header and is always discarded. Each remaining line is
    ``<cpu> <user> <system>``; the snapshot holds one slot per data line and
    every cpu id must address a distinct slot.

    Args:
        lines: File lines, header included

    Returns:
        Parsed snapshot

    Raises:
        ValueError: On a malformed line, a cpu id out of range, or a repeated cpu id
    """
    data = [line for line in list(lines)[1:] if line.strip()]
    ncpus = len(data)
    usr_times: list[int | None] = [None] * ncpus
    sys_times: list[int | None] = [None] * ncpus

    for line in data:
        splits = line.split()
        if len(splits) != 3:
            raise ValueError(f"Error parsing [{line}]")
        try:
            cpu, usr, sys_ = (int(s) for s in splits)
        except ValueError as e:
            raise ValueError(f"Error parsing [{line}]") from e
        if not 0 <= cpu < ncpus:
            raise ValueError(f"Cpu id [{cpu}] out of range for {ncpus} cpus in [{line}]")
        if usr_times[cpu] is not None:
            raise ValueError(f"Duplicate cpu id [{cpu}] in [{line}]")
        usr_times[cpu] = usr
        sys_times[cpu] = sys_

    return CpuAcctMetric(
        usr_times=tuple(t for t in usr_times if t is not None),
        sys_times=tuple(t for t in sys_times if t is not None),
    )


class CpuAcct:
    """Reads cpu accounting for the cgroup of the monitored process."""

    def __init__(self, cgroup_discoverer: CgroupDiscoverer, pid_discoverer: PidDiscoverer) -> None:
        self._cgroup_discoverer = cgroup_discoverer
        self._pid_discoverer = pid_discoverer

    def snapshot(self) -> CpuAcctMetric | None:
        """Take a snapshot, or None if the cgroup directory is currently absent."""
        cgroup_dir = self._cgroup_discoverer.discover(
            CPUACCT_SUBSYSTEM, self._pid_discoverer.get_pid()
        )
        if cgroup_dir is None:
            logger.debug(f"No {CPUACCT_SUBSYSTEM} cgroup directory, skipping snapshot")
            return None
        usage_file = Path(cgroup_dir) / CPUACCT_USAGE_ALL_FILE
        return parse_cpuacct(usage_file.read_text(encoding="utf-8").splitlines())
