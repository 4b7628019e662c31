"""cgroup v1 directory discovery from the proc filesystem.

A process belongs to one cgroup per hierarchy. Finding the directory for one
subsystem (e.g. ``cpuacct``) takes three tables:

- ``/proc/cgroups``: subsystem name -> hierarchy id
- ``/proc/mounts``: cgroup mount whose options name the subsystem -> mount point
- ``/proc/<pid>/cgroup``: hierarchy id -> path of the process's group

The directory is the mount point joined with the group path. Tables are read
fresh on every call since mounts and memberships change under a long-lived
process.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from proc_metrics.core.constants import CGROUP_FS_TYPE, DEFAULT_PROC_ROOT, PROC_FS_TYPE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcMountsEntry:
    """One line of /proc/mounts.

    The trailing dump/pass columns are validated for presence but not kept.
    """

    device: str
    path: Path
    type: str
    options: frozenset[str]

    @classmethod
    def parse(cls, line: str) -> ProcMountsEntry:
        # cgroup /sys/fs/cgroup/cpu,cpuacct cgroup rw,nosuid,nodev,noexec,relatime,cpu,cpuacct 0 0
        splits = line.split()
        if len(splits) != 6:
            raise ValueError(f"Invalid entry: [{line}]")
        return cls(
            device=splits[0],
            path=Path(splits[1]),
            type=splits[2],
            options=frozenset(splits[3].split(",")),
        )


@dataclass(frozen=True)
class ProcCgroupsEntry:
    """One non-comment line of /proc/cgroups."""

    subsystem_name: str
    hierarchy: int
    num_cgroups: int
    enabled: bool

    @classmethod
    def parse(cls, line: str) -> ProcCgroupsEntry:
        # #subsys_name	hierarchy	num_cgroups	enabled
        splits = line.rstrip("\n").split("\t")
        if len(splits) != 4:
            raise ValueError(f"Invalid entry: [{line}]")
        try:
            return cls(
                subsystem_name=splits[0],
                hierarchy=int(splits[1]),
                num_cgroups=int(splits[2]),
                enabled=int(splits[3]) == 1,
            )
        except ValueError as e:
            raise ValueError(f"Invalid entry: [{line}]") from e


@dataclass(frozen=True)
class ProcPidCgroupEntry:
    """One line of /proc/<pid>/cgroup."""

    hierarchy: int
    subsystems: tuple[str, ...]
    path: str

    @classmethod
    def parse(cls, line: str) -> ProcPidCgroupEntry:
        # 3:cpu,cpuacct:/system.slice/mesos-agent-spark.service/673550f3
        splits = line.rstrip("\n").split(":", 2)
        if len(splits) != 3:
            raise ValueError(f"Invalid entry [{line}]")
        try:
            hierarchy = int(splits[0])
        except ValueError as e:
            raise ValueError(f"Invalid entry [{line}]") from e
        subsystems = tuple(s for s in splits[1].split(",") if s)
        return cls(hierarchy=hierarchy, subsystems=subsystems, path=splits[2])


def _read_lines(path: Path) -> list[str]:
    """Read a kernel table, dropping blank lines."""
    return [line for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


class CgroupDiscoverer(ABC):
    """Resolves the cgroup directory of a subsystem for a process."""

    @abstractmethod
    def discover(self, cgroup: str, pid: int) -> Path | None:
        """Return the cgroup directory, or None if it cannot be used right now.

        Args:
            cgroup: Subsystem name, e.g. "cpuacct"
            pid: Process id whose membership is resolved
        """


class ProcCgroupDiscoverer(CgroupDiscoverer):
    """Discovers cgroup directories by reading tables under a proc mount.

    Args:
        proc_root: Where the proc filesystem is expected to be mounted
    """

    def __init__(self, proc_root: Path | str = DEFAULT_PROC_ROOT) -> None:
        self._proc_root = Path(proc_root)

    @property
    def proc_root(self) -> Path:
        return self._proc_root

    def discover(self, cgroup: str, pid: int) -> Path | None:
        """Resolve the directory of ``cgroup`` for ``pid``.

        Raises:
            RuntimeError: If the subsystem, its mount, or the pid's hierarchy
                membership is missing from the tables
            ValueError: If a table row has an unexpected format
        """
        if not cgroup:
            raise ValueError("cgroup must be a non-empty subsystem name")

        proc = self.proc()
        if proc is None:
            return None

        cgroups_entry = self.get_cgroup_entry(self.get_proc_cgroups(proc), cgroup)
        mounts_entry = self.get_mount_entry(self.get_proc_mounts(proc), cgroup)
        pid_entry = self.get_pid_cgroup_entry(
            self.get_pid_cgroups(proc, pid), cgroups_entry.hierarchy
        )

        cgroup_dir = mounts_entry.path / pid_entry.path.lstrip("/")
        if cgroup_dir.is_dir():
            return cgroup_dir

        logger.warning(f"Invalid cgroup directory [{cgroup_dir}]")
        return None

    def proc(self) -> Path | None:
        """Return the proc root if /proc/mounts confirms it is mounted there.

        Inside containers the proc filesystem may be virtualized or mounted
        elsewhere, in which case the tables cannot be trusted.
        """
        proc = self._proc_root
        if not proc.is_dir():
            logger.warning(f"{proc} is not a valid directory")
            return None

        found_proc: Path | None = None
        for line in _read_lines(self.get_proc_mounts(proc)):
            entry = ProcMountsEntry.parse(line)
            if entry.type != PROC_FS_TYPE:
                continue
            if entry.path == proc:
                return proc
            found_proc = entry.path

        if found_proc is not None:
            logger.warning(f"Expected proc to be mounted on {proc}, but was on [{found_proc}]")
        else:
            logger.warning(f"No proc entry found in {self.get_proc_mounts(proc)}")
        return None

    def get_proc_mounts(self, proc: Path) -> Path:
        return proc / "mounts"

    def get_proc_cgroups(self, proc: Path) -> Path:
        return proc / "cgroups"

    def get_pid_cgroups(self, proc: Path, pid: int) -> Path:
        return proc / str(pid) / "cgroup"

    def get_cgroup_entry(self, proc_cgroups: Path, cgroup: str) -> ProcCgroupsEntry:
        for line in _read_lines(proc_cgroups):
            if line.startswith("#"):
                continue
            entry = ProcCgroupsEntry.parse(line)
            if entry.enabled and entry.subsystem_name == cgroup:
                return entry
        raise RuntimeError(f"Hierarchy for [{cgroup}] not found")

    def get_mount_entry(self, proc_mounts: Path, cgroup: str) -> ProcMountsEntry:
        for line in _read_lines(proc_mounts):
            entry = ProcMountsEntry.parse(line)
            # Subsystems are often co-mounted, e.g. options "...,cpu,cpuacct"
            if entry.type == CGROUP_FS_TYPE and cgroup in entry.options:
                return entry
        raise RuntimeError(f"Cgroup [{cgroup}] not found")

    def get_pid_cgroup_entry(self, pid_cgroups: Path, hierarchy: int) -> ProcPidCgroupEntry:
        for line in _read_lines(pid_cgroups):
            entry = ProcPidCgroupEntry.parse(line)
            if entry.hierarchy == hierarchy:
                return entry
        raise RuntimeError(f"No hierarchy found for [{hierarchy}]")
