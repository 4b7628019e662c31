"""Shared fixtures: a fake proc filesystem with a cgroup v1 cpuacct mount."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import pytest

CGROUP_MOUNT_OPTIONS = "rw,nosuid,nodev,noexec,relatime,cpu,cpuacct"
PROC_CGROUPS_HEADER = "#subsys_name\thierarchy\tnum_cgroups\tenabled"


class FakeProc:
    """A proc tree and a cgroup mount point under a temporary directory."""

    def __init__(self, base: Path, pid: int = 4242) -> None:
        self.root = base / "proc"
        self.cgroup_mount = base / "sys" / "fs" / "cgroup" / "cpu,cpuacct"
        self.pid = pid
        self.root.mkdir(parents=True)

    def write_mounts(self, *lines: str) -> None:
        (self.root / "mounts").write_text("\n".join(lines) + "\n")

    def write_cgroups(self, *lines: str) -> None:
        (self.root / "cgroups").write_text("\n".join([PROC_CGROUPS_HEADER, *lines]) + "\n")

    def write_pid_cgroup(self, *lines: str) -> None:
        pid_dir = self.root / str(self.pid)
        pid_dir.mkdir(exist_ok=True)
        (pid_dir / "cgroup").write_text("\n".join(lines) + "\n")

    def build(
        self,
        group: str = "/system.slice/my.service/abc",
        hierarchy: int = 3,
        create_group: bool = True,
    ) -> Path:
        """Write consistent mounts/cgroups/pid tables; return the group directory."""
        self.write_mounts(
            f"proc {self.root} proc rw,nosuid,nodev,noexec,relatime 0 0",
            "tmpfs /sys/fs/cgroup tmpfs ro,nosuid,nodev,noexec,mode=755 0 0",
            f"cgroup {self.cgroup_mount} cgroup {CGROUP_MOUNT_OPTIONS} 0 0",
        )
        self.write_cgroups(
            "cpuset\t2\t1\t1",
            f"cpu\t{hierarchy}\t14\t1",
            f"cpuacct\t{hierarchy}\t14\t1",
        )
        self.write_pid_cgroup("2:cpuset:/", f"{hierarchy}:cpu,cpuacct:{group}")
        group_dir = self.cgroup_mount / group.lstrip("/")
        if create_group:
            group_dir.mkdir(parents=True)
        return group_dir

    @staticmethod
    def write_usage_all(group_dir: Path, rows: Iterable[tuple[int, int, int]]) -> None:
        lines = ["cpu user system", *(f"{cpu} {usr} {sys_}" for cpu, usr, sys_ in rows)]
        (group_dir / "cpuacct.usage_all").write_text("\n".join(lines) + "\n")


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProc:
    return FakeProc(tmp_path)
