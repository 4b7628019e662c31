"""Parser for the kernel disk statistics table (/proc/diskstats).

Each line has 14 whitespace-separated fields: major, minor, device name and
eleven counters, in the order documented in the kernel's iostats.txt:

    202      16 xvdb 17583883 184407 1366290449 34760009 43691563 1744679 ...

Lines with any other field count are rejected so that a kernel format change
fails loudly instead of silently shifting field meanings.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, fields, replace
from pathlib import Path

DISKSTATS_FIELD_COUNT = 14
# Index of the device name; counters follow it
DEVICE_FIELD = 2


@dataclass(frozen=True)
class DiskMetric:
    """Counters for one block device.

    All fields are cumulative counters except ``active_count``, which is the
    number of I/Os in flight at read time.
    """

    device: str
    r_complete: int = 0
    r_merge: int = 0
    r_sector: int = 0
    r_time_ms: int = 0
    w_complete: int = 0
    w_merge: int = 0
    w_sector: int = 0
    w_time_ms: int = 0
    active_count: int = 0
    active_time_ms: int = 0
    weighted_active_time_ms: int = 0

    def delta_since(self, other: DiskMetric) -> DiskMetric:
        """Counter increments between ``other`` and this reading.

        ``active_count`` is a gauge, so its delta is 0 by convention.

        Raises:
            ValueError: If the two readings are for different devices
        """
        if self.device != other.device:
            raise ValueError(f"Devices must match. [{self.device}] != [{other.device}]")
        deltas = {
            f.name: getattr(self, f.name) - getattr(other, f.name)
            for f in fields(self)
            if f.name not in ("device", "active_count")
        }
        return replace(self, active_count=0, **deltas)


def parse_disk_metric(line: str) -> DiskMetric:
    """Parse one /proc/diskstats line.

    Raises:
        ValueError: If the line does not have exactly 14 fields or a counter
            is not an integer
    """
    entities = line.split()
    if len(entities) != DISKSTATS_FIELD_COUNT:
        raise ValueError(f"Invalid disk metric [{line}]")
    try:
        counters = [int(v) for v in entities[DEVICE_FIELD + 1 :]]
    except ValueError as e:
        raise ValueError(f"Invalid disk metric [{line}]") from e
    return DiskMetric(entities[DEVICE_FIELD], *counters)


class ProcDiskStats:
    """All block devices from one read of the disk statistics table."""

    def __init__(self, disk_metrics: Iterable[DiskMetric]) -> None:
        self._disk_metrics = tuple(disk_metrics)

    @classmethod
    def parse(cls, lines: Iterable[str]) -> ProcDiskStats:
        return cls(parse_disk_metric(line) for line in lines if line.strip())

    @classmethod
    def read(cls, path: Path | str) -> ProcDiskStats:
        return cls.parse(Path(path).read_text(encoding="utf-8").splitlines())

    @property
    def disk_metrics(self) -> tuple[DiskMetric, ...]:
        return self._disk_metrics

    def by_device(self) -> dict[str, DiskMetric]:
        return {metric.device: metric for metric in self._disk_metrics}

    def __len__(self) -> int:
        return len(self._disk_metrics)
