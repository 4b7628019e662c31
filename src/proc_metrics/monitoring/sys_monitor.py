"""Host-level metrics from psutil.

SysMonitor groups several independent stats sources. Each one is polled on
every tick; a psutil failure in one source is logged and only that source is
skipped for the tick.
"""

from __future__ import annotations

import logging
import os
import socket
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path

import psutil

from proc_metrics.core.constants import DEFAULT_METRICS_FEED
from proc_metrics.monitoring.base import FeedDefiningMonitor
from proc_metrics.monitoring.emitter import Emitter
from proc_metrics.monitoring.events import MetricEventBuilder
from proc_metrics.monitoring.keyed_diff import KeyedDiff

logger = logging.getLogger(__name__)

NET_ADDRESS_BLACKLIST = frozenset({"0.0.0.0", "127.0.0.1"})
# st_blocks is always counted in 512-byte units
BLOCK_SIZE = 512


class Stats(ABC):
    """One source of host metrics."""

    def __init__(self, builder_factory: Callable[[], MetricEventBuilder]) -> None:
        self._builder = builder_factory

    def builder(self) -> MetricEventBuilder:
        return self._builder()

    @abstractmethod
    def emit(self, emitter: Emitter) -> None:
        """Read the source and emit its metrics."""


class MemStats(Stats):
    def emit(self, emitter: Emitter) -> None:
        try:
            mem = psutil.virtual_memory()
        except (psutil.Error, OSError) as e:
            logger.error(f"Failed to get Mem: {e}")
            return
        builder = self.builder()
        emitter.emit(builder.build("sys/mem/max", mem.total))
        emitter.emit(builder.build("sys/mem/used", mem.used))


class SwapStats(Stats):
    """Swap size plus bytes swapped in and out since the last poll.

    The baseline is taken at construction, so the first poll already reports.
    """

    def __init__(self, builder_factory: Callable[[], MetricEventBuilder]) -> None:
        super().__init__(builder_factory)
        self._prev_page_in = 0
        self._prev_page_out = 0
        try:
            swap = psutil.swap_memory()
            self._prev_page_in = swap.sin
            self._prev_page_out = swap.sout
        except (psutil.Error, OSError) as e:
            logger.error(f"Failed to get Swap: {e}")

    def emit(self, emitter: Emitter) -> None:
        try:
            swap = psutil.swap_memory()
        except (psutil.Error, OSError) as e:
            logger.error(f"Failed to get Swap: {e}")
            return
        builder = self.builder()
        emitter.emit(builder.build("sys/swap/pageIn", swap.sin - self._prev_page_in))
        emitter.emit(builder.build("sys/swap/pageOut", swap.sout - self._prev_page_out))
        emitter.emit(builder.build("sys/swap/max", swap.total))
        emitter.emit(builder.build("sys/swap/free", swap.free))
        self._prev_page_in = swap.sin
        self._prev_page_out = swap.sout


class FsStats(Stats):
    """Size and usage of every physical (non-virtual) filesystem."""

    def emit(self, emitter: Emitter) -> None:
        try:
            partitions = psutil.disk_partitions(all=False)
        except (psutil.Error, OSError) as e:
            logger.error(f"Failed to get FileSystem list: {e}")
            return
        logger.debug(f"Found FileSystem list: [{', '.join(p.mountpoint for p in partitions)}]")
        for partition in partitions:
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except (psutil.Error, OSError) as e:
                logger.error(f"Failed to get FileSystemUsage[{partition.mountpoint}]: {e}")
                continue
            builder = (
                self.builder()
                .set_dimension("fsDevName", partition.device)
                .set_dimension("fsDirName", partition.mountpoint)
                .set_dimension("fsTypeName", partition.fstype)
                .set_dimension("fsOptions", partition.opts.split(","))
            )
            emitter.emit(builder.build("sys/fs/max", usage.total))
            emitter.emit(builder.build("sys/fs/used", usage.used))


class DiskStats(Stats):
    """Bytes and operations per disk since the last poll."""

    def __init__(self, builder_factory: Callable[[], MetricEventBuilder]) -> None:
        super().__init__(builder_factory)
        self._diff = KeyedDiff()

    def emit(self, emitter: Emitter) -> None:
        try:
            counters = psutil.disk_io_counters(perdisk=True) or {}
        except (psutil.Error, OSError) as e:
            logger.error(f"Failed to get DiskUsage: {e}")
            return
        for name, io in counters.items():
            stats = self._diff.to(
                name,
                {
                    "sys/disk/read/size": io.read_bytes,
                    "sys/disk/read/count": io.read_count,
                    "sys/disk/write/size": io.write_bytes,
                    "sys/disk/write/count": io.write_count,
                },
            )
            if stats is None:
                continue
            builder = self.builder().set_dimension("diskName", name)
            for metric, value in stats.items():
                emitter.emit(builder.build(metric, value))


class NetStats(Stats):
    """Bytes received and sent per interface since the last poll.

    Interfaces whose IPv4 address is loopback or unspecified are skipped.
    """

    def __init__(self, builder_factory: Callable[[], MetricEventBuilder]) -> None:
        super().__init__(builder_factory)
        self._diff = KeyedDiff()

    def emit(self, emitter: Emitter) -> None:
        try:
            counters = psutil.net_io_counters(pernic=True)
            addresses = psutil.net_if_addrs()
        except (psutil.Error, OSError) as e:
            logger.error(f"Failed to get NetInterface list: {e}")
            return
        logger.debug(f"Found NetInterface list: [{', '.join(counters)}]")
        for name, io in counters.items():
            address = next(
                (a.address for a in addresses.get(name, []) if a.family == socket.AF_INET),
                "",
            )
            if address in NET_ADDRESS_BLACKLIST:
                logger.debug(f"Not monitoring net stats for name[{name}] with address[{address}]")
                continue
            stats = self._diff.to(
                name,
                {"sys/net/read/size": io.bytes_recv, "sys/net/write/size": io.bytes_sent},
            )
            if stats is None:
                continue
            builder = (
                self.builder()
                .set_dimension("netName", name)
                .set_dimension("netAddress", address)
            )
            for metric, value in stats.items():
                emitter.emit(builder.build(metric, value))


class CpuStats(Stats):
    """Share of each cpu's time spent per mode since the last poll, in [0, 100]."""

    MODES = ("user", "system", "nice", "iowait")

    def __init__(self, builder_factory: Callable[[], MetricEventBuilder]) -> None:
        super().__init__(builder_factory)
        self._diff = KeyedDiff()

    def emit(self, emitter: Emitter) -> None:
        try:
            cpus = psutil.cpu_times(percpu=True)
        except (psutil.Error, OSError) as e:
            logger.error(f"Failed to get Cpu list: {e}")
            return
        for i, cpu in enumerate(cpus):
            name = str(i)
            values = {mode: getattr(cpu, mode) for mode in self.MODES if hasattr(cpu, mode)}
            # guest time is already counted in user and nice
            values["_total"] = (
                sum(cpu) - getattr(cpu, "guest", 0) - getattr(cpu, "guest_nice", 0)
            )  # not reported
            stats = self._diff.to(name, values)
            if stats is None:
                continue
            total = stats.pop("_total")
            if total <= 0:
                continue
            for mode, value in stats.items():
                builder = self.builder().set_dimension("cpuName", name).set_dimension("cpuTime", mode)
                emitter.emit(builder.build("sys/cpu", value * 100 / total))


class DirStats(Stats):
    """Disk space used by each configured directory tree, in bytes.

    Usage is the allocated size (512-byte blocks) of every entry below the
    directory, counting hard-linked files once. Symlinks are not followed.
    An unreadable directory is logged and skipped; unreadable entries inside
    it are left out of its total.
    """

    def __init__(
        self, builder_factory: Callable[[], MetricEventBuilder], dirs: Iterable[Path | str]
    ) -> None:
        super().__init__(builder_factory)
        self._dirs = [Path(str(d).strip()) for d in dirs]

    @property
    def dirs(self) -> list[Path]:
        return list(self._dirs)

    def emit(self, emitter: Emitter) -> None:
        for directory in self._dirs:
            try:
                used = disk_usage(directory)
            except OSError as e:
                logger.error(f"Failed to get DiskUsage for [{directory}] due to [{e}]")
                continue
            builder = self.builder().set_dimension("fsDirName", str(directory))
            emitter.emit(builder.build("sys/storage/used", used))


def disk_usage(directory: Path) -> int:
    """Return the bytes allocated to ``directory`` and everything below it.

    Raises:
        OSError: If ``directory`` itself cannot be read
    """
    root = directory.stat()
    seen = {(root.st_dev, root.st_ino)}
    total = root.st_blocks * BLOCK_SIZE
    # The top-level listing must succeed; nested failures only shrink the total
    with os.scandir(directory) as entries:
        pending = list(entries)
    while pending:
        entry = pending.pop()
        try:
            st = entry.stat(follow_symlinks=False)
            if (st.st_dev, st.st_ino) in seen:
                continue
            seen.add((st.st_dev, st.st_ino))
            total += st.st_blocks * BLOCK_SIZE
            if entry.is_dir(follow_symlinks=False):
                with os.scandir(entry.path) as children:
                    pending.extend(children)
        except OSError as e:
            logger.debug(f"Skipping unreadable entry [{entry.path}]: {e}")
    return total


class SysMonitor(FeedDefiningMonitor):
    """Host memory, swap, filesystem, disk, network and cpu metrics.

    Args:
        feed: Feed name stamped on every event
        dimensions: Extra dimensions for every event
        dirs: Directory trees whose disk usage is reported on each poll
    """

    def __init__(
        self,
        feed: str = DEFAULT_METRICS_FEED,
        dimensions: Mapping[str, Sequence[str]] | None = None,
        dirs: Iterable[Path | str] | None = None,
    ) -> None:
        super().__init__(feed, dimensions)
        self._stats_list: list[Stats] = [
            MemStats(self.builder),
            FsStats(self.builder),
            DiskStats(self.builder),
            NetStats(self.builder),
            CpuStats(self.builder),
            SwapStats(self.builder),
        ]
        if dirs:
            self.add_directories_to_monitor(dirs)

    def add_directories_to_monitor(self, dirs: Iterable[Path | str]) -> None:
        """Report the disk usage of ``dirs`` from the next poll on."""
        self._stats_list.append(DirStats(self.builder, dirs))

    def do_monitor(self, emitter: Emitter) -> bool:
        for stats in self._stats_list:
            stats.emit(emitter)
        return True
