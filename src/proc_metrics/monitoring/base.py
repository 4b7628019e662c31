"""Base monitor classes and the snapshot slot shared by delta monitors.

All monitors implement the ``Monitor`` interface so the scheduler can run
them without knowing where their numbers come from (cgroup files, the proc
filesystem, psutil or the interpreter itself).
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Generic, TypeVar

from proc_metrics.core.constants import DEFAULT_METRICS_FEED
from proc_metrics.monitoring.emitter import Emitter
from proc_metrics.monitoring.events import MetricEventBuilder

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Monitor(ABC):
    """A unit of work polled periodically by the scheduler."""

    @abstractmethod
    def start(self) -> None:
        """Prepare the monitor for polling."""

    @abstractmethod
    def stop(self) -> None:
        """Stop the monitor; later polls report nothing."""

    @abstractmethod
    def monitor(self, emitter: Emitter) -> bool:
        """Poll once and emit the resulting metrics.

        Args:
            emitter: Destination for metric events

        Returns:
            True to be polled again, False to be removed from the schedule
        """


class AbstractMonitor(Monitor):
    """Monitor that only polls between ``start()`` and ``stop()``.

    Subclasses implement ``do_monitor``.
    """

    def __init__(self) -> None:
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        self._started = True

    def stop(self) -> None:
        self._started = False

    def monitor(self, emitter: Emitter) -> bool:
        if self._started:
            return self.do_monitor(emitter)
        return False

    @abstractmethod
    def do_monitor(self, emitter: Emitter) -> bool:
        """Poll once. Same contract as ``Monitor.monitor``."""


class FeedDefiningMonitor(AbstractMonitor):
    """Monitor whose events all carry one feed and a fixed set of dimensions.

    Args:
        feed: Feed name stamped on every event
        dimensions: Dimensions added to every event
    """

    def __init__(
        self,
        feed: str = DEFAULT_METRICS_FEED,
        dimensions: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        super().__init__()
        if not feed:
            raise ValueError("feed must be non-empty")
        self._feed = feed
        self._dimensions = {k: tuple(v) for k, v in (dimensions or {}).items()}

    @property
    def feed(self) -> str:
        return self._feed

    def builder(self) -> MetricEventBuilder:
        """Event builder preset with this monitor's feed and dimensions."""
        return MetricEventBuilder(self._feed).add_dimensions(self._dimensions)


class CompoundMonitor(AbstractMonitor):
    """Polls several monitors as one scheduled unit."""

    def __init__(self, *monitors: Monitor) -> None:
        super().__init__()
        self._monitors = list(monitors)

    @property
    def monitors(self) -> list[Monitor]:
        return list(self._monitors)

    def start(self) -> None:
        super().start()
        for monitor in self._monitors:
            monitor.start()

    def stop(self) -> None:
        super().stop()
        for monitor in self._monitors:
            monitor.stop()

    def do_monitor(self, emitter: Emitter) -> bool:
        # Poll every child, even after one of them asks to stop
        results = [monitor.monitor(emitter) for monitor in self._monitors]
        return any(results)


@dataclass(frozen=True)
class SnapshotHolder(Generic[T]):
    """An immutable snapshot together with the time it was taken."""

    payload: T
    # Monotonic nanoseconds, for elapsed-time metrics
    timestamp_ns: int
    # Wall clock, for event timestamps
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class SnapshotSlot(Generic[T]):
    """Single-value cell replaced only by compare-and-set.

    Pollers read the current holder, build a new one, then try to swap it in.
    Only the first poller to swap against a given holder wins; the rest see
    ``compare_and_set`` fail and skip their cycle. Comparison is by identity.
    """

    def __init__(self) -> None:
        self._value: SnapshotHolder[T] | None = None
        # Guards only the compare and the store, never any I/O
        self._lock = threading.Lock()

    def get(self) -> SnapshotHolder[T] | None:
        return self._value

    def compare_and_set(
        self, expected: SnapshotHolder[T] | None, new: SnapshotHolder[T]
    ) -> bool:
        """Store ``new`` if the slot still holds ``expected``.

        Returns:
            True if the slot was updated
        """
        with self._lock:
            if self._value is not expected:
                return False
            self._value = new
            return True
