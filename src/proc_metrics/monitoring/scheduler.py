"""Periodic execution of monitors.

The scheduler runs every registered monitor on its own fixed-rate task and
lets monitors be added or removed while it is running.

Lifecycle:
    Stopped --start()--> Running --stop()--> Stopped

Each tick polls the monitor and only then decides, under the scheduler lock,
whether to schedule another tick. A monitor removed while a tick is in flight
therefore still completes that tick (and can flush what it gathered) before
its task ends.

Example:
    ```python
    scheduler = MonitorScheduler(config, emitter, [CpuAcctDeltaMonitor()])
    scheduler.start()
    scheduler.add_monitor(ProcDiskStatsDeltaMonitor())
    ...
    scheduler.stop()
    ```
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from enum import Enum

from proc_metrics.core.schemas import MonitorSchedulerConfig
from proc_metrics.monitoring.base import Monitor
from proc_metrics.monitoring.emitter import Emitter

logger = logging.getLogger(__name__)


class Signal(Enum):
    """What a scheduled callable wants after running."""

    REPEAT = "repeat"
    STOP = "stop"


class ScheduledTask:
    """Calls a function at a fixed rate on a daemon thread until told to stop.

    The next run is due one period after the previous one was due (or
    immediately, if the previous run overran). ``cancel()`` prevents future
    runs but never interrupts one in progress.

    Args:
        period_seconds: Time between two scheduled runs
        name: Thread name, for logs
    """

    def __init__(self, period_seconds: float, name: str = "scheduled-task") -> None:
        if period_seconds <= 0:
            raise ValueError(f"period_seconds must be positive, got {period_seconds}")
        self._period = period_seconds
        self._name = name
        self._cancelled = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self, fn: Callable[[], Signal], initial_delay: float | None = None) -> None:
        if self._thread is not None:
            raise RuntimeError(f"Task {self._name} already started")
        delay = self._period if initial_delay is None else initial_delay
        self._thread = threading.Thread(
            target=self._run, args=(fn, delay), name=self._name, daemon=True
        )
        self._thread.start()

    def cancel(self) -> None:
        self._cancelled.set()

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    def _run(self, fn: Callable[[], Signal], initial_delay: float) -> None:
        deadline = time.monotonic() + initial_delay
        while not self._cancelled.wait(max(0.0, deadline - time.monotonic())):
            try:
                signal = fn()
            except Exception:
                logger.exception(f"Uncaught exception in task {self._name}, stopping it")
                break
            if signal is Signal.STOP:
                break
            deadline = max(deadline + self._period, time.monotonic())
        logger.debug(f"Task {self._name} finished")


class MonitorScheduler:
    """Runs monitors periodically and manages their registration.

    All changes to the registry and the started flag happen under one lock,
    and every tick takes the same lock to decide whether to continue.

    Args:
        config: Scheduler configuration (polling period)
        emitter: Destination for all monitors' events
        monitors: Monitors registered up front; started by ``start()``
    """

    def __init__(
        self,
        config: MonitorSchedulerConfig,
        emitter: Emitter,
        monitors: Iterable[Monitor] = (),
    ) -> None:
        self._config = config
        self._emitter = emitter
        self._lock = threading.RLock()
        self._started = False
        self._monitors: list[Monitor] = []
        # id(monitor) -> its live task, only while started
        self._tasks: dict[int, ScheduledTask] = {}
        self._retired: list[ScheduledTask] = []
        for monitor in monitors:
            if self._has_monitor(monitor):
                raise ValueError(f"Monitor listed twice: {monitor!r}")
            self._monitors.append(monitor)

    @property
    def started(self) -> bool:
        with self._lock:
            return self._started

    @property
    def monitors(self) -> list[Monitor]:
        with self._lock:
            return list(self._monitors)

    def start(self) -> None:
        """Start a periodic task for every registered monitor. No-op if running."""
        with self._lock:
            if self._started:
                return
            self._started = True
            for monitor in self._monitors:
                self._start_monitor(monitor)
            logger.info(
                f"Started {len(self._monitors)} monitors with period "
                f"{self._config.emitter_period_seconds}s"
            )

    def add_monitor(self, monitor: Monitor) -> None:
        """Register ``monitor`` and start polling it right away.

        Raises:
            RuntimeError: If the scheduler has not been started, or the
                monitor is already registered
        """
        with self._lock:
            if not self._started:
                raise RuntimeError("add_monitor must be called after start")
            if self._has_monitor(monitor):
                raise RuntimeError(f"Monitor already monitoring: {monitor!r}")
            self._monitors.append(monitor)
            self._start_monitor(monitor)

    def remove_monitor(self, monitor: Monitor) -> None:
        """Deregister ``monitor`` and cancel its future ticks. No-op if absent."""
        with self._lock:
            if not self._has_monitor(monitor):
                return
            self._monitors = [m for m in self._monitors if m is not monitor]
            self._retire_task(monitor)
            monitor.stop()
            logger.debug(f"Removed monitor {monitor!r}")

    def stop(self, timeout: float | None = None) -> None:
        """Cancel every monitor's task and stop the monitors. No-op if stopped.

        Stopping does not deregister anything. Monitors stay in the registry
        (only ``remove_monitor`` or a monitor returning ``False`` takes one
        out), so a later ``start()`` resumes every remaining monitor with a
        fresh task.

        Args:
            timeout: If given, wait up to this long per task for in-flight
                ticks to finish
        """
        with self._lock:
            if not self._started:
                return
            self._started = False
            for monitor in self._monitors:
                self._retire_task(monitor)
                monitor.stop()
            retired = list(self._retired)
            self._retired.clear()
        logger.info("Stopped monitor scheduler")

        if timeout is not None:
            for task in retired:
                task.join(timeout)
        self._emitter.flush()

    def _has_monitor(self, monitor: Monitor) -> bool:
        return any(m is monitor for m in self._monitors)

    def _start_monitor(self, monitor: Monitor) -> None:
        monitor.start()
        task = ScheduledTask(
            self._config.emitter_period_seconds,
            name=f"monitor-{type(monitor).__name__}-{id(monitor):x}",
        )
        self._tasks[id(monitor)] = task
        task.start(lambda: self._tick(monitor, task))

    def _retire_task(self, monitor: Monitor) -> None:
        task = self._tasks.pop(id(monitor), None)
        if task is not None:
            task.cancel()
            # Only tasks whose thread may still be running need a join on stop
            self._retired = [t for t in self._retired if t.is_alive()]
            self._retired.append(task)

    def _tick(self, monitor: Monitor, task: ScheduledTask) -> Signal:
        try:
            keep_going = monitor.monitor(self._emitter)
        except Exception:
            logger.exception(f"Monitor {monitor!r} failed, skipping this cycle")
            keep_going = True

        with self._lock:
            current = self._tasks.get(id(monitor)) is task
            if keep_going and current:
                return Signal.REPEAT
            if current:
                logger.info(f"Monitor {monitor!r} signalled stop, deregistering it")
                self._monitors = [m for m in self._monitors if m is not monitor]
                self._tasks.pop(id(monitor), None)
                monitor.stop()
            return Signal.STOP
