"""Sources for the id of the monitored process."""

from __future__ import annotations

import os
import threading
from abc import ABC, abstractmethod

from proc_metrics.utils.process_handle import get_process_handle


class IndeterminatePidError(RuntimeError):
    """The id of the current process could not be determined."""


def get_probable_pid() -> int:
    """Return the pid of the running interpreter.

    Raises:
        IndeterminatePidError: If the platform reports no usable pid
    """
    try:
        pid = os.getpid()
    except OSError as e:
        raise IndeterminatePidError(f"Unable to determine pid: {e}") from e
    if pid <= 0:
        raise IndeterminatePidError(f"Unable to determine pid from [{pid}]")
    return pid


class PidDiscoverer(ABC):
    """Supplies the pid whose cgroups are inspected."""

    @abstractmethod
    def get_pid(self) -> int:
        """Return the monitored pid."""


class InterningPidDiscoverer(PidDiscoverer):
    """Looks the pid up once and hands out the cached value afterwards."""

    def __init__(self) -> None:
        self._pid: int | None = None
        self._lock = threading.Lock()

    def get_pid(self) -> int:
        with self._lock:
            if self._pid is None:
                self._pid = get_probable_pid()
            return self._pid


class PsutilPidDiscoverer(PidDiscoverer):
    """Pid as reported by the shared psutil process handle."""

    def get_pid(self) -> int:
        return get_process_handle().pid
