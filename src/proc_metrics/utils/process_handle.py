"""Process-wide psutil handle.

psutil is the OS-stats binding for every monitor that needs process or host
counters. All of them share one ``psutil.Process`` for the current process,
constructed exactly once on first use.
"""

from __future__ import annotations

import logging
import threading

import psutil

logger = logging.getLogger(__name__)

_handle: psutil.Process | None = None
_handle_lock = threading.Lock()


def get_process_handle() -> psutil.Process:
    """Return the shared ``psutil.Process`` for this interpreter.

    The handle is built under a lock the first time it is requested, so the
    first caller always observes a fully initialized object.

    Returns:
        The shared process handle
    """
    global _handle
    handle = _handle
    if handle is not None:
        return handle
    with _handle_lock:
        if _handle is None:
            _handle = psutil.Process()
            logger.debug(f"Initialized process handle for pid {_handle.pid}")
        return _handle
