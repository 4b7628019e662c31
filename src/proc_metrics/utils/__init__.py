"""Utils module - Shared utilities."""

from __future__ import annotations

from proc_metrics.utils.logging import JsonFormatter, get_logger, setup_logging
from proc_metrics.utils.process_handle import get_process_handle

__all__ = ["JsonFormatter", "get_logger", "get_process_handle", "setup_logging"]
