"""Emitters: where monitors send their metric events.

Serialization and transport are deliberately thin here; an emitter only has
to accept well-formed events from many scheduler threads at once.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import Counter
from pathlib import Path

from proc_metrics.monitoring.events import MetricEvent

logger = logging.getLogger(__name__)


class Emitter(ABC):
    """Sink for metric events."""

    @abstractmethod
    def emit(self, event: MetricEvent) -> None:
        """Accept one event. Must be safe to call from several threads."""

    def flush(self) -> None:
        """Push buffered events out, if the emitter buffers."""

    def close(self) -> None:
        """Flush and release resources."""
        self.flush()


class CollectingEmitter(Emitter):
    """Keeps every event in memory."""

    def __init__(self) -> None:
        self._events: list[MetricEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: MetricEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[MetricEvent]:
        with self._lock:
            return list(self._events)

    def events_named(self, metric: str) -> list[MetricEvent]:
        return [e for e in self.events if e.metric == metric]

    def metric_counts(self) -> Counter[str]:
        """Number of events seen per metric name."""
        return Counter(e.metric for e in self.events)

    def reset(self) -> None:
        with self._lock:
            self._events.clear()


class LoggingEmitter(Emitter):
    """Writes every event to a logger, one line each."""

    def __init__(self, level: int = logging.INFO, target: logging.Logger | None = None) -> None:
        self._level = level
        self._logger = target or logger

    def emit(self, event: MetricEvent) -> None:
        self._logger.log(self._level, f"Event [{json.dumps(event.to_dict())}]")


class JsonLinesEmitter(Emitter):
    """Appends each event as one JSON object per line.

    Args:
        path: Output file, created with its parent directories if missing
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self._path, "a", encoding="utf-8")
        self._lock = threading.Lock()
        self._closed = False

    @property
    def path(self) -> Path:
        return self._path

    def emit(self, event: MetricEvent) -> None:
        line = json.dumps(event.to_dict())
        with self._lock:
            if self._closed:
                logger.warning(f"Dropping event {event.metric}: {self._path} is closed")
                return
            self._file.write(line + "\n")

    def flush(self) -> None:
        with self._lock:
            if not self._closed:
                self._file.flush()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._file.close()
        logger.debug(f"Closed event log {self._path}")


class FanOutEmitter(Emitter):
    """Forwards every event to each of several emitters, in order."""

    def __init__(self, *emitters: Emitter) -> None:
        self._emitters = list(emitters)

    def emit(self, event: MetricEvent) -> None:
        for emitter in self._emitters:
            emitter.emit(event)

    def flush(self) -> None:
        for emitter in self._emitters:
            emitter.flush()

    def close(self) -> None:
        for emitter in self._emitters:
            emitter.close()
