"""Metric events produced by monitors.

A metric event is the unit handed to an emitter: a metric name, a numeric
value, a set of dimension tags and the time the value was observed.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from proc_metrics.core.constants import DEFAULT_METRICS_FEED

DimensionValue = str | tuple[str, ...]


@dataclass(frozen=True)
class MetricEvent:
    """A single measurement."""

    feed: str
    metric: str
    value: int | float
    dimensions: Mapping[str, DimensionValue] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        result: dict[str, Any] = {
            "feed": self.feed,
            "timestamp": self.timestamp.isoformat(),
            "metric": self.metric,
            "value": self.value,
        }
        for name, value in self.dimensions.items():
            result[name] = list(value) if isinstance(value, tuple) else value
        return result


class MetricEventBuilder:
    """Accumulates dimensions, then stamps out events sharing them.

    Example:
        ```python
        builder = MetricEventBuilder("metrics").set_dimension("device", "sda")
        emitter.emit(builder.build("sys/disk/queue", 3))
        ```
    """

    def __init__(self, feed: str = DEFAULT_METRICS_FEED) -> None:
        if not feed:
            raise ValueError("feed must be non-empty")
        self._feed = feed
        self._dimensions: dict[str, DimensionValue] = {}

    @property
    def feed(self) -> str:
        return self._feed

    def set_dimension(self, name: str, value: str | Sequence[str]) -> MetricEventBuilder:
        if isinstance(value, str):
            self._dimensions[name] = value
        else:
            self._dimensions[name] = tuple(value)
        return self

    def add_dimensions(self, dimensions: Mapping[str, str | Sequence[str]]) -> MetricEventBuilder:
        """Copy every entry of ``dimensions`` onto the builder."""
        for name, value in dimensions.items():
            self.set_dimension(name, value)
        return self

    def get_dimension(self, name: str) -> DimensionValue | None:
        return self._dimensions.get(name)

    def build(
        self, metric: str, value: int | float, timestamp: datetime | None = None
    ) -> MetricEvent:
        return MetricEvent(
            feed=self._feed,
            metric=metric,
            value=value,
            dimensions=dict(self._dimensions),
            timestamp=timestamp if timestamp is not None else datetime.now(UTC),
        )
