"""Deltas of monotonic counters, tracked per key.

OS and runtime counters (cpu ticks, bytes read, gc collections) only mean
something as a rate, so the first observation for a key is a baseline and
never produces a value.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Mapping

logger = logging.getLogger(__name__)


class KeyedDiff:
    """Remembers the last value map per key and returns element-wise deltas."""

    def __init__(self) -> None:
        self._prevs: dict[Hashable, dict[str, int | float]] = {}

    def to(self, key: Hashable, current: Mapping[str, int | float]) -> dict[str, int | float] | None:
        """Record ``current`` for ``key`` and return the delta since the last call.

        Args:
            key: Series identity, e.g. a device or cpu name
            current: Counter values observed now

        Returns:
            ``current - previous`` for every field present in both maps, or
            None when ``key`` is seen for the first time
        """
        prev = self._prevs.get(key)
        self._prevs[key] = dict(current)
        if prev is None:
            logger.debug(f"No previous data for key[{key}]")
            return None
        return {name: value - prev[name] for name, value in current.items() if name in prev}

    def __len__(self) -> int:
        return len(self._prevs)
