"""Bounded per-symbol time series of sampled display values.

Each series is a deque capped at `capacity`, so appending past the bound
evicts the oldest point. Live appends are down-sampled to one point per
`min_spacing` seconds; seeded history bypasses the spacing rule and is
merged, sorted and truncated in one step.
"""

import asyncio
from collections import deque
from collections.abc import Iterable

from metalproxy.logging import get_logger
from metalproxy.models import SeriesPoint

logger = get_logger(__name__)


class TimeSeriesStore:
    """Per-symbol FIFO-bounded series with non-decreasing timestamps."""

    def __init__(self, capacity: int = 500, min_spacing: float = 60.0) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._min_spacing = min_spacing
        self._series: dict[str, deque[SeriesPoint]] = {}
        self._lock = asyncio.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    async def append(self, symbol: str, point: SeriesPoint) -> bool:
        """Append a live sample.

        The point is stored only if the series is empty or `point.t` is at
        least `min_spacing` seconds after the last stored point. Earlier or
        too-close points are dropped.

        Returns:
            True if the point was stored.
        """
        async with self._lock:
            series = self._series.get(symbol)
            if series is None:
                series = deque(maxlen=self._capacity)
                self._series[symbol] = series
            elif series and point.t - series[-1].t < self._min_spacing:
                return False
            series.append(point)
            return True

    async def seed(self, symbol: str, points: Iterable[SeriesPoint]) -> int:
        """Merge historical points into a symbol's series.

        Existing and new points are sorted by timestamp once and only the most
        recent `capacity` points are kept.

        Returns:
            Length of the resulting series.
        """
        async with self._lock:
            merged = list(self._series.get(symbol, ()))
            merged.extend(points)
            merged.sort(key=lambda p: p.t)
            self._series[symbol] = deque(merged[-self._capacity:], maxlen=self._capacity)
            return len(self._series[symbol])

    async def read(self, symbol: str, limit: int) -> list[SeriesPoint]:
        """Return the most recent `limit` points (clamped to capacity), oldest first."""
        limit = max(1, min(limit, self._capacity))
        async with self._lock:
            series = self._series.get(symbol)
            if not series:
                return []
            return list(series)[-limit:]

    async def length(self, symbol: str) -> int:
        async with self._lock:
            return len(self._series.get(symbol, ()))

    async def clear(self) -> None:
        async with self._lock:
            self._series.clear()
