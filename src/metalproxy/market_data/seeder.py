"""One-shot history seeder.

On startup, back-fills the time series with daily rates for the last
`lookback_days` days from a single timeframe query. Historical points are
one per day, so they bypass the live spacing rule; each symbol's series is
sorted and truncated once after the merge.

Seeding is best effort. Any failure is logged and dropped, and the service
keeps running with whatever series it has (possibly empty).
"""

import asyncio
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone

from metalproxy.converter import derive_entry
from metalproxy.exceptions import ComputationError
from metalproxy.logging import get_logger
from metalproxy.market_data.timeseries import TimeSeriesStore
from metalproxy.models import SeriesPoint
from metalproxy.symbols import TRACKED_SYMBOLS, TrackedSymbol
from metalproxy.upstream.client import PriceClient

logger = get_logger(__name__)

_DATE_FORMAT = "%Y-%m-%d"


def _day_to_timestamp(day: str) -> float:
    """Unix seconds at 00:00 UTC of a YYYY-MM-DD date."""
    return datetime.strptime(day, _DATE_FORMAT).replace(tzinfo=timezone.utc).timestamp()


class HistorySeeder:
    """Populates a TimeSeriesStore from one historical range query."""

    def __init__(
        self,
        client: PriceClient,
        series: TimeSeriesStore,
        lookback_days: int = 30,
        base_currency: str = "USD",
        tracked: Sequence[TrackedSymbol] = TRACKED_SYMBOLS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._series = series
        self._lookback_days = lookback_days
        self._base_currency = base_currency
        self._tracked = list(tracked)
        self._clock = clock
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    def _date_range(self) -> tuple[str, str]:
        end = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        start = end - timedelta(days=self._lookback_days)
        return start.strftime(_DATE_FORMAT), end.strftime(_DATE_FORMAT)

    async def seed(self) -> int:
        """Run the seed query once and merge the results.

        Returns:
            Number of historical points added across all symbols (0 on failure).
        """
        start_date, end_date = self._date_range()
        try:
            result = await self._client.fetch_timeframe(
                start_date,
                end_date,
                self._base_currency,
                [s.code for s in self._tracked],
            )

            points: dict[str, list[SeriesPoint]] = {s.code: [] for s in self._tracked}
            for day in sorted(result.rates):
                t = _day_to_timestamp(day)
                day_rates = result.rates[day]
                for tracked in self._tracked:
                    quote = day_rates.get(tracked.code)
                    if quote is None:
                        continue
                    try:
                        entry = derive_entry(tracked, quote, t)
                    except ComputationError:
                        logger.debug("history_point_skipped", symbol=tracked.code, day=day)
                        continue
                    points[tracked.code].append(SeriesPoint(t, entry.display_value))

            added = 0
            for code, symbol_points in points.items():
                if symbol_points:
                    await self._series.seed(code, symbol_points)
                    added += len(symbol_points)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning(
                "history_seed_failed",
                start_date=start_date,
                end_date=end_date,
                exc_info=True,
            )
            return 0

        logger.info(
            "history_seed_completed",
            start_date=start_date,
            end_date=end_date,
            points=added,
        )
        return added

    def start(self) -> None:
        """Run `seed` as a background task so startup is not blocked."""
        if self._task is not None and not self._task.done():
            logger.warning("history_seed_already_running")
            return
        self._task = asyncio.create_task(self.seed())

    async def stop(self) -> None:
        """Cancel the seed task if it is still running."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
