"""Price service -- single owner of the symbol cache and time series.

Implements the three refresh paths (bulk, on-demand single symbol, forced)
plus the change proxy. Route handlers and the RefreshScheduler receive the
same PriceService instance; there is no module-level state.

Refresh rules:
- Bulk: one upstream call for every tracked symbol. Symbols present in the
  response are replaced whole; absent ones keep their previous entry.
- On-demand: only for EMPTY or STALE symbols, and never more often than
  once per `min_refresh_seconds` for a symbol that already has an entry.
- Forced: fetch everything, then swap the whole cache in one step.

A failed fetch never touches shared state.
"""

import time
from collections.abc import Callable, Sequence
from typing import Any

from metalproxy.converter import derive_entry
from metalproxy.exceptions import ComputationError, DataGapError
from metalproxy.logging import get_logger
from metalproxy.market_data.symbol_cache import CacheState, SymbolCache
from metalproxy.market_data.timeseries import TimeSeriesStore
from metalproxy.models import CacheEntry, SeriesPoint
from metalproxy.symbols import TRACKED_SYMBOLS, TrackedSymbol
from metalproxy.upstream.client import PriceClient

logger = get_logger(__name__)


class PriceService:
    """Coordinates upstream fetches with the in-memory cache and series."""

    def __init__(
        self,
        client: PriceClient,
        cache: SymbolCache,
        series: TimeSeriesStore,
        refresh_interval: float,
        min_refresh_seconds: float = 60.0,
        base_currency: str = "USD",
        tracked: Sequence[TrackedSymbol] = TRACKED_SYMBOLS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._cache = cache
        self._series = series
        self._refresh_interval = refresh_interval
        self._min_refresh_seconds = min_refresh_seconds
        self._base_currency = base_currency
        self._tracked = {s.code: s for s in tracked}
        self._clock = clock
        # Last on-demand attempt per symbol, successful or not.
        self._last_attempt: dict[str, float] = {}

    @property
    def refresh_interval(self) -> float:
        return self._refresh_interval

    @property
    def base_currency(self) -> str:
        return self._base_currency

    @property
    def tracked(self) -> list[TrackedSymbol]:
        return list(self._tracked.values())

    @property
    def cache(self) -> SymbolCache:
        return self._cache

    @property
    def series(self) -> TimeSeriesStore:
        return self._series

    def _resolve(self, symbol: str) -> TrackedSymbol:
        tracked = self._tracked.get(symbol.upper())
        if tracked is None:
            raise ValueError(f"Symbol {symbol} is not tracked")
        return tracked

    # ──────────────────────────────────────────────
    # Bulk refresh
    # ──────────────────────────────────────────────

    async def _fetch_all_entries(self) -> tuple[list[CacheEntry], float]:
        """Fetch every tracked symbol and derive entries. Touches no state."""
        codes = list(self._tracked)
        result = await self._client.fetch_latest(self._base_currency, codes)
        now = self._clock()

        entries: list[CacheEntry] = []
        missing: list[str] = []
        for code, tracked in self._tracked.items():
            quote = result.quote(code)
            if quote is None:
                missing.append(code)
                continue
            try:
                entries.append(derive_entry(tracked, quote.units_per_base, now))
            except ComputationError as exc:
                logger.warning("quote_conversion_failed", symbol=code, error=str(exc))

        if missing:
            logger.info("bulk_refresh_data_gap", symbols=missing)
        return entries, now

    async def _record_points(self, entries: list[CacheEntry], now: float) -> None:
        for entry in entries:
            await self._series.append(entry.symbol, SeriesPoint(now, entry.display_value))

    async def refresh_all(self) -> list[str]:
        """Refresh every tracked symbol with a single upstream call.

        Returns:
            Codes of the symbols whose entries were replaced.

        Raises:
            UpstreamError: on any upstream failure; the cache is unchanged.
        """
        entries, now = await self._fetch_all_entries()
        await self._cache.put_many(entries)
        await self._record_points(entries, now)

        refreshed = [e.symbol for e in entries]
        logger.info(
            "bulk_refresh_completed",
            refreshed=len(refreshed),
            requested=len(self._tracked),
        )
        return refreshed

    async def force_refresh(self) -> list[str]:
        """Discard all cached entries and repopulate from one bulk fetch.

        The fetch happens first; the old entries are swapped out only once it
        succeeds, so readers see either the old cache or the new one.

        Raises:
            UpstreamError: on any upstream failure; the cache is unchanged.
        """
        entries, now = await self._fetch_all_entries()
        await self._cache.reset(entries)
        self._last_attempt.clear()
        await self._record_points(entries, now)

        refreshed = [e.symbol for e in entries]
        logger.info("force_refresh_completed", refreshed=len(refreshed))
        return refreshed

    # ──────────────────────────────────────────────
    # On-demand refresh
    # ──────────────────────────────────────────────

    async def refresh_symbol(self, symbol: str) -> CacheEntry | None:
        """Fetch and replace a single symbol's entry.

        Skipped when the symbol already has an entry and it was fetched or
        attempted less than `min_refresh_seconds` ago. A symbol with no entry
        is always fetched.

        Returns:
            The symbol's entry after the call (possibly the existing one).

        Raises:
            UpstreamError: on upstream failure; the entry is unchanged.
            DataGapError: if the response has no rate for the symbol.
            ComputationError: if the rate cannot be converted.
        """
        tracked = self._resolve(symbol)
        code = tracked.code
        now = self._clock()

        current = await self._cache.get(code)
        if current is not None:
            last = max(current.timestamp, self._last_attempt.get(code, 0.0))
            if now - last < self._min_refresh_seconds:
                logger.debug("on_demand_refresh_skipped", symbol=code, elapsed=now - last)
                return current

        self._last_attempt[code] = now
        result = await self._client.fetch_latest(self._base_currency, [code])
        quote = result.quote(code)
        if quote is None:
            raise DataGapError(code)

        entry = derive_entry(tracked, quote.units_per_base, now)
        await self._cache.put(entry)
        logger.info("on_demand_refresh_completed", symbol=code)
        return entry

    async def ensure_fresh(self, symbol: str) -> CacheEntry | None:
        """Return the symbol's entry, refreshing it first if EMPTY or STALE.

        Data gaps and conversion failures are soft misses: the existing entry
        (or None) is returned. UpstreamError propagates to the caller.
        """
        code = self._resolve(symbol).code
        state = await self._cache.state(code, self._refresh_interval, now=self._clock())
        if state is CacheState.FRESH:
            return await self._cache.get(code)

        try:
            await self.refresh_symbol(code)
        except (DataGapError, ComputationError) as exc:
            logger.warning("on_demand_refresh_no_data", symbol=code, error=str(exc))
        return await self._cache.get(code)

    # ──────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────

    async def latest(self, symbol: str) -> CacheEntry | None:
        return await self._cache.get(self._resolve(symbol).code)

    async def timeseries(self, symbol: str, limit: int) -> list[SeriesPoint]:
        return await self._series.read(self._resolve(symbol).code, limit)

    async def fetch_change(
        self,
        symbol: str,
        date_type: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> dict[str, Any]:
        """Proxy the upstream change endpoint for one symbol. Not cached."""
        code = self._resolve(symbol).code
        return await self._client.fetch_change(
            self._base_currency,
            [code],
            date_type=date_type,
            start_date=start_date,
            end_date=end_date,
        )
