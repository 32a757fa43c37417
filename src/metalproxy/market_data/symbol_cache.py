"""Shared in-memory cache of the latest derived prices per symbol.

The PriceService writes entries after each refresh; route handlers read
them. Entries are frozen and swapped whole under an asyncio.Lock that is
never held across an upstream call, so reads never wait on the network.
"""

import asyncio
import time
from collections.abc import Callable, Iterable
from enum import Enum

from metalproxy.logging import get_logger
from metalproxy.models import CacheEntry

logger = get_logger(__name__)


class CacheState(str, Enum):
    """Freshness of a symbol's cache entry relative to the refresh interval."""

    EMPTY = "empty"
    FRESH = "fresh"
    STALE = "stale"


class SymbolCache:
    """Latest CacheEntry per symbol with staleness detection.

    An entry's timestamp is the symbol's last successful fetch time, so the
    two can never disagree. Ages are measured against `clock`, which should
    be the same clock the writer stamps entries with.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def put(self, entry: CacheEntry) -> None:
        """Replace the entry for `entry.symbol`."""
        async with self._lock:
            self._entries[entry.symbol] = entry

    async def put_many(self, entries: Iterable[CacheEntry]) -> None:
        """Replace several entries in one critical section."""
        async with self._lock:
            for entry in entries:
                self._entries[entry.symbol] = entry

    async def reset(self, entries: Iterable[CacheEntry] = ()) -> None:
        """Discard every entry, then install `entries`, atomically."""
        async with self._lock:
            self._entries = {entry.symbol: entry for entry in entries}
        logger.debug("symbol_cache_reset", count=len(self._entries))

    async def get(self, symbol: str) -> CacheEntry | None:
        """Return the cached entry for a symbol, or None if never populated."""
        async with self._lock:
            return self._entries.get(symbol)

    async def last_fetch(self, symbol: str) -> float | None:
        """Return the Unix time of the symbol's last successful fetch."""
        entry = await self.get(symbol)
        return entry.timestamp if entry is not None else None

    async def get_age(self, symbol: str, now: float | None = None) -> float | None:
        """Return seconds since the last fetch, or None if the symbol is empty."""
        last = await self.last_fetch(symbol)
        if last is None:
            return None
        return (now if now is not None else self._clock()) - last

    async def state(
        self, symbol: str, max_age_seconds: float, now: float | None = None
    ) -> CacheState:
        """Classify a symbol as EMPTY, FRESH (age < max) or STALE (age >= max)."""
        age = await self.get_age(symbol, now)
        if age is None:
            return CacheState.EMPTY
        if age < max_age_seconds:
            return CacheState.FRESH
        return CacheState.STALE

    async def snapshot(self) -> dict[str, CacheEntry]:
        """Return a shallow copy of all entries."""
        async with self._lock:
            return dict(self._entries)
