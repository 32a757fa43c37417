"""Abstract price API client interface.

Defines the contract for upstream price sources. The market data layer
depends only on this interface, keeping wire details isolated in the
concrete implementation.
"""

from abc import ABC, abstractmethod
from typing import Any

from metalproxy.models import LatestRates, TimeframeRates


class PriceClient(ABC):
    """Abstract base class for upstream price API clients.

    Implementations issue exactly one request per call. They do not retry,
    cache or rate-limit; that belongs to the market data layer.
    """

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying HTTP resources."""
        ...

    @abstractmethod
    async def fetch_latest(self, base: str, symbols: list[str]) -> LatestRates:
        """Fetch the latest rates for `symbols` quoted against `base`."""
        ...

    @abstractmethod
    async def fetch_timeframe(
        self,
        start_date: str,
        end_date: str,
        base: str,
        symbols: list[str],
    ) -> TimeframeRates:
        """Fetch daily rates between two YYYY-MM-DD dates (inclusive)."""
        ...

    @abstractmethod
    async def fetch_change(
        self,
        base: str,
        symbols: list[str],
        date_type: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> dict[str, Any]:
        """Fetch rate change data for a preset (date_type) or a date range.

        The upstream payload is returned as-is after the success check.
        """
        ...
