"""Shared data models for the metal price proxy.

Cache entries are frozen and replaced whole; readers never observe a
half-updated entry. Timestamps are Unix seconds (float) internally and
Unix milliseconds on the wire.
"""

from dataclasses import dataclass, field
from typing import Any


def to_millis(timestamp: float) -> int:
    """Convert a Unix-seconds timestamp to integer milliseconds."""
    return int(round(timestamp * 1000))


@dataclass(frozen=True)
class RateQuote:
    """A single upstream observation: units of `symbol` per 1 unit of `base`."""

    symbol: str
    units_per_base: float
    base: str = "USD"


@dataclass(frozen=True)
class CacheEntry:
    """Derived prices for one symbol. `timestamp` doubles as its last fetch time."""

    symbol: str
    usd_per_ounce: float
    usd_per_gram: float
    timestamp: float

    @property
    def display_value(self) -> float:
        """The primary unit recorded into this symbol's time series."""
        return self.usd_per_ounce

    def to_payload(self) -> dict[str, Any]:
        return {
            "usdPerOunce": self.usd_per_ounce,
            "usdPerGram": self.usd_per_gram,
            "timestamp": to_millis(self.timestamp),
        }


@dataclass(frozen=True)
class PreciousMetalEntry(CacheEntry):
    """Troy-ounce metal (gold, silver, platinum, palladium)."""


@dataclass(frozen=True)
class PoundPricedEntry(CacheEntry):
    """Industrial metal quoted per pound (copper, nickel)."""

    usd_per_pound: float = 0.0

    @property
    def display_value(self) -> float:
        return self.usd_per_pound

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["usdPerPound"] = self.usd_per_pound
        return payload


@dataclass(frozen=True)
class TonPricedEntry(CacheEntry):
    """Industrial metal quoted per metric ton (cobalt)."""

    usd_per_metric_ton: float = 0.0

    @property
    def display_value(self) -> float:
        return self.usd_per_metric_ton

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["usdPerMetricTon"] = self.usd_per_metric_ton
        return payload


@dataclass(frozen=True)
class FiatRateEntry(CacheEntry):
    """Fiat currency; `fx_rate` is units of currency per 1 USD."""

    fx_rate: float = 0.0

    @property
    def display_value(self) -> float:
        return self.fx_rate

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload[f"fxUsd{self.symbol.capitalize()}"] = self.fx_rate
        return payload


@dataclass(frozen=True, order=True)
class SeriesPoint:
    """A sampled (timestamp, display value) pair."""

    t: float
    v: float

    def to_payload(self) -> dict[str, Any]:
        return {"t": to_millis(self.t), "v": self.v}


@dataclass
class LatestRates:
    """Normalized /latest response. Symbols without a rate are absent."""

    base: str
    rates: dict[str, float] = field(default_factory=dict)
    timestamp: int | None = None  # upstream Unix seconds, when provided

    def quote(self, symbol: str) -> RateQuote | None:
        value = self.rates.get(symbol)
        if value is None:
            return None
        return RateQuote(symbol=symbol, units_per_base=value, base=self.base)


@dataclass
class TimeframeRates:
    """Normalized /timeframe response: date (YYYY-MM-DD) -> symbol -> rate."""

    base: str
    start_date: str
    end_date: str
    rates: dict[str, dict[str, float]] = field(default_factory=dict)
