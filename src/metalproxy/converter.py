"""Unit conversion from upstream quotes to human-usable prices.

The upstream API quotes every symbol as "units of symbol per 1 USD". For a
metal the unit is one ounce, so the USD price per ounce is the reciprocal.
Precious metals are quoted in troy ounces; everything else uses the
avoirdupois ounce. No rounding is applied here.
"""

import math

from metalproxy.exceptions import ComputationError
from metalproxy.models import (
    CacheEntry,
    FiatRateEntry,
    PoundPricedEntry,
    PreciousMetalEntry,
    TonPricedEntry,
)
from metalproxy.symbols import PRECIOUS_CODES, SymbolCategory, TrackedSymbol

TROY_OUNCE_GRAMS = 31.1034768
OUNCE_GRAMS = 28.349523125
POUND_GRAMS = 453.59237
METRIC_TON_GRAMS = 1_000_000.0


def _validate_quote(quote: float) -> float:
    try:
        value = float(quote)
    except (TypeError, ValueError) as exc:
        raise ComputationError(f"Quote is not numeric: {quote!r}") from exc
    if not math.isfinite(value) or value <= 0:
        raise ComputationError(f"Quote must be positive and finite, got {quote!r}")
    return value


def grams_per_ounce(symbol: str) -> float:
    """Ounce mass in grams: troy for precious metals, avoirdupois otherwise."""
    return TROY_OUNCE_GRAMS if symbol.upper() in PRECIOUS_CODES else OUNCE_GRAMS


def price_per_ounce(quote: float) -> float:
    """USD per ounce for a units-per-USD quote."""
    return 1.0 / _validate_quote(quote)


def price_per_gram(symbol: str, quote: float) -> float:
    return price_per_ounce(quote) / grams_per_ounce(symbol)


def price_per_pound(symbol: str, quote: float) -> float:
    return price_per_gram(symbol, quote) * POUND_GRAMS


def price_per_metric_ton(symbol: str, quote: float) -> float:
    return price_per_gram(symbol, quote) * METRIC_TON_GRAMS


def derive_entry(tracked: TrackedSymbol, quote: float, timestamp: float) -> CacheEntry:
    """Build the cache entry variant for `tracked` from a raw quote.

    Args:
        tracked: The symbol being converted; its category picks the variant.
        quote: Units of the symbol per 1 USD.
        timestamp: Unix seconds of derivation.

    Raises:
        ComputationError: if the quote is zero, negative or non-finite.
    """
    units_per_usd = _validate_quote(quote)
    usd_per_ounce = 1.0 / units_per_usd
    usd_per_gram = usd_per_ounce / grams_per_ounce(tracked.code)

    common = {
        "symbol": tracked.code,
        "usd_per_ounce": usd_per_ounce,
        "usd_per_gram": usd_per_gram,
        "timestamp": timestamp,
    }

    if tracked.category is SymbolCategory.POUND_PRICED:
        return PoundPricedEntry(**common, usd_per_pound=usd_per_gram * POUND_GRAMS)
    if tracked.category is SymbolCategory.TON_PRICED:
        return TonPricedEntry(
            **common, usd_per_metric_ton=usd_per_gram * METRIC_TON_GRAMS
        )
    if tracked.category is SymbolCategory.FIAT:
        return FiatRateEntry(**common, fx_rate=units_per_usd)
    return PreciousMetalEntry(**common)
