"""Tracked symbol registry.

The tracked set is fixed for the process lifetime. A symbol's category
decides which derived units its cache entry carries and which value is
recorded into its time series.
"""

from dataclasses import dataclass
from enum import Enum


class SymbolCategory(str, Enum):
    """Conversion category of a tracked symbol."""

    PRECIOUS = "precious"  # troy ounce, ounce price displayed
    POUND_PRICED = "pound_priced"  # avoirdupois, pound price displayed
    TON_PRICED = "ton_priced"  # avoirdupois, metric ton price displayed
    FIAT = "fiat"  # currency, raw FX rate displayed


@dataclass(frozen=True)
class TrackedSymbol:
    """A symbol polled from upstream and exposed under /api/{name}."""

    code: str
    name: str
    category: SymbolCategory

    @property
    def is_precious(self) -> bool:
        return self.category is SymbolCategory.PRECIOUS


TRACKED_SYMBOLS: tuple[TrackedSymbol, ...] = (
    TrackedSymbol("XAU", "gold", SymbolCategory.PRECIOUS),
    TrackedSymbol("XAG", "silver", SymbolCategory.PRECIOUS),
    TrackedSymbol("XPT", "platinum", SymbolCategory.PRECIOUS),
    TrackedSymbol("XPD", "palladium", SymbolCategory.PRECIOUS),
    TrackedSymbol("XCU", "copper", SymbolCategory.POUND_PRICED),
    TrackedSymbol("NI", "nickel", SymbolCategory.POUND_PRICED),
    TrackedSymbol("XCO", "cobalt", SymbolCategory.TON_PRICED),
    TrackedSymbol("BRL", "brl", SymbolCategory.FIAT),
)

PRECIOUS_CODES: frozenset[str] = frozenset(
    s.code for s in TRACKED_SYMBOLS if s.is_precious
)

_BY_CODE = {s.code: s for s in TRACKED_SYMBOLS}


def get_by_code(code: str) -> TrackedSymbol | None:
    """Look up a tracked symbol by upstream code (case-insensitive)."""
    return _BY_CODE.get(code.upper())
