"""Custom exceptions for the metal price proxy.

Upstream, conversion and configuration errors live here so the client,
the market data layer and the HTTP routes can share them without
importing each other.
"""


class MetalProxyError(Exception):
    """Base exception for all proxy errors."""


class ConfigError(MetalProxyError):
    """Raised when a required setting (e.g. the API key) is missing."""


class UpstreamError(MetalProxyError):
    """Raised when the price API fails or reports success=false."""

    def __init__(self, info: str, code: int | str | None = None) -> None:
        self.code = code
        self.info = info
        if code is None:
            super().__init__(info)
        else:
            super().__init__(f"{code} {info}")


class DataGapError(MetalProxyError):
    """Raised when a response omits a symbol the caller asked for."""

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"No rate for {symbol} in upstream response")


class ComputationError(MetalProxyError):
    """Raised when a quote cannot be converted (zero, negative or non-finite)."""
