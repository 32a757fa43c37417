"""Shared test fixtures for the metal price proxy."""

from unittest.mock import AsyncMock

import pytest

from metalproxy.config import AppSettings, CacheSettings, MetalpriceSettings
from metalproxy.market_data.price_service import PriceService
from metalproxy.market_data.symbol_cache import SymbolCache
from metalproxy.market_data.timeseries import TimeSeriesStore
from metalproxy.models import LatestRates

# Units of symbol per 1 USD, roughly realistic.
LATEST_RATES: dict[str, float] = {
    "XAU": 0.0005,  # 2000 USD/ozt
    "XAG": 0.04,  # 25 USD/ozt
    "XPT": 0.001,  # 1000 USD/ozt
    "XPD": 0.00125,  # 800 USD/ozt
    "XCU": 3.5,
    "NI": 0.6,
    "XCO": 0.9,
    "BRL": 5.0,  # 5 BRL per USD
}

START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (essential plan, dummy API key)."""
    return AppSettings(
        log_level="DEBUG",
        metalprice=MetalpriceSettings(
            api_key="test-api-key",  # type: ignore[arg-type]
            plan="essential",  # type: ignore[arg-type]
            refresh_minutes=None,
        ),
        cache=CacheSettings(),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_client() -> AsyncMock:
    """Mock PriceClient returning LATEST_RATES for every latest request."""
    client = AsyncMock()
    client.fetch_latest = AsyncMock(
        return_value=LatestRates(base="USD", rates=dict(LATEST_RATES))
    )
    return client


@pytest.fixture
def cache(clock: FakeClock) -> SymbolCache:
    return SymbolCache(clock=clock)


@pytest.fixture
def series() -> TimeSeriesStore:
    return TimeSeriesStore(capacity=500, min_spacing=60.0)


@pytest.fixture
def price_service(
    mock_client: AsyncMock,
    cache: SymbolCache,
    series: TimeSeriesStore,
    clock: FakeClock,
) -> PriceService:
    """PriceService over fresh state with a 45-minute interval and 60 s guard."""
    return PriceService(
        client=mock_client,
        cache=cache,
        series=series,
        refresh_interval=45 * 60,
        min_refresh_seconds=60.0,
        clock=clock,
    )
