"""Market data layer -- symbol cache, time series, refresh scheduling and seeding."""

from metalproxy.market_data.price_service import PriceService
from metalproxy.market_data.scheduler import RefreshScheduler
from metalproxy.market_data.seeder import HistorySeeder
from metalproxy.market_data.symbol_cache import CacheState, SymbolCache
from metalproxy.market_data.timeseries import TimeSeriesStore

__all__ = [
    "CacheState",
    "HistorySeeder",
    "PriceService",
    "RefreshScheduler",
    "SymbolCache",
    "TimeSeriesStore",
]
