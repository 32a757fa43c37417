"""Entry point for the metal price proxy.

Wires all components together and serves the FastAPI app with uvicorn.
The refresh scheduler and history seeder run on the same asyncio event
loop, started and stopped by FastAPI's lifespan context manager.

Component wiring order (in _build_components):
1. AppSettings (configuration, fails fast without an API key)
2. Logging setup
3. MetalpriceClient (upstream HTTP client)
4. SymbolCache + TimeSeriesStore (in-memory state)
5. PriceService (owns the state, implements refresh paths)
6. RefreshScheduler (periodic bulk refresh)
7. HistorySeeder (one-shot back-fill)
"""

import asyncio
import sys
import time
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from metalproxy.config import AppSettings
from metalproxy.exceptions import ConfigError
from metalproxy.logging import get_logger, setup_logging
from metalproxy.market_data.price_service import PriceService
from metalproxy.market_data.scheduler import RefreshScheduler
from metalproxy.market_data.seeder import HistorySeeder
from metalproxy.market_data.symbol_cache import SymbolCache
from metalproxy.market_data.timeseries import TimeSeriesStore
from metalproxy.upstream.metalprice_client import MetalpriceClient


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Raises:
        ConfigError: if the upstream API key is missing.
    """
    logger = get_logger("metalproxy.main")

    client = MetalpriceClient(settings.metalprice)
    clock = time.time
    cache = SymbolCache(clock=clock)
    series = TimeSeriesStore(
        capacity=settings.cache.max_series_points,
        min_spacing=settings.cache.series_min_spacing_seconds,
    )

    interval = settings.metalprice.refresh_interval_seconds
    service = PriceService(
        client=client,
        cache=cache,
        series=series,
        refresh_interval=interval,
        min_refresh_seconds=settings.cache.min_refresh_seconds,
        base_currency=settings.cache.base_currency,
        clock=clock,
    )
    scheduler = RefreshScheduler(service, interval)
    seeder = HistorySeeder(
        client=client,
        series=series,
        lookback_days=settings.cache.seed_lookback_days,
        base_currency=settings.cache.base_currency,
        clock=clock,
    )

    estimated = settings.metalprice.estimated_monthly_requests
    if estimated > settings.metalprice.monthly_quota:
        logger.warning(
            "refresh_interval_exceeds_quota",
            interval_seconds=interval,
            estimated_monthly_requests=estimated,
            monthly_quota=settings.metalprice.monthly_quota,
        )

    return {
        "client": client,
        "cache": cache,
        "series": series,
        "price_service": service,
        "scheduler": scheduler,
        "seeder": seeder,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the scheduler and seeder on startup; stop them and close the client on shutdown."""
    logger = get_logger("metalproxy.main")
    settings: AppSettings = app.state.settings
    components = app.state.components

    app.state.price_service = components["price_service"]

    # Seeder and first scheduler tick run concurrently; neither blocks serving.
    if settings.cache.seed_on_startup:
        components["seeder"].start()
    await components["scheduler"].start()

    logger.info(
        "lifespan_started",
        plan=settings.metalprice.plan.value,
        refresh_interval=settings.metalprice.refresh_interval_seconds,
    )

    yield

    await components["scheduler"].stop()
    await components["seeder"].stop()
    await components["client"].close()

    logger.info("metalproxy_stopped")


async def run() -> None:
    """Run the proxy: load settings, build components, serve HTTP."""
    settings = AppSettings()

    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("metalproxy.main")

    try:
        components = _build_components(settings)
    except ConfigError as exc:
        logger.error("configuration_error", error=str(exc))
        sys.exit(1)

    from metalproxy.api.app import create_app

    app = create_app(lifespan=lifespan)
    app.state.settings = settings
    app.state.components = components

    logger.info(
        "starting_server",
        host=settings.server.host,
        port=settings.server.port,
    )

    config = uvicorn.Config(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
