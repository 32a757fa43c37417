"""Tests for PriceService refresh paths.

The upstream client is an AsyncMock and time is driven by FakeClock, so
the staleness and rate-limit windows are exercised without sleeping.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import LATEST_RATES, START_TIME, FakeClock
from metalproxy.exceptions import UpstreamError
from metalproxy.market_data.price_service import PriceService
from metalproxy.market_data.symbol_cache import CacheState
from metalproxy.models import LatestRates, PoundPricedEntry


def _rates(**overrides: float | None) -> LatestRates:
    rates = dict(LATEST_RATES)
    for code, value in overrides.items():
        if value is None:
            rates.pop(code, None)
        else:
            rates[code] = value
    return LatestRates(base="USD", rates=rates)


# ---------------------------------------------------------------------------
# Bulk refresh
# ---------------------------------------------------------------------------


class TestRefreshAll:

    @pytest.mark.asyncio
    async def test_single_upstream_call_for_all_symbols(
        self, price_service: PriceService, mock_client: AsyncMock
    ) -> None:
        refreshed = await price_service.refresh_all()

        assert mock_client.fetch_latest.await_count == 1
        base, codes = mock_client.fetch_latest.await_args.args
        assert base == "USD"
        assert set(codes) == set(LATEST_RATES)
        assert set(refreshed) == set(LATEST_RATES)

    @pytest.mark.asyncio
    async def test_entries_derived_and_timestamped(self, price_service: PriceService) -> None:
        await price_service.refresh_all()

        gold = await price_service.latest("XAU")
        assert gold is not None
        assert gold.usd_per_ounce == pytest.approx(2000.0)
        assert gold.timestamp == START_TIME

        copper = await price_service.latest("xcu")
        assert isinstance(copper, PoundPricedEntry)

    @pytest.mark.asyncio
    async def test_missing_symbol_keeps_previous_entry(
        self, price_service: PriceService, mock_client: AsyncMock, clock: FakeClock
    ) -> None:
        await price_service.refresh_all()
        clock.advance(3000)
        mock_client.fetch_latest.return_value = _rates(XAG=None, XAU=0.0004)

        refreshed = await price_service.refresh_all()

        assert "XAG" not in refreshed
        silver = await price_service.latest("XAG")
        assert silver is not None
        assert silver.timestamp == START_TIME
        gold = await price_service.latest("XAU")
        assert gold is not None
        assert gold.usd_per_ounce == pytest.approx(2500.0)
        assert gold.timestamp == START_TIME + 3000

    @pytest.mark.asyncio
    async def test_unconvertible_quote_skipped(
        self, price_service: PriceService, mock_client: AsyncMock
    ) -> None:
        mock_client.fetch_latest.return_value = _rates(XPT=0.0)

        refreshed = await price_service.refresh_all()

        assert "XPT" not in refreshed
        assert await price_service.latest("XPT") is None
        assert await price_service.latest("XAU") is not None

    @pytest.mark.asyncio
    async def test_failure_leaves_cache_untouched(
        self, price_service: PriceService, mock_client: AsyncMock, clock: FakeClock
    ) -> None:
        await price_service.refresh_all()
        before = await price_service.cache.snapshot()
        clock.advance(3000)
        mock_client.fetch_latest.side_effect = UpstreamError("timeout")

        with pytest.raises(UpstreamError):
            await price_service.refresh_all()

        assert await price_service.cache.snapshot() == before

    @pytest.mark.asyncio
    async def test_appends_series_points_with_spacing(
        self, price_service: PriceService, clock: FakeClock
    ) -> None:
        await price_service.refresh_all()
        clock.advance(30)
        await price_service.refresh_all()
        assert len(await price_service.timeseries("XAU", 100)) == 1

        clock.advance(30)
        await price_service.refresh_all()
        points = await price_service.timeseries("XAU", 100)
        assert [p.t for p in points] == [START_TIME, START_TIME + 60]
        assert points[0].v == pytest.approx(2000.0)

    @pytest.mark.asyncio
    async def test_series_uses_display_value(self, price_service: PriceService) -> None:
        await price_service.refresh_all()
        brl = await price_service.timeseries("BRL", 1)
        assert brl[0].v == 5.0
        copper = await price_service.latest("XCU")
        assert isinstance(copper, PoundPricedEntry)
        assert (await price_service.timeseries("XCU", 1))[0].v == copper.usd_per_pound


# ---------------------------------------------------------------------------
# Forced refresh
# ---------------------------------------------------------------------------


class TestForceRefresh:

    @pytest.mark.asyncio
    async def test_replaces_whole_cache(
        self, price_service: PriceService, mock_client: AsyncMock, clock: FakeClock
    ) -> None:
        await price_service.refresh_all()
        clock.advance(10)
        mock_client.fetch_latest.return_value = _rates(XAG=None)

        refreshed = await price_service.force_refresh()

        assert "XAG" not in refreshed
        assert await price_service.latest("XAG") is None
        gold = await price_service.latest("XAU")
        assert gold is not None
        assert gold.timestamp == START_TIME + 10

    @pytest.mark.asyncio
    async def test_concurrent_calls_never_expose_mixed_generations(
        self, price_service: PriceService, mock_client: AsyncMock
    ) -> None:
        # Second generation quotes twice as many units per USD, halving prices.
        generations = [
            LatestRates(base="USD", rates=dict(LATEST_RATES)),
            LatestRates(base="USD", rates={k: v * 2 for k, v in LATEST_RATES.items()}),
        ]

        async def slow_fetch(base: str, codes: list[str]) -> LatestRates:
            result = generations.pop(0)
            await asyncio.sleep(0)
            return result

        mock_client.fetch_latest.side_effect = slow_fetch
        done = asyncio.Event()
        observed: list[set[float]] = []

        async def writers() -> None:
            await asyncio.gather(price_service.force_refresh(), price_service.force_refresh())
            done.set()

        async def reader() -> None:
            while not done.is_set():
                snapshot = await price_service.cache.snapshot()
                if snapshot:
                    scales = {
                        round(entry.usd_per_ounce * LATEST_RATES[code], 6)
                        for code, entry in snapshot.items()
                    }
                    observed.append(scales)
                    assert len(snapshot) == len(LATEST_RATES)
                    assert len({entry.timestamp for entry in snapshot.values()}) == 1
                await asyncio.sleep(0)

        await asyncio.gather(writers(), reader())

        assert mock_client.fetch_latest.await_count == 2
        assert observed
        assert all(len(scales) == 1 for scales in observed)
        final = await price_service.cache.snapshot()
        assert len({round(e.usd_per_ounce * LATEST_RATES[c], 6) for c, e in final.items()}) == 1

    @pytest.mark.asyncio
    async def test_failure_keeps_old_cache(
        self, price_service: PriceService, mock_client: AsyncMock
    ) -> None:
        await price_service.refresh_all()
        before = await price_service.cache.snapshot()
        mock_client.fetch_latest.side_effect = UpstreamError("boom", code=500)

        with pytest.raises(UpstreamError):
            await price_service.force_refresh()

        assert await price_service.cache.snapshot() == before


# ---------------------------------------------------------------------------
# On-demand refresh
# ---------------------------------------------------------------------------


class TestEnsureFresh:

    @pytest.mark.asyncio
    async def test_fresh_entry_served_without_fetch(
        self, price_service: PriceService, mock_client: AsyncMock, clock: FakeClock
    ) -> None:
        await price_service.refresh_all()
        clock.advance(600)

        entry = await price_service.ensure_fresh("XAU")

        assert entry is not None
        assert mock_client.fetch_latest.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_symbol_always_fetched(
        self, price_service: PriceService, mock_client: AsyncMock
    ) -> None:
        entry = await price_service.ensure_fresh("XAU")

        assert entry is not None
        assert entry.usd_per_ounce == pytest.approx(2000.0)
        mock_client.fetch_latest.assert_awaited_once_with("USD", ["XAU"])

    @pytest.mark.asyncio
    async def test_on_demand_does_not_append_series(
        self, price_service: PriceService
    ) -> None:
        await price_service.ensure_fresh("XAU")
        assert await price_service.timeseries("XAU", 10) == []

    @pytest.mark.asyncio
    async def test_stale_entry_refetched(
        self, price_service: PriceService, mock_client: AsyncMock, clock: FakeClock
    ) -> None:
        await price_service.refresh_all()
        clock.advance(45 * 60)
        assert await price_service.cache.state(
            "XAU", price_service.refresh_interval, now=clock()
        ) is CacheState.STALE
        mock_client.fetch_latest.return_value = _rates(XAU=0.00025)

        entry = await price_service.ensure_fresh("XAU")

        assert entry is not None
        assert entry.usd_per_ounce == pytest.approx(4000.0)
        assert entry.timestamp == clock()
        assert mock_client.fetch_latest.await_count == 2

    @pytest.mark.asyncio
    async def test_rate_limited_after_failed_attempt(
        self, price_service: PriceService, mock_client: AsyncMock, clock: FakeClock
    ) -> None:
        await price_service.refresh_all()
        clock.advance(3000)
        mock_client.fetch_latest.return_value = _rates(XAU=None)

        # Data gap: attempt is recorded, previous entry still served.
        entry = await price_service.ensure_fresh("XAU")
        assert entry is not None
        assert entry.timestamp == START_TIME
        assert mock_client.fetch_latest.await_count == 2

        clock.advance(30)
        await price_service.ensure_fresh("XAU")
        assert mock_client.fetch_latest.await_count == 2

        clock.advance(31)
        await price_service.ensure_fresh("XAU")
        assert mock_client.fetch_latest.await_count == 3

    @pytest.mark.asyncio
    async def test_data_gap_on_empty_returns_none(
        self, price_service: PriceService, mock_client: AsyncMock
    ) -> None:
        mock_client.fetch_latest.return_value = _rates(XAU=None)
        assert await price_service.ensure_fresh("XAU") is None

    @pytest.mark.asyncio
    async def test_empty_symbol_retried_even_within_window(
        self, price_service: PriceService, mock_client: AsyncMock, clock: FakeClock
    ) -> None:
        mock_client.fetch_latest.return_value = _rates(XAU=None)
        await price_service.ensure_fresh("XAU")
        clock.advance(5)
        mock_client.fetch_latest.return_value = _rates()

        entry = await price_service.ensure_fresh("XAU")

        assert entry is not None
        assert mock_client.fetch_latest.await_count == 2

    @pytest.mark.asyncio
    async def test_upstream_error_propagates(
        self, price_service: PriceService, mock_client: AsyncMock
    ) -> None:
        mock_client.fetch_latest.side_effect = UpstreamError("down", code=503)
        with pytest.raises(UpstreamError):
            await price_service.ensure_fresh("XAU")
        assert await price_service.latest("XAU") is None

    @pytest.mark.asyncio
    async def test_unknown_symbol_rejected(self, price_service: PriceService) -> None:
        with pytest.raises(ValueError):
            await price_service.ensure_fresh("XYZ")


# ---------------------------------------------------------------------------
# Change proxy
# ---------------------------------------------------------------------------


class TestFetchChange:

    @pytest.mark.asyncio
    async def test_proxies_to_client(
        self, price_service: PriceService, mock_client: AsyncMock
    ) -> None:
        payload = {"success": True, "rates": {"XAU": {"change": 1.0}}}
        mock_client.fetch_change = AsyncMock(return_value=payload)

        result = await price_service.fetch_change("xau", date_type="month")

        assert result == payload
        mock_client.fetch_change.assert_awaited_once_with(
            "USD", ["XAU"], date_type="month", start_date=None, end_date=None
        )

    @pytest.mark.asyncio
    async def test_not_cached(
        self, price_service: PriceService, mock_client: AsyncMock
    ) -> None:
        mock_client.fetch_change = AsyncMock(return_value={"success": True})
        await price_service.fetch_change("XAU")
        await price_service.fetch_change("XAU")
        assert mock_client.fetch_change.await_count == 2
