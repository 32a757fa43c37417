"""Metalpriceapi.com client implementation via httpx async.

Every endpoint answers JSON with a boolean `success`, an optional `rates`
mapping and, on failure, `error: {code, info}`. This client turns every
failure shape (transport error, non-JSON body, non-2xx status,
success=false, missing rates) into UpstreamError.
"""

from typing import Any

import httpx

from metalproxy.config import MetalpriceSettings
from metalproxy.exceptions import UpstreamError
from metalproxy.logging import get_logger
from metalproxy.models import LatestRates, TimeframeRates
from metalproxy.upstream.client import PriceClient

logger = get_logger(__name__)


def _parse_rates(raw: dict[str, Any]) -> dict[str, float]:
    """Coerce a symbol->rate mapping to floats, dropping null or junk values.

    A dropped symbol is a data gap for that symbol only, never a failure of
    the whole batch.
    """
    rates: dict[str, float] = {}
    for symbol, value in raw.items():
        if value is None:
            continue
        try:
            rates[symbol] = float(value)
        except (TypeError, ValueError):
            logger.warning("invalid_upstream_rate", symbol=symbol, raw=value)
    return rates


class MetalpriceClient(PriceClient):
    """Concrete upstream client for metalpriceapi.com."""

    def __init__(
        self,
        settings: MetalpriceSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = settings.require_api_key()
        self._base_url = settings.api_base.rstrip("/")
        self._http = http_client or httpx.AsyncClient(
            timeout=settings.timeout_seconds
        )

    async def close(self) -> None:
        """Close the httpx client. Must be called on shutdown to avoid leaks."""
        await self._http.aclose()
        logger.info("metalprice_client_closed")

    async def _get(self, endpoint: str, params: dict[str, str]) -> dict[str, Any]:
        url = f"{self._base_url}/{endpoint}"
        query = {"api_key": self._api_key, **params}
        headers = {"Content-Type": "application/json", "X-API-KEY": self._api_key}

        try:
            response = await self._http.get(url, params=query, headers=headers)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Request to /{endpoint} failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"Non-JSON response from /{endpoint}", code=response.status_code
            ) from exc

        if not isinstance(data, dict):
            raise UpstreamError(
                f"Unexpected payload from /{endpoint}", code=response.status_code
            )

        if data.get("success") is False or not response.is_success:
            error = data.get("error")
            if not isinstance(error, dict):
                error = {}
            info = error.get("info") or error.get("message") or response.reason_phrase
            code = error.get("code", response.status_code)
            logger.warning(
                "metalprice_request_failed", endpoint=endpoint, code=code, info=info
            )
            raise UpstreamError(str(info or "unknown error"), code=code)

        return data

    async def fetch_latest(self, base: str, symbols: list[str]) -> LatestRates:
        """Fetch the latest rates. Raises UpstreamError if `rates` is missing."""
        params = {"base": base}
        if symbols:
            params["currencies"] = ",".join(symbols)

        data = await self._get("latest", params)
        raw_rates = data.get("rates")
        if not isinstance(raw_rates, dict):
            raise UpstreamError("Latest response is missing rates")

        return LatestRates(
            base=str(data.get("base") or base),
            rates=_parse_rates(raw_rates),
            timestamp=data.get("timestamp"),
        )

    async def fetch_timeframe(
        self,
        start_date: str,
        end_date: str,
        base: str,
        symbols: list[str],
    ) -> TimeframeRates:
        """Fetch daily rates keyed by date. Raises UpstreamError if `rates` is missing."""
        params = {"start_date": start_date, "end_date": end_date, "base": base}
        if symbols:
            params["currencies"] = ",".join(symbols)

        data = await self._get("timeframe", params)
        raw_rates = data.get("rates")
        if not isinstance(raw_rates, dict):
            raise UpstreamError("Timeframe response is missing rates")

        by_date: dict[str, dict[str, float]] = {}
        for day, day_rates in raw_rates.items():
            if not isinstance(day_rates, dict):
                continue
            by_date[day] = _parse_rates(day_rates)

        return TimeframeRates(
            base=str(data.get("base") or base),
            start_date=str(data.get("start_date") or start_date),
            end_date=str(data.get("end_date") or end_date),
            rates=by_date,
        )

    async def fetch_change(
        self,
        base: str,
        symbols: list[str],
        date_type: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> dict[str, Any]:
        params = {"base": base}
        if symbols:
            params["currencies"] = ",".join(symbols)
        if date_type:
            params["date_type"] = date_type
        if start_date:
            params["start_date"] = start_date
        if end_date:
            params["end_date"] = end_date

        return await self._get("change", params)
