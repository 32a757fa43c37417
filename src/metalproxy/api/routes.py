"""JSON API endpoints: per-symbol latest/timeseries/change and forced refresh."""

from __future__ import annotations

import math

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from metalproxy.exceptions import UpstreamError
from metalproxy.market_data.price_service import PriceService
from metalproxy.symbols import TrackedSymbol

log = structlog.get_logger(__name__)

router = APIRouter()

DEFAULT_SERIES_LIMIT = 100
CHANGE_DATE_TYPES = frozenset({"recent", "yesterday", "week", "month", "year"})


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _get_service(request: Request) -> PriceService:
    return request.app.state.price_service


def _lookup(service: PriceService, name: str) -> TrackedSymbol | None:
    name = name.lower()
    for tracked in service.tracked:
        if tracked.name == name:
            return tracked
    return None


def parse_limit(raw: str | None, capacity: int, default: int = DEFAULT_SERIES_LIMIT) -> int:
    """Parse the `limit` query value.

    Missing, non-numeric and non-positive values fall back to `default`;
    anything else is clamped to [1, capacity].
    """
    if raw is None:
        return min(default, capacity)
    try:
        value = float(raw)
    except ValueError:
        return min(default, capacity)
    if not math.isfinite(value) or value <= 0:
        return min(default, capacity)
    return max(1, min(int(value), capacity))


@router.get("/{name}/latest")
async def get_latest(name: str, request: Request) -> JSONResponse:
    """Latest derived prices, refreshing first if the cache is empty or stale."""
    service = _get_service(request)
    tracked = _lookup(service, name)
    if tracked is None:
        return _error(404, f"Unknown symbol: {name}")

    try:
        entry = await service.ensure_fresh(tracked.code)
    except UpstreamError as exc:
        log.warning("latest_refresh_failed", symbol=tracked.code, error=str(exc))
        return _error(502, str(exc))

    if entry is None:
        return _error(503, "no data")
    return JSONResponse(content={"success": True, "data": entry.to_payload()})


@router.get("/{name}/timeseries")
async def get_timeseries(
    name: str, request: Request, limit: str | None = None
) -> JSONResponse:
    """Most recent `limit` sampled points, oldest first."""
    service = _get_service(request)
    tracked = _lookup(service, name)
    if tracked is None:
        return _error(404, f"Unknown symbol: {name}")

    n = parse_limit(limit, service.series.capacity)
    points = await service.timeseries(tracked.code, n)
    return JSONResponse(content={
        "success": True,
        "data": {"points": [p.to_payload() for p in points]},
    })


@router.get("/{name}/change")
async def get_change(
    name: str,
    request: Request,
    date_type: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> JSONResponse:
    """Upstream change data for a preset period or explicit date range, passed through."""
    service = _get_service(request)
    tracked = _lookup(service, name)
    if tracked is None:
        return _error(404, f"Unknown symbol: {name}")

    if date_type is not None:
        date_type = date_type.lower()
        if date_type not in CHANGE_DATE_TYPES:
            return _error(
                400,
                f"Invalid date_type: {date_type}. "
                f"Expected one of {', '.join(sorted(CHANGE_DATE_TYPES))}",
            )

    try:
        payload = await service.fetch_change(
            tracked.code,
            date_type=date_type,
            start_date=start_date,
            end_date=end_date,
        )
    except UpstreamError as exc:
        log.warning("change_fetch_failed", symbol=tracked.code, error=str(exc))
        return _error(502, str(exc))

    return JSONResponse(content=payload)


@router.post("/refresh")
async def force_refresh(request: Request) -> JSONResponse:
    """Discard the cache and run one bulk refresh before responding."""
    service = _get_service(request)
    try:
        refreshed = await service.force_refresh()
    except UpstreamError as exc:
        log.error("force_refresh_failed", error=str(exc))
        return _error(500, str(exc))

    log.info("force_refresh_via_api", refreshed=len(refreshed))
    return JSONResponse(content={
        "success": True,
        "message": f"Cache cleared and refreshed {len(refreshed)} symbols",
    })
