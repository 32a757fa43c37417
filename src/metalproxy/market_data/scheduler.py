"""Refresh scheduler -- periodic bulk refresh of all tracked symbols.

Refreshes once immediately on start, then every `interval` seconds. The
interval comes from the plan tier unless overridden, so the monthly request
allowance is respected. A failed tick is logged and swallowed; the next tick
still fires. The loop runs as an asyncio task that the application lifespan
cancels on shutdown, so it never keeps the process alive on its own.
"""

import asyncio

from metalproxy.logging import get_logger
from metalproxy.market_data.price_service import PriceService

logger = get_logger(__name__)


class RefreshScheduler:
    """Drives PriceService.refresh_all at a fixed interval."""

    def __init__(self, service: PriceService, interval: float) -> None:
        self._service = service
        self._interval = interval
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._ticks = 0
        self._failures = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def interval(self) -> float:
        return self._interval

    async def start(self) -> None:
        """Begin periodic refresh in the background."""
        if self._running:
            logger.warning("refresh_scheduler_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("refresh_scheduler_started", interval=self._interval)

    async def stop(self) -> None:
        """Cancel the refresh task and wait for it to finish."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("refresh_scheduler_stopped", ticks=self._ticks, failures=self._failures)

    async def _run_loop(self) -> None:
        while self._running:
            await self.tick()
            if self._running:
                await asyncio.sleep(self._interval)

    async def tick(self) -> bool:
        """Run one bulk refresh. Returns False if it failed."""
        self._ticks += 1
        try:
            await self._service.refresh_all()
            return True
        except asyncio.CancelledError:
            raise
        except Exception:
            self._failures += 1
            logger.warning("scheduled_refresh_failed", tick=self._ticks, exc_info=True)
            return False
