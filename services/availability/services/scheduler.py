"""
Nightly slot regeneration.

The scheduler only decides *when* to run; the work itself is the injected
``regenerate`` coroutine (``AvailabilityService.regenerate_all_active_profiles``),
which an external cron can also trigger through the admin endpoint.
"""

import asyncio
from datetime import datetime, time, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from services.availability.models.time_utils import load_zone
from services.common.logging_config import get_logger

logger = get_logger(__name__)

DAY_SECONDS = 24 * 60 * 60


def seconds_until_next_midnight(now: datetime, time_zone: str) -> float:
    """Seconds from ``now`` until the next local midnight in ``time_zone``."""
    zone = load_zone(time_zone)
    local_now = now.astimezone(zone)
    tomorrow = local_now.date() + timedelta(days=1)
    midnight = datetime.combine(tomorrow, time(), tzinfo=zone)
    # Aware datetimes sharing a tzinfo subtract as wall-clock times
    elapsed = midnight.astimezone(timezone.utc) - now.astimezone(timezone.utc)
    return max(0.0, elapsed.total_seconds())


class SlotRegenerationScheduler:
    def __init__(
        self,
        regenerate: Callable[[], Awaitable[Dict[str, Any]]],
        clock: Callable[[], datetime],
        time_zone: str = "UTC",
        interval_seconds: float = DAY_SECONDS,
    ) -> None:
        self._regenerate = regenerate
        self._clock = clock
        self.time_zone = time_zone
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info("Slot regeneration scheduler started", time_zone=self.time_zone)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Slot regeneration scheduler stopped", runs=self.runs)

    async def run_once(self) -> Dict[str, Any]:
        summary = await self._regenerate()
        self.runs += 1
        logger.info("Scheduled slot regeneration finished", **summary)
        return summary

    async def _run(self) -> None:
        delay = seconds_until_next_midnight(self._clock(), self.time_zone)
        while True:
            await asyncio.sleep(delay)
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Scheduled slot regeneration failed", error=str(e), exc_info=True)
            delay = self.interval_seconds
