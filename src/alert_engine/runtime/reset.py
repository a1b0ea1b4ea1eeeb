from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from alert_engine.tracking.high_water import HighWaterMarkTracker
from alert_engine.utils.logger import get_logger, log_info

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def seconds_until_next_midnight(now: datetime) -> float:
    """Seconds from `now` to the next UTC midnight (always > 0)."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    next_day = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return max((next_day - now).total_seconds(), 0.001)


class DailyResetScheduler:
    """Clear every instrument's daily high at each UTC midnight.

    Volume history is left untouched; only the high-water marks roll over.
    """

    def __init__(
        self,
        high_water: HighWaterMarkTracker,
        *,
        clock: Clock | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._high_water = high_water
        self._clock = clock or _utcnow
        self._sleep = sleep or asyncio.sleep
        self._logger = logger or get_logger(f"alert_engine.runtime.{self.__class__.__name__}")
        self.resets = 0

    def reset_now(self) -> int:
        cleared = self._high_water.reset()
        self.resets += 1
        log_info(self._logger, "reset.daily_highs", cleared=cleared, resets=self.resets)
        return cleared

    async def run(self) -> None:
        while True:
            delay = seconds_until_next_midnight(self._clock())
            await self._sleep(delay)
            self.reset_now()
