"""
Watch mode: run ``cron`` ticks on an interval inside one process.

Each tick is a full, independently leased ``cron`` invocation. Overlapping
ticks are coalesced so a slow tick never runs twice concurrently.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from remindq.engine import CronResult, QueueEngine
from remindq.errors import ReminderQueueError

logger = logging.getLogger(__name__)

JOB_ID = "remindq-cron"


class CronWatcher:
    """Manages APScheduler lifecycle for periodic cron ticks."""

    def __init__(
        self,
        engine: QueueEngine,
        interval_seconds: float = 60.0,
        on_result: Optional[Callable[[CronResult], None]] = None,
    ):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.on_result = on_result
        self._scheduler = AsyncIOScheduler()
        self._stop = asyncio.Event()
        self._started = False
        self.ticks = 0

    async def tick(self) -> Optional[CronResult]:
        """Run one cron invocation; errors are logged and the watcher keeps going."""
        self.ticks += 1
        try:
            result = await self.engine.cron()
        except ReminderQueueError as e:
            logger.error(f"cron tick {self.ticks} failed: {e}")
            return None
        if self.on_result:
            self.on_result(result)
        return result

    def start(self) -> None:
        if self._started:
            return
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=JOB_ID,
            name="reminder cron tick",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
            replace_existing=True,
        )
        self._scheduler.start()
        self._started = True
        logger.info(f"Watching reminders every {self.interval_seconds:g}s")

    def stop(self) -> None:
        """Request shutdown; ``run()`` returns once the scheduler has stopped."""
        self._stop.set()

    async def run(self) -> None:
        self.start()
        try:
            await self._stop.wait()
        finally:
            if self._started:
                self._scheduler.shutdown(wait=False)
                self._started = False
                logger.info("Reminder watcher shut down")
