"""
Daily trigger for the LinkPost job.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import schedule

from linkpost.config import Settings

logger = logging.getLogger(__name__)


class DailyScheduler:
    """
    Runs a job once a day at a fixed local time.

    At most one run is in flight: a tick that arrives while the previous run
    is still going is skipped.
    """
    def __init__(self, settings: Settings, job: Callable[[], Awaitable], run_on_start: bool = True):
        settings.validate()
        self.at = f"{settings.schedule_hour:02d}:{settings.schedule_minute:02d}"
        self.timezone = settings.schedule_timezone
        self.job = job
        self.run_on_start = run_on_start
        self.scheduler = schedule.Scheduler()
        self.scheduler.every().day.at(self.at, self.timezone).do(self.trigger)
        self._running: Optional[asyncio.Task] = None
        self._stopped = asyncio.Event()

    @property
    def busy(self) -> bool:
        return self._running is not None and not self._running.done()

    async def _run_job(self):
        try:
            summary = await self.job()
            logger.info("Scheduled run finished: %s", summary)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Scheduled run failed")

    def trigger(self) -> bool:
        """
        Start a run unless one is already in flight.

        Returns:
            True if a run was started
        """
        if self.busy:
            logger.warning("Previous run still in progress, skipping this tick")
            return False
        self._running = asyncio.ensure_future(self._run_job())
        return True

    def stop(self):
        self._stopped.set()
        logger.info("Scheduler stopped")

    async def serve(self):
        """Loop until stop() is called."""
        logger.info("Scheduler started, running daily at %s %s", self.at, self.timezone)
        if self.run_on_start:
            self.trigger()

        while not self._stopped.is_set():
            logger.info("Next run at %s", self.scheduler.next_run)
            idle = max(self.scheduler.idle_seconds or 0.0, 0.0)
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=idle)
            except asyncio.TimeoutError:
                self.scheduler.run_pending()

        if self.busy:
            await self._running
