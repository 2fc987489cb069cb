# src/proactive_bot/scheduler.py
import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler


class DeliveryScheduler:
    """Runs deliveries later on the aiohttp loop."""

    def __init__(self):
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self, loop: asyncio.AbstractEventLoop):
        """
        Start the APScheduler bound to the given event loop.
        """
        self._loop = loop
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(event_loop=loop)  # bind to this loop
            self._scheduler.start()
            logging.info("[SCHED] started (loop id=%s)", id(loop))

    def shutdown(self):
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logging.info("[SCHED] stopped")

    def jobs(self) -> List[Job]:
        return self._scheduler.get_jobs() if self._scheduler is not None else []

    def schedule_in_minutes(self, n_minutes, coro_func, *args, **kwargs) -> Job:
        if self._scheduler is None:
            raise RuntimeError("scheduler is not started")
        run_time = datetime.now() + timedelta(minutes=n_minutes)
        logging.info("[SCHED] job scheduled for %s (in %s min)", run_time.isoformat(), n_minutes)
        loop = self._loop

        def _job_wrapper():
            # APScheduler may call from a worker thread; the coroutine belongs on the aiohttp loop
            future = asyncio.run_coroutine_threadsafe(coro_func(*args, **kwargs), loop)
            future.add_done_callback(_log_failure)

        return self._scheduler.add_job(_job_wrapper, "date", run_date=run_time, misfire_grace_time=120, coalesce=True)


def _log_failure(future):
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logging.error("[SCHED] scheduled delivery failed: %s", error, exc_info=error)
