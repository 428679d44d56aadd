"""Sweep scheduler — fires the purge sweep on a fixed interval.

Uses APScheduler's AsyncIOScheduler so the sweep coroutine runs on the
application's event loop. Late or missed firings are coalesced into a
single run and at most one run is active at a time.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from userpurge.config import settings
from userpurge.purge.sweep import purge_users

logger = logging.getLogger(__name__)

JOB_ID = "purge-users"


class PurgeScheduler:
    """Owns the periodic purge job."""

    def __init__(self, job: Callable[[], Awaitable[Any]] = purge_users) -> None:
        self.scheduler = AsyncIOScheduler(timezone=UTC)
        self.job = job
        self._started = False

    def start(self) -> None:
        """Schedule the sweep and start the scheduler. Needs a running event loop."""
        if self._started:
            logger.warning("Scheduler already started")
            return

        interval = settings.purge.sweep_interval_seconds
        first_run = datetime.now(UTC) + timedelta(seconds=settings.purge.sweep_first_run_delay_seconds)

        self.scheduler.add_job(
            func=self.job,
            trigger=IntervalTrigger(seconds=interval, start_date=first_run, timezone=UTC),
            id=JOB_ID,
            name="Purge inactive users",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=None,
        )

        self.scheduler.start()
        self._started = True
        logger.info("Purge scheduler started: every %ds, first run at %s", interval, first_run.isoformat())

    def stop(self) -> None:
        """Stop the scheduler without waiting for a running sweep."""
        if not self._started:
            return

        self.scheduler.shutdown(wait=False)
        self._started = False
        logger.info("Purge scheduler stopped")

    @property
    def running(self) -> bool:
        return self._started


# Module-level singleton
purge_scheduler = PurgeScheduler()
