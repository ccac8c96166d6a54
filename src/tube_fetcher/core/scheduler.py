"""Scheduler for maintenance tasks."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import get_cleanup_config
from .cleanup import cleanup_expired_files
from .proxies import ProxyPool

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """
    Manages scheduled maintenance using APScheduler.

    Jobs:
    - cleanup_expired_files: cron-scheduled sweep of old artifacts and temp files
    - refresh_proxies: proxy pool refresh every update interval, first run at start

    Lifecycle:
    - start(): Initialize scheduler and add jobs
    - stop(): Gracefully shutdown scheduler
    """

    CLEANUP_JOB_ID = "cleanup_expired_files"
    PROXY_JOB_ID = "refresh_proxies"

    def __init__(self, proxy_pool: ProxyPool | None = None):
        """Initialize the scheduler."""
        self.scheduler = AsyncIOScheduler()
        self.proxy_pool = proxy_pool

    async def start(self):
        """Start the scheduler with current config."""
        self._add_cleanup_job()
        self._add_proxy_job()

        if not self.scheduler.get_jobs():
            logger.info("No maintenance jobs configured, scheduler not started")
            return

        self.scheduler.start()

        for job in self.scheduler.get_jobs():
            logger.info(f"Scheduled {job.id}, next run: {job.next_run_time}")

    def _add_cleanup_job(self) -> None:
        config = get_cleanup_config()

        if not config["enabled"]:
            logger.info("Cleanup disabled in config")
            return

        schedule = config["schedule"]
        try:
            trigger = CronTrigger.from_crontab(schedule)
        except ValueError as e:
            logger.error(f"Invalid cron expression '{schedule}': {e}")
            return

        self.scheduler.add_job(
            self._run_cleanup,
            trigger=trigger,
            id=self.CLEANUP_JOB_ID,
            replace_existing=True,
            max_instances=1,  # Prevent concurrent runs
        )

    def _add_proxy_job(self) -> None:
        if self.proxy_pool is None or not self.proxy_pool.sources:
            return

        self.scheduler.add_job(
            self._run_proxy_refresh,
            trigger=IntervalTrigger(seconds=self.proxy_pool.update_interval),
            id=self.PROXY_JOB_ID,
            replace_existing=True,
            max_instances=1,
            next_run_time=datetime.now(),
        )

    async def _run_cleanup(self):
        """Execute cleanup (internal wrapper with logging)."""
        config = get_cleanup_config()
        retention_days = config["retention_days"]

        logger.info(f"Starting scheduled cleanup (retention: {retention_days} days)")

        try:
            # Run cleanup in thread pool to avoid blocking event loop
            result = await asyncio.to_thread(cleanup_expired_files, retention_days)

            freed_mb = result["freed_bytes"] / 1024 / 1024
            logger.info(
                f"Cleanup completed: {result['deleted_count']} files deleted, "
                f"{freed_mb:.2f} MB freed"
            )

            if result["errors"]:
                logger.warning(f"Cleanup had {len(result['errors'])} errors:")
                for error in result["errors"]:
                    logger.warning(f"  - {error['file']}: {error['error']}")

        except Exception as e:
            logger.error(f"Cleanup failed with exception: {e}", exc_info=True)

    async def _run_proxy_refresh(self):
        """Refresh the proxy pool; failures leave the current pool in place."""
        try:
            await self.proxy_pool.refresh()
        except Exception as e:
            logger.error(f"Proxy refresh failed with exception: {e}", exc_info=True)

    async def stop(self):
        """Stop the scheduler gracefully."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            logger.info("Maintenance scheduler stopped")
