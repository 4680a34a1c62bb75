"""Service for scheduling background jobs."""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from billink.config import Settings, settings
from billink.services.otp import OtpService
from billink.services.penalty import PenaltyService, SweepResult

logger = logging.getLogger(__name__)


class SchedulerService:
    """Manages scheduled tasks for the application."""

    def __init__(
        self,
        penalty_service: PenaltyService,
        otp_service: OtpService,
        scheduler: AsyncIOScheduler,
        config: Settings = settings,
    ):
        self._penalty_service = penalty_service
        self._otp_service = otp_service
        self._scheduler = scheduler
        self._config = config

    def start(self):
        """Starts the scheduler and adds jobs."""
        logger.info("Starting scheduler...")
        self._scheduler.add_job(
            self._run_penalty_sweep,
            trigger=CronTrigger(
                hour=self._config.PENALTY_SWEEP_HOUR,
                minute=self._config.PENALTY_SWEEP_MINUTE,
                timezone=self._config.TIMEZONE,
            ),
            id="penalty_sweep",
            replace_existing=True,
        )
        self._scheduler.add_job(
            self._purge_expired_otps,
            trigger=IntervalTrigger(hours=1),
            id="otp_purge",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Scheduler started.")

    def shutdown(self):
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped.")

    async def run_penalty_sweep_now(self) -> SweepResult:
        """Runs the sweep immediately, outside the schedule."""
        logger.info("Manual penalty sweep requested.")
        return await self._penalty_service.process_overdue_bills()

    async def _run_penalty_sweep(self):
        logger.info("Starting scheduled penalty sweep.")
        try:
            result = await self._penalty_service.process_overdue_bills()
        except Exception as e:
            logger.error(f"Scheduled penalty sweep failed: {e}", exc_info=True)
            return
        logger.info(
            f"Scheduled penalty sweep finished: {result.updated} of "
            f"{result.processed} bills updated."
        )

    async def _purge_expired_otps(self):
        try:
            await self._otp_service.purge_expired()
        except Exception as e:
            logger.error(f"Failed to purge expired OTP codes: {e}", exc_info=True)
