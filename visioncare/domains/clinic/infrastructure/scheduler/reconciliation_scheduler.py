"""Reconciliation Scheduler.

APScheduler-based async scheduler that periodically retries the external
schedule status update of completed consultations.
"""

import logging
from collections.abc import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-not-found]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-not-found]
from pytz import timezone

from visioncare.core.shared.logger import get_job_logger

from ...application.dto import ReconciliationReport

logger = logging.getLogger(__name__)

ReconciliationRun = Callable[[], Awaitable[ReconciliationReport]]


class ReconciliationScheduler:
    """Agendador da reconciliação do status externo.

    The job itself is injected: each run opens its own database session,
    so the scheduler only knows when to run, not how.
    """

    def __init__(
        self,
        run_reconciliation: ReconciliationRun,
        interval_seconds: int = 300,
        timezone_name: str = "America/Sao_Paulo",
        enabled: bool = True,
    ):
        """Initialize scheduler.

        Args:
            run_reconciliation: Coroutine function performing one pass.
            interval_seconds: Seconds between passes.
            timezone_name: Timezone for the trigger.
            enabled: Whether scheduler is enabled.
        """
        self._run_reconciliation = run_reconciliation
        self.interval_seconds = interval_seconds
        self.tz = timezone(timezone_name)
        self.enabled = enabled

        self._scheduler: AsyncIOScheduler | None = None
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self) -> None:
        """Start the scheduler."""
        if not self.enabled:
            logger.info("ReconciliationScheduler is disabled, skipping start")
            return

        if self._is_running:
            logger.warning("ReconciliationScheduler already running")
            return

        scheduler = AsyncIOScheduler(timezone=self.tz)
        self._scheduler = scheduler

        scheduler.add_job(
            self.run_now,
            IntervalTrigger(seconds=self.interval_seconds, timezone=self.tz),
            id="external_status_reconciliation",
            replace_existing=True,
            name="External Schedule Status Reconciliation",
            max_instances=1,
            coalesce=True,
        )

        scheduler.start()
        self._is_running = True
        logger.info(f"ReconciliationScheduler started (every {self.interval_seconds}s, timezone {self.tz})")

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if self._scheduler and self._is_running:
            self._scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("ReconciliationScheduler stopped")

    async def run_now(self) -> ReconciliationReport | None:
        """Run one reconciliation pass. Errors are logged, never raised."""
        log = get_job_logger("external_status_reconciliation")
        log.info("Starting external status reconciliation job")
        try:
            report = await self._run_reconciliation()
        except Exception as e:
            log.exception(f"Error during external status reconciliation: {e}")
            return None

        if report.attempted:
            log.info(
                "Reconciliation finished",
                attempted=report.attempted,
                synced=report.synced,
                failed=report.failed,
            )
        else:
            log.debug("Reconciliation finished: nothing pending")
        return report
