"""
External Status Reconciler

Retries the last finalization step (external schedule write-back) for
completed consultations whose write-back is pending or failed. Only that
step is retried; the medical record is already durable.
"""

import logging

from visioncare.core.domain.exceptions import DomainException

from ..dto import ReconciliationReport, StepStatus
from ..ports import IConsultationRepository
from .consultation_lifecycle import ConsultationLifecycleManager

logger = logging.getLogger(__name__)


class ExternalStatusReconciler:
    def __init__(
        self,
        consultations: IConsultationRepository,
        lifecycle: ConsultationLifecycleManager,
        batch_size: int = 50,
        max_attempts: int = 10,
    ):
        self._consultations = consultations
        self._lifecycle = lifecycle
        self._batch_size = batch_size
        self._max_attempts = max_attempts

    async def run_once(self) -> ReconciliationReport:
        """Process one batch, oldest pending first."""
        pending = await self._consultations.find_pending_external_sync(
            limit=self._batch_size,
            max_attempts=self._max_attempts,
        )
        if not pending:
            return ReconciliationReport()

        synced = failed = 0
        for consultation in pending:
            assert consultation.id is not None
            try:
                outcome = await self._lifecycle.retry_external_sync(consultation.id)
            except DomainException as e:
                failed += 1
                logger.error(f"Reconciliation of consultation {consultation.id} failed: {e.message}")
                continue
            if outcome.status == StepStatus.FAILED:
                failed += 1
            else:
                synced += 1

        report = ReconciliationReport(attempted=len(pending), synced=synced, failed=failed)
        logger.info(f"External status reconciliation: {report.synced}/{report.attempted} synced, {report.failed} failed")
        return report
