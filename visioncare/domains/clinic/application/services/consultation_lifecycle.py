# ============================================================================
# SCOPE: APPLICATION LAYER (Clinic)
# Description: Consultation state machine, durable edits and finalization.
# ============================================================================
"""Consultation Lifecycle Manager.

Every mutation is committed to the local store before returning, so durable
storage is the only thing crash recovery needs.

Finalization is a saga across three stores without a shared transaction.
Its steps run in order and each one is idempotent, so re-running finalize
after a crash picks up where the previous attempt stopped:

1. sync the local patient (find-or-create by CPF)
2. insert the immutable medical record (natural key: consultation id)
3. mark the consultation completed
4. best-effort write of "realizado" to the external schedule

Steps 1-3 fail loudly. A failure in step 4 is reported as a warning and left
for the reconciliation job; the medical record stays durable.
"""

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from visioncare.core.domain.entities import new_id, utc_now
from visioncare.core.domain.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PartialFinalizationError,
    UpstreamError,
    ValidationError,
)
from visioncare.core.shared.logger import ContextLogger, get_service_logger

from ..dto import FinalizationResult, PatientSyncData, SagaStep, StepOutcome, StepStatus
from ..ports import IConsultationRepository, IExternalScheduleGateway, IMedicalRecordRepository
from ...domain.entities import (
    CANCEL_FIELDS,
    COMPLETION_FIELDS,
    EXTERNAL_SYNC_FIELDS,
    STATUS_FIELDS,
    Consultation,
    MedicalRecord,
)
from ...domain.value_objects import ConsultationStatus, ExternalSyncStatus, PatientSnapshot, ScheduleStatus
from .patient_synchronizer import LocalPatientSynchronizer


class ConsultationLifecycleManager:
    """Owns every state change of a consultation."""

    def __init__(
        self,
        consultations: IConsultationRepository,
        medical_records: IMedicalRecordRepository,
        synchronizer: LocalPatientSynchronizer,
        schedule_gateway: IExternalScheduleGateway,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._consultations = consultations
        self._medical_records = medical_records
        self._synchronizer = synchronizer
        self._schedule = schedule_gateway
        self._clock = clock
        self._log = get_service_logger("consultation_lifecycle")

    # =========================================================================
    # Creation, edits and recovery
    # =========================================================================

    async def create(
        self,
        snapshot: PatientSnapshot,
        appointment_ref: str | None = None,
        *,
        consultation_id: str | None = None,
        doctor_ref: str | None = None,
        patient_ref: str | None = None,
        status: ConsultationStatus = ConsultationStatus.IN_PROGRESS,
    ) -> Consultation:
        """Create and persist a consultation.

        Passing the consultation id makes creation retry-safe: when that id
        already exists the stored consultation is returned untouched.

        Raises:
            ValidationError: If the initial status is not waiting or in_progress.
        """
        if not status.is_open():
            raise ValidationError(f"A consultation cannot start as '{status.value}'", field="status")

        if consultation_id:
            existing = await self._consultations.find_by_id(consultation_id)
            if existing:
                self._log.info("Consultation already exists, create is a no-op", consultation_id=consultation_id)
                return existing

        now = self._clock()
        consultation = Consultation(
            id=consultation_id or new_id(),
            created_at=now,
            updated_at=now,
            appointment_ref=appointment_ref,
            patient_ref=patient_ref,
            doctor_ref=doctor_ref,
            status=status,
            started_at=now,
            patient_snapshot=snapshot,
        )
        saved = await self._consultations.save(consultation)
        self._log.info(
            "Consultation created",
            consultation_id=saved.id,
            appointment_id=appointment_ref,
            status=status.value,
        )
        return saved

    async def get(self, consultation_id: str) -> Consultation:
        consultation = await self._consultations.find_by_id(consultation_id)
        if consultation is None:
            raise NotFoundError("Consultation", consultation_id)
        return consultation

    async def update(self, consultation_id: str, changes: Mapping[str, Any]) -> Consultation:
        """Merge partial fields into a consultation and persist only those.

        Idempotent; concurrent writers resolve last-write-wins per call. The
        write only lands while the stored consultation is still open.

        Raises:
            NotFoundError: If the consultation does not exist.
            InvalidTransitionError: If it is completed or cancelled.
            ValidationError: If a field is unknown or invalid.
        """
        consultation = await self.get(consultation_id)
        changed = consultation.apply_changes(changes, now=self._clock())
        if changed:
            await self._write(consultation, changed, "update", ConsultationStatus.open_states())
        return consultation

    async def pause(self, consultation_id: str) -> Consultation:
        consultation = await self.get(consultation_id)
        consultation.pause(now=self._clock())
        await self._write(consultation, STATUS_FIELDS, "pause", [ConsultationStatus.IN_PROGRESS])
        return consultation

    async def resume(self, consultation_id: str) -> Consultation:
        consultation = await self.get(consultation_id)
        consultation.resume(now=self._clock())
        await self._write(consultation, STATUS_FIELDS, "resume", [ConsultationStatus.WAITING])
        return consultation

    async def cancel(self, consultation_id: str, reason: str | None = None) -> Consultation:
        """Cancel a consultation. Never produces a medical record.

        Cancelling an already cancelled consultation is a no-op and keeps the
        first reason.

        Raises:
            InvalidTransitionError: If the consultation is already completed,
                or a finalization got as far as writing its medical record.
        """
        consultation = await self.get(consultation_id)
        if consultation.status == ConsultationStatus.CANCELLED:
            return consultation
        previous = consultation.status
        consultation.cancel(reason, now=self._clock())
        assert consultation.id is not None
        if await self._medical_records.find_by_consultation(consultation.id):
            raise InvalidTransitionError(
                "cancel",
                previous.value,
                "Consultation is being finalized: its medical record already exists",
            )
        await self._write(consultation, CANCEL_FIELDS, "cancel", [previous])
        self._log.info("Consultation cancelled", consultation_id=consultation_id, reason=consultation.cancellation_reason)
        return consultation

    async def recover_in_progress(self) -> list[Consultation]:
        """Open consultations (waiting or in progress), newest first, read from durable storage."""
        return await self._consultations.find_by_statuses(ConsultationStatus.open_states())

    # =========================================================================
    # Finalization saga
    # =========================================================================

    async def finalize(
        self,
        consultation_id: str,
        clinical_fields: Mapping[str, Any] | None = None,
    ) -> FinalizationResult:
        """Finalize a consultation.

        Args:
            consultation_id: Consultation to finalize.
            clinical_fields: Last edits, persisted before the saga starts.

        Returns:
            FinalizationResult with one outcome per step. ``warning`` is set
            when the external schedule could not be updated.

        Raises:
            NotFoundError: If the consultation does not exist.
            InvalidTransitionError: If it is cancelled or waiting.
            ValidationError: If the patient snapshot has no CPF.
            UpstreamError: If the local store fails in steps 1-3.
        """
        log = self._log.bind(consultation_id=consultation_id)
        consultation = await self.get(consultation_id)

        if consultation.status == ConsultationStatus.COMPLETED:
            return await self._rerun_completed(consultation, log)
        if not consultation.status.can_transition_to(ConsultationStatus.COMPLETED):
            raise InvalidTransitionError("finalize", consultation.status.value)

        if clinical_fields:
            changed = consultation.apply_changes(clinical_fields, now=self._clock())
            if changed:
                await self._write(consultation, changed, "finalize", [ConsultationStatus.IN_PROGRESS])

        steps: list[StepOutcome] = []

        # Step 1: local patient
        patient = await self._synchronizer.sync(PatientSyncData.from_snapshot(consultation.patient_snapshot))
        steps.append(StepOutcome(SagaStep.SYNC_PATIENT, StepStatus.SUCCEEDED, f"local patient {patient.id}"))
        log.info("Finalize step done", step=SagaStep.SYNC_PATIENT.value, patient_id=patient.id)

        # Step 2: immutable medical record
        assert patient.id is not None
        record, created = await self._ensure_medical_record(consultation, patient.id)
        steps.append(
            StepOutcome(
                SagaStep.CREATE_MEDICAL_RECORD,
                StepStatus.SUCCEEDED if created else StepStatus.ALREADY_DONE,
                f"medical record {record.id}",
            )
        )
        log.info("Finalize step done", step=SagaStep.CREATE_MEDICAL_RECORD.value, medical_record_id=record.id)

        # Step 3: completed
        consultation.complete(patient_ref=patient.id, medical_record_ref=record.id, now=self._clock())
        try:
            await self._write(consultation, COMPLETION_FIELDS, "finalize", [ConsultationStatus.IN_PROGRESS])
        except InvalidTransitionError as e:
            log.error(
                "Consultation left in_progress while finalizing, medical record is orphaned",
                medical_record_id=record.id,
                current_state=e.current_state,
            )
            raise
        steps.append(StepOutcome(SagaStep.COMPLETE_CONSULTATION, StepStatus.SUCCEEDED))
        log.info("Finalize step done", step=SagaStep.COMPLETE_CONSULTATION.value)

        # Step 4: external schedule, best effort
        outcome, warning = await self._sync_external_status(consultation, log)
        steps.append(outcome)

        return FinalizationResult(
            consultation=consultation,
            medical_record=record,
            patient=patient,
            steps=steps,
            warning=warning,
        )

    async def retry_external_sync(self, consultation_id: str) -> StepOutcome:
        """Re-run step 4 only for a completed consultation."""
        consultation = await self.get(consultation_id)
        if consultation.status != ConsultationStatus.COMPLETED:
            raise InvalidTransitionError("retry_external_sync", consultation.status.value)
        if not consultation.needs_external_sync:
            return self._settled_external_outcome(consultation)
        outcome, _ = await self._sync_external_status(consultation, self._log.bind(consultation_id=consultation_id))
        return outcome

    async def _rerun_completed(self, consultation: Consultation, log: ContextLogger) -> FinalizationResult:
        assert consultation.id is not None
        record = await self._medical_records.find_by_consultation(consultation.id)
        if record is None:
            raise NotFoundError("MedicalRecord", consultation.id, "Completed consultation has no medical record")

        steps = [
            StepOutcome(SagaStep.SYNC_PATIENT, StepStatus.ALREADY_DONE, f"local patient {consultation.patient_ref}"),
            StepOutcome(SagaStep.CREATE_MEDICAL_RECORD, StepStatus.ALREADY_DONE, f"medical record {record.id}"),
            StepOutcome(SagaStep.COMPLETE_CONSULTATION, StepStatus.ALREADY_DONE),
        ]
        warning = None
        if consultation.needs_external_sync:
            outcome, warning = await self._sync_external_status(consultation, log)
        else:
            outcome = self._settled_external_outcome(consultation)
        steps.append(outcome)
        log.info("Finalize re-run on completed consultation", external_sync=consultation.external_sync_status.value)
        return FinalizationResult(
            consultation=consultation,
            medical_record=record,
            patient=None,
            steps=steps,
            warning=warning,
        )

    async def _ensure_medical_record(self, consultation: Consultation, patient_id: str) -> tuple[MedicalRecord, bool]:
        assert consultation.id is not None
        existing = await self._medical_records.find_by_consultation(consultation.id)
        if existing:
            return existing, False

        record = MedicalRecord.from_consultation(consultation, patient_id, now=self._clock())
        try:
            return await self._medical_records.create(record), True
        except ConflictError:
            existing = await self._medical_records.find_by_consultation(consultation.id)
            if existing is None:
                raise UpstreamError(
                    "local_store",
                    f"Medical record for consultation {consultation.id} reported as duplicate but cannot be read back",
                )
            return existing, False

    async def _sync_external_status(
        self,
        consultation: Consultation,
        log: ContextLogger,
    ) -> tuple[StepOutcome, PartialFinalizationError | None]:
        step = SagaStep.UPDATE_EXTERNAL_STATUS
        if not consultation.appointment_ref:
            return StepOutcome(step, StepStatus.SKIPPED, "no linked appointment"), None

        error: str | None = None
        try:
            updated = await self._schedule.update_status(consultation.appointment_ref, ScheduleStatus.DONE)
            if not updated:
                error = f"appointment {consultation.appointment_ref} was not updated"
        except UpstreamError as e:
            error = e.message
        except Exception as e:
            # Steps 1-3 are committed; nothing from the gateway may fail finalize
            log.exception("Unexpected error updating external appointment", appointment_id=consultation.appointment_ref)
            error = f"{type(e).__name__}: {e}"

        consultation.record_external_sync(succeeded=error is None, error=error, now=self._clock())
        try:
            await self._consultations.update_fields(
                consultation, EXTERNAL_SYNC_FIELDS, expected_statuses=[ConsultationStatus.COMPLETED]
            )
        except UpstreamError as e:
            # Stored state stays "pending", the reconciliation job will retry
            log.warning("Could not record external sync outcome", error=e.message)

        if error is None:
            log.info("External appointment marked as done", appointment_id=consultation.appointment_ref)
            return StepOutcome(step, StepStatus.SUCCEEDED), None

        assert consultation.id is not None
        log.warning(
            "External appointment status not updated",
            appointment_id=consultation.appointment_ref,
            attempts=consultation.external_sync_attempts,
            error=error,
        )
        return StepOutcome(step, StepStatus.FAILED, error), PartialFinalizationError(step.value, consultation.id, error)

    async def _write(
        self,
        consultation: Consultation,
        field_names: Iterable[str],
        operation: str,
        expected_statuses: Iterable[ConsultationStatus],
    ) -> None:
        """Compare-and-swap write: lands only if the stored status is still expected."""
        try:
            await self._consultations.update_fields(consultation, field_names, expected_statuses=expected_statuses)
        except InvalidTransitionError as e:
            self._log.warning(
                "Consultation changed by another writer, write rejected",
                consultation_id=consultation.id,
                operation=operation,
                current_state=e.current_state,
            )
            raise InvalidTransitionError(operation, e.current_state) from e

    @staticmethod
    def _settled_external_outcome(consultation: Consultation) -> StepOutcome:
        if consultation.external_sync_status == ExternalSyncStatus.SYNCED:
            return StepOutcome(SagaStep.UPDATE_EXTERNAL_STATUS, StepStatus.ALREADY_DONE)
        return StepOutcome(SagaStep.UPDATE_EXTERNAL_STATUS, StepStatus.SKIPPED, "no linked appointment")
