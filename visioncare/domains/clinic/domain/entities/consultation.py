"""Consultation Entity - Aggregate Root.

A clinical consultation with its state machine, field-level edits and the
completion bookkeeping used by the finalization saga.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from visioncare.core.domain.entities import Entity, utc_now
from visioncare.core.domain.exceptions import InvalidTransitionError, ValidationError

from ..value_objects.consultation_status import ConsultationStatus, ExternalSyncStatus
from ..value_objects.ophthalmic_exam import OphthalmicExam
from ..value_objects.patient_snapshot import PatientSnapshot

TEXT_FIELDS = ("chief_complaint", "anamnesis", "notes", "diagnosis", "prescription")

# Fields a clinician may edit while the consultation is open
UPDATABLE_FIELDS = frozenset(TEXT_FIELDS + ("follow_up_date", "doctor_ref", "physical_exam", "patient_snapshot"))


@dataclass(eq=False)
class Consultation(Entity[str]):
    """Consulta - Aggregate Root."""

    appointment_ref: str | None = None
    patient_ref: str | None = None
    doctor_ref: str | None = None
    status: ConsultationStatus = ConsultationStatus.IN_PROGRESS
    started_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None

    # Clinical content
    physical_exam: OphthalmicExam = field(default_factory=OphthalmicExam)
    chief_complaint: str | None = None
    anamnesis: str | None = None
    notes: str | None = None
    diagnosis: str | None = None
    prescription: str | None = None
    follow_up_date: date | None = None

    patient_snapshot: PatientSnapshot = field(default_factory=lambda: PatientSnapshot(name=""))
    cancellation_reason: str | None = None

    # Finalization bookkeeping
    medical_record_ref: str | None = None
    external_sync_status: ExternalSyncStatus = ExternalSyncStatus.NOT_APPLICABLE
    external_sync_error: str | None = None
    external_sync_attempts: int = 0

    def apply_changes(self, changes: Mapping[str, Any], now: datetime | None = None) -> set[str]:
        """Merge partial edits into the consultation.

        Args:
            changes: Field name to new value. ``physical_exam`` is deep-merged,
                ``patient_snapshot`` only fills blanks.
            now: Timestamp for ``updated_at``.

        Returns:
            Names of the attributes to persist.

        Raises:
            InvalidTransitionError: If the consultation is terminal.
            ValidationError: If a field is unknown or its value is invalid.
        """
        if self.status.is_final():
            raise InvalidTransitionError("update", self.status.value)

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        changed: set[str] = set()
        for name, value in changes.items():
            if name == "physical_exam":
                self.physical_exam = self.physical_exam.merged_with(value or {})
            elif name == "patient_snapshot":
                self.patient_snapshot = self.patient_snapshot.with_gaps_filled(value or {})
            elif name == "follow_up_date":
                self.follow_up_date = _parse_date(value)
            else:
                setattr(self, name, value)
            changed.add(name)

        if changed:
            self.touch(now)
            changed.add("updated_at")
        return changed

    def pause(self, now: datetime | None = None) -> None:
        """Move back to the waiting queue (in_progress -> waiting)."""
        self._transition(ConsultationStatus.WAITING, "pause", now)

    def resume(self, now: datetime | None = None) -> None:
        self._transition(ConsultationStatus.IN_PROGRESS, "resume", now)

    def cancel(self, reason: str | None = None, now: datetime | None = None) -> None:
        self._transition(ConsultationStatus.CANCELLED, "cancel", now)
        self.completed_at = self.updated_at
        self.cancellation_reason = (reason or "").strip() or None

    def complete(self, patient_ref: str, medical_record_ref: str, now: datetime | None = None) -> None:
        """Mark the consultation completed once its medical record exists."""
        self._transition(ConsultationStatus.COMPLETED, "finalize", now)
        self.completed_at = self.updated_at
        self.patient_ref = patient_ref
        self.medical_record_ref = medical_record_ref
        self.external_sync_status = (
            ExternalSyncStatus.PENDING if self.appointment_ref else ExternalSyncStatus.NOT_APPLICABLE
        )
        self.external_sync_error = None

    def record_external_sync(self, succeeded: bool, error: str | None = None, now: datetime | None = None) -> None:
        """Record one attempt to write the result back to the external schedule."""
        self.external_sync_attempts += 1
        if succeeded:
            self.external_sync_status = ExternalSyncStatus.SYNCED
            self.external_sync_error = None
        else:
            self.external_sync_status = ExternalSyncStatus.FAILED
            self.external_sync_error = error
        self.touch(now)

    @property
    def needs_external_sync(self) -> bool:
        return self.status == ConsultationStatus.COMPLETED and self.external_sync_status.needs_retry()

    def _transition(self, new_status: ConsultationStatus, operation: str, now: datetime | None) -> None:
        if not self.status.can_transition_to(new_status):
            raise InvalidTransitionError(operation, self.status.value)
        self.status = new_status
        self.touch(now)


STATUS_FIELDS = ("status", "completed_at", "updated_at")

CANCEL_FIELDS = STATUS_FIELDS + ("cancellation_reason",)

COMPLETION_FIELDS = (
    "status",
    "completed_at",
    "patient_ref",
    "medical_record_ref",
    "external_sync_status",
    "external_sync_error",
    "updated_at",
)

EXTERNAL_SYNC_FIELDS = (
    "external_sync_status",
    "external_sync_error",
    "external_sync_attempts",
    "updated_at",
)


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value}", field="follow_up_date") from e
