"""Unit tests for the Consultation aggregate."""

from datetime import UTC, date, datetime

import pytest

from visioncare.core.domain.exceptions import InvalidTransitionError, ValidationError
from visioncare.domains.clinic.domain.entities import Consultation, MedicalRecord
from visioncare.domains.clinic.domain.value_objects import ConsultationStatus, ExternalSyncStatus, PatientSnapshot

NOW = datetime(2026, 3, 10, 10, 0, tzinfo=UTC)


@pytest.fixture
def consultation() -> Consultation:
    return Consultation(
        id="c-1",
        appointment_ref="apt-1",
        doctor_ref="doc-1",
        patient_snapshot=PatientSnapshot(name="Ana Souza", cpf="12345678901"),
        started_at=datetime(2026, 3, 10, 9, 0, tzinfo=UTC),
    )


class TestApplyChanges:
    def test_returns_only_changed_attributes(self, consultation) -> None:
        changed = consultation.apply_changes({"anamnesis": "dor ocular"}, now=NOW)

        assert changed == {"anamnesis", "updated_at"}
        assert consultation.anamnesis == "dor ocular"
        assert consultation.updated_at == NOW

    def test_empty_changes_touch_nothing(self, consultation) -> None:
        before = consultation.updated_at
        assert consultation.apply_changes({}, now=NOW) == set()
        assert consultation.updated_at == before

    def test_physical_exam_is_deep_merged(self, consultation) -> None:
        consultation.apply_changes({"physical_exam": {"visual_acuity": {"right_eye": "20/20"}}})
        consultation.apply_changes({"physical_exam": {"visual_acuity": {"left_eye": "20/25"}}})

        assert consultation.physical_exam.visual_acuity.right_eye == "20/20"
        assert consultation.physical_exam.visual_acuity.left_eye == "20/25"

    def test_follow_up_date_accepts_iso_strings(self, consultation) -> None:
        consultation.apply_changes({"follow_up_date": "2026-04-10"})
        assert consultation.follow_up_date == date(2026, 4, 10)

        with pytest.raises(ValidationError):
            consultation.apply_changes({"follow_up_date": "next week"})

    def test_unknown_field_is_rejected(self, consultation) -> None:
        with pytest.raises(ValidationError):
            consultation.apply_changes({"status": "completed"})

    def test_terminal_consultation_rejects_edits(self, consultation) -> None:
        consultation.cancel(now=NOW)
        with pytest.raises(InvalidTransitionError):
            consultation.apply_changes({"notes": "late note"})


class TestTransitions:
    def test_pause_and_resume(self, consultation) -> None:
        consultation.pause(now=NOW)
        assert consultation.status == ConsultationStatus.WAITING
        consultation.resume(now=NOW)
        assert consultation.status == ConsultationStatus.IN_PROGRESS

    def test_cancel_sets_completed_at(self, consultation) -> None:
        consultation.cancel(now=NOW)
        assert consultation.status == ConsultationStatus.CANCELLED
        assert consultation.completed_at == NOW

    def test_complete_with_appointment_is_pending_external_sync(self, consultation) -> None:
        consultation.complete(patient_ref="p-1", medical_record_ref="mr-1", now=NOW)

        assert consultation.status == ConsultationStatus.COMPLETED
        assert consultation.completed_at == NOW
        assert consultation.external_sync_status == ExternalSyncStatus.PENDING
        assert consultation.needs_external_sync

    def test_complete_without_appointment_needs_no_sync(self, consultation) -> None:
        consultation.appointment_ref = None
        consultation.complete(patient_ref="p-1", medical_record_ref="mr-1", now=NOW)
        assert consultation.external_sync_status == ExternalSyncStatus.NOT_APPLICABLE
        assert not consultation.needs_external_sync

    def test_waiting_consultation_cannot_complete(self, consultation) -> None:
        consultation.pause(now=NOW)
        with pytest.raises(InvalidTransitionError):
            consultation.complete(patient_ref="p-1", medical_record_ref="mr-1")

    def test_record_external_sync_counts_attempts(self, consultation) -> None:
        consultation.complete(patient_ref="p-1", medical_record_ref="mr-1", now=NOW)

        consultation.record_external_sync(succeeded=False, error="timeout", now=NOW)
        assert consultation.external_sync_status == ExternalSyncStatus.FAILED
        assert consultation.external_sync_error == "timeout"

        consultation.record_external_sync(succeeded=True, now=NOW)
        assert consultation.external_sync_status == ExternalSyncStatus.SYNCED
        assert consultation.external_sync_error is None
        assert consultation.external_sync_attempts == 2


class TestMedicalRecord:
    def test_freezes_clinical_content(self, consultation) -> None:
        consultation.apply_changes({"diagnosis": "miopia", "physical_exam": {"fundoscopy": "normal"}})

        record = MedicalRecord.from_consultation(consultation, patient_id="p-1", now=NOW)
        consultation.apply_changes({"diagnosis": "changed"})

        assert record.consultation_id == "c-1"
        assert record.consultation_date == date(2026, 3, 10)
        assert record.doctor_id == "doc-1"
        assert record.diagnosis == "miopia"
        assert record.physical_exam.fundoscopy == "normal"

    def test_requires_persisted_consultation(self) -> None:
        with pytest.raises(ValueError):
            MedicalRecord.from_consultation(Consultation(), patient_id="p-1")
