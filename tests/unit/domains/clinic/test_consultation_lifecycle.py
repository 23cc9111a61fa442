"""Unit tests for ConsultationLifecycleManager.

Covers durable edits, crash recovery and the finalization saga, including
the external status failure path and re-running finalize.
"""

import asyncio

import httpx
import pytest

from visioncare.core.domain.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from visioncare.domains.clinic.application.dto import SagaStep, StepStatus
from visioncare.domains.clinic.application.services import ConsultationLifecycleManager, LocalPatientSynchronizer
from visioncare.domains.clinic.domain.entities import MedicalRecord
from visioncare.domains.clinic.domain.value_objects import (
    ConsultationStatus,
    ExternalSyncStatus,
    PatientSnapshot,
    ScheduleStatus,
)
from visioncare.domains.clinic.infrastructure.external import RESTExternalScheduleGateway

ANA = PatientSnapshot(name="Ana Souza", cpf="12345678901", phone="11988887777")


@pytest.fixture
def snapshot() -> PatientSnapshot:
    return ANA


# ============================================================================
# Creation, edits and recovery
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_persists_immediately(lifecycle, consultations, snapshot):
    consultation = await lifecycle.create(snapshot, "apt-1", doctor_ref="doc-1")

    assert consultation.id in consultations.rows
    stored = consultations.rows[consultation.id]
    assert stored.status == ConsultationStatus.IN_PROGRESS
    assert stored.patient_snapshot == snapshot
    assert stored.appointment_ref == "apt-1"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_with_known_id_is_a_no_op(lifecycle, consultations, snapshot):
    first = await lifecycle.create(snapshot, "apt-1", consultation_id="c-1")
    await lifecycle.update("c-1", {"notes": "kept"})

    again = await lifecycle.create(PatientSnapshot(name="Other"), "apt-2", consultation_id="c-1")

    assert again.id == first.id
    assert again.notes == "kept"
    assert again.patient_snapshot == snapshot
    assert len(consultations.rows) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_rejects_terminal_initial_status(lifecycle, snapshot):
    with pytest.raises(ValidationError):
        await lifecycle.create(snapshot, status=ConsultationStatus.COMPLETED)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_writes_only_supplied_fields(lifecycle, consultations, snapshot):
    consultation = await lifecycle.create(snapshot, "apt-1")

    await lifecycle.update(consultation.id, {"anamnesis": "cefaleia"})
    await lifecycle.update(consultation.id, {"physical_exam": {"visual_acuity": {"right_eye": "20/20"}}})

    assert consultations.writes[-2] == {"anamnesis", "updated_at"}
    assert consultations.writes[-1] == {"physical_exam", "updated_at"}
    stored = consultations.rows[consultation.id]
    assert stored.anamnesis == "cefaleia"
    assert stored.physical_exam.visual_acuity.right_eye == "20/20"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_is_idempotent(lifecycle, consultations, snapshot):
    consultation = await lifecycle.create(snapshot, "apt-1")
    changes = {"diagnosis": "miopia", "physical_exam": {"fundoscopy": "normal"}}

    await lifecycle.update(consultation.id, changes)
    once = consultations.rows[consultation.id]
    await lifecycle.update(consultation.id, changes)
    twice = consultations.rows[consultation.id]

    assert twice.diagnosis == once.diagnosis
    assert twice.physical_exam == once.physical_exam


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_fills_snapshot_gaps_only(lifecycle, consultations):
    consultation = await lifecycle.create(PatientSnapshot(name="Ana Souza", phone="11988887777"), "apt-1")

    await lifecycle.update(consultation.id, {"patient_snapshot": {"cpf": "12345678901", "phone": "11000000000"}})

    stored = consultations.rows[consultation.id].patient_snapshot
    assert stored.cpf == "12345678901"
    assert stored.phone == "11988887777"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_errors(lifecycle, snapshot):
    with pytest.raises(NotFoundError):
        await lifecycle.update("missing", {"notes": "x"})

    consultation = await lifecycle.create(snapshot)
    with pytest.raises(ValidationError):
        await lifecycle.update(consultation.id, {"medical_record_ref": "forged"})
    with pytest.raises(ValidationError):
        await lifecycle.update(consultation.id, {"physical_exam": {"visual_acuity": {"third_eye": "?"}}})

    await lifecycle.cancel(consultation.id)
    with pytest.raises(InvalidTransitionError):
        await lifecycle.update(consultation.id, {"notes": "x"})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pause_and_resume_are_persisted(lifecycle, consultations, snapshot):
    consultation = await lifecycle.create(snapshot)

    await lifecycle.pause(consultation.id)
    assert consultations.rows[consultation.id].status == ConsultationStatus.WAITING

    await lifecycle.resume(consultation.id)
    assert consultations.rows[consultation.id].status == ConsultationStatus.IN_PROGRESS


@pytest.mark.unit
@pytest.mark.asyncio
async def test_recover_returns_open_consultations_newest_first(
    consultations, medical_records, patients, schedule, clock, snapshot
):
    """A fresh manager (new process) recovers everything from storage alone."""
    before_crash = ConsultationLifecycleManager(
        consultations, medical_records, LocalPatientSynchronizer(patients), schedule, clock=clock
    )
    waiting = await before_crash.create(snapshot, status=ConsultationStatus.WAITING)
    cancelled = await before_crash.create(snapshot)
    await before_crash.cancel(cancelled.id)
    in_progress = await before_crash.create(snapshot)
    await before_crash.update(in_progress.id, {"anamnesis": "visão turva"})

    after_restart = ConsultationLifecycleManager(
        consultations, medical_records, LocalPatientSynchronizer(patients), schedule, clock=clock
    )
    recovered = await after_restart.recover_in_progress()

    assert [c.id for c in recovered] == [in_progress.id, waiting.id]
    assert recovered[0].anamnesis == "visão turva"


# ============================================================================
# Cancel
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_never_creates_a_medical_record(lifecycle, consultations, medical_records, schedule, snapshot):
    consultation = await lifecycle.create(snapshot, "apt-1")

    cancelled = await lifecycle.cancel(consultation.id)
    again = await lifecycle.cancel(consultation.id)

    assert cancelled.status == ConsultationStatus.CANCELLED
    assert cancelled.completed_at is not None
    assert again.status == ConsultationStatus.CANCELLED
    assert medical_records.rows == {}
    assert schedule.status_updates == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_keeps_first_reason(lifecycle, consultations, snapshot):
    consultation = await lifecycle.create(snapshot)

    cancelled = await lifecycle.cancel(consultation.id, "  Paciente desistiu  ")
    await lifecycle.cancel(consultation.id, "Outro motivo")

    assert cancelled.cancellation_reason == "Paciente desistiu"
    assert consultations.rows[consultation.id].cancellation_reason == "Paciente desistiu"
    assert "cancellation_reason" in consultations.writes[-1]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_of_completed_consultation_is_rejected(lifecycle, ana_appointment, snapshot):
    consultation = await lifecycle.create(snapshot, ana_appointment.id)
    await lifecycle.finalize(consultation.id)

    with pytest.raises(InvalidTransitionError):
        await lifecycle.cancel(consultation.id)


# ============================================================================
# Finalization saga
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
async def test_finalize_happy_path(lifecycle, consultations, medical_records, patients, schedule, ana_appointment):
    consultation = await lifecycle.create(ANA, ana_appointment.id, doctor_ref="doc-1")

    result = await lifecycle.finalize(consultation.id, {"diagnosis": "miopia", "prescription": "-1.50 OD"})

    assert [s.step for s in result.steps] == list(SagaStep)
    assert all(s.status == StepStatus.SUCCEEDED for s in result.steps)
    assert result.warning is None
    assert result.external_status_synced

    patient = patients.rows["12345678901"]
    record = medical_records.rows[consultation.id]
    assert record.patient_id == patient.id
    assert record.diagnosis == "miopia"
    assert record.prescription == "-1.50 OD"

    stored = consultations.rows[consultation.id]
    assert stored.status == ConsultationStatus.COMPLETED
    assert stored.patient_ref == patient.id
    assert stored.medical_record_ref == record.id
    assert stored.external_sync_status == ExternalSyncStatus.SYNCED
    assert schedule.status_updates == [(ana_appointment.id, ScheduleStatus.DONE)]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_external_status_failure_keeps_the_record_durable(
    lifecycle, consultations, medical_records, schedule, ana_appointment
):
    consultation = await lifecycle.create(ANA, ana_appointment.id)
    schedule.unavailable = True

    result = await lifecycle.finalize(consultation.id)

    assert result.warning is not None
    assert result.warning.step == SagaStep.UPDATE_EXTERNAL_STATUS.value
    assert result.outcome(SagaStep.UPDATE_EXTERNAL_STATUS).status == StepStatus.FAILED
    assert not result.external_status_synced

    assert consultation.id in medical_records.rows
    stored = consultations.rows[consultation.id]
    assert stored.status == ConsultationStatus.COMPLETED
    assert stored.external_sync_status == ExternalSyncStatus.FAILED
    assert stored.external_sync_attempts == 1
    assert stored.external_sync_error


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unknown_external_appointment_is_a_failed_sync(lifecycle, consultations):
    consultation = await lifecycle.create(ANA, "apt-gone")

    result = await lifecycle.finalize(consultation.id)

    assert result.warning is not None
    assert consultations.rows[consultation.id].external_sync_status == ExternalSyncStatus.FAILED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_walk_in_consultation_skips_external_status(lifecycle, consultations, schedule):
    consultation = await lifecycle.create(ANA)

    result = await lifecycle.finalize(consultation.id)

    assert result.outcome(SagaStep.UPDATE_EXTERNAL_STATUS).status == StepStatus.SKIPPED
    assert result.warning is None
    assert consultations.rows[consultation.id].external_sync_status == ExternalSyncStatus.NOT_APPLICABLE
    assert schedule.status_updates == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_finalize_without_cpf_aborts_before_any_write(lifecycle, consultations, medical_records, patients):
    consultation = await lifecycle.create(PatientSnapshot(name="Sem CPF", phone="11988887777"), "apt-1")

    with pytest.raises(ValidationError):
        await lifecycle.finalize(consultation.id)

    assert patients.rows == {}
    assert medical_records.rows == {}
    assert consultations.rows[consultation.id].status == ConsultationStatus.IN_PROGRESS


@pytest.mark.unit
@pytest.mark.asyncio
async def test_medical_record_failure_leaves_consultation_open(lifecycle, consultations, medical_records):
    consultation = await lifecycle.create(ANA)
    medical_records.fail = True

    with pytest.raises(UpstreamError):
        await lifecycle.finalize(consultation.id)

    assert consultations.rows[consultation.id].status == ConsultationStatus.IN_PROGRESS


@pytest.mark.unit
@pytest.mark.asyncio
async def test_finalize_after_crash_reuses_existing_record(lifecycle, consultations, medical_records):
    """A crash between steps 2 and 3 leaves a record; the re-run reuses it."""
    consultation = await lifecycle.create(ANA)
    existing = MedicalRecord.from_consultation(consultation, patient_id="p-prev")
    medical_records.rows[consultation.id] = existing

    result = await lifecycle.finalize(consultation.id)

    assert result.medical_record == existing
    assert result.outcome(SagaStep.CREATE_MEDICAL_RECORD).status == StepStatus.ALREADY_DONE
    assert len(medical_records.rows) == 1
    assert consultations.rows[consultation.id].medical_record_ref == existing.id


@pytest.mark.unit
@pytest.mark.asyncio
async def test_finalize_rerun_on_completed_retries_only_external_status(
    lifecycle, consultations, medical_records, schedule, ana_appointment
):
    consultation = await lifecycle.create(ANA, ana_appointment.id)
    schedule.unavailable = True
    await lifecycle.finalize(consultation.id)
    schedule.unavailable = False

    result = await lifecycle.finalize(consultation.id)

    assert [s.status for s in result.steps[:3]] == [StepStatus.ALREADY_DONE] * 3
    assert result.outcome(SagaStep.UPDATE_EXTERNAL_STATUS).status == StepStatus.SUCCEEDED
    assert result.warning is None
    assert len(medical_records.rows) == 1
    stored = consultations.rows[consultation.id]
    assert stored.external_sync_status == ExternalSyncStatus.SYNCED
    assert stored.external_sync_attempts == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_finalize_rerun_when_already_synced_writes_nothing(lifecycle, schedule, ana_appointment):
    consultation = await lifecycle.create(ANA, ana_appointment.id)
    await lifecycle.finalize(consultation.id)

    result = await lifecycle.finalize(consultation.id)

    assert all(s.status == StepStatus.ALREADY_DONE for s in result.steps)
    assert len(schedule.status_updates) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_finalize_rejects_cancelled_and_waiting(lifecycle, medical_records):
    cancelled = await lifecycle.create(ANA)
    await lifecycle.cancel(cancelled.id)
    waiting = await lifecycle.create(ANA, status=ConsultationStatus.WAITING)

    with pytest.raises(InvalidTransitionError):
        await lifecycle.finalize(cancelled.id)
    with pytest.raises(InvalidTransitionError):
        await lifecycle.finalize(waiting.id)
    assert medical_records.rows == {}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unrecorded_external_outcome_stays_pending(
    lifecycle, consultations, schedule, ana_appointment
):
    """The schedule was updated but the bookkeeping write failed: state stays pending."""
    consultation = await lifecycle.create(ANA, ana_appointment.id)
    consultations.failing_fields = {"external_sync_attempts"}

    result = await lifecycle.finalize(consultation.id)

    assert result.outcome(SagaStep.UPDATE_EXTERNAL_STATUS).status == StepStatus.SUCCEEDED
    assert consultations.rows[consultation.id].external_sync_status == ExternalSyncStatus.PENDING
    assert schedule.status_updates == [(ana_appointment.id, ScheduleStatus.DONE)]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_retry_external_sync_requires_completed(lifecycle):
    consultation = await lifecycle.create(ANA, "apt-1")

    with pytest.raises(InvalidTransitionError):
        await lifecycle.retry_external_sync(consultation.id)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_non_json_schedule_answer_is_a_warning(consultations, medical_records, synchronizer, clock):
    """A proxy page instead of JSON after steps 1-3 must not fail finalize."""
    gateway = RESTExternalScheduleGateway(
        "https://schedule.test",
        "secret",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>proxy error</html>")),
    )
    lifecycle = ConsultationLifecycleManager(consultations, medical_records, synchronizer, gateway, clock)
    consultation = await lifecycle.create(ANA, "apt-1")

    result = await lifecycle.finalize(consultation.id)

    assert result.consultation.status == ConsultationStatus.COMPLETED
    assert result.outcome(SagaStep.UPDATE_EXTERNAL_STATUS).status == StepStatus.FAILED
    assert result.warning is not None
    assert consultations.rows[consultation.id].external_sync_status == ExternalSyncStatus.FAILED
    assert len(medical_records.rows) == 1
    await gateway.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unexpected_gateway_error_is_a_warning(lifecycle, consultations, schedule, ana_appointment):
    async def broken_update_status(appointment_id, status):
        raise KeyError("status")

    schedule.update_status = broken_update_status
    consultation = await lifecycle.create(ANA, ana_appointment.id)

    result = await lifecycle.finalize(consultation.id)

    assert result.consultation.status == ConsultationStatus.COMPLETED
    assert result.warning is not None
    assert "KeyError" in result.outcome(SagaStep.UPDATE_EXTERNAL_STATUS).detail


# ============================================================================
# Concurrent writers
# ============================================================================


def _stall_next_read(consultations) -> tuple[asyncio.Event, asyncio.Event]:
    """Make the next find_by_id read the row, then wait until released."""
    original = consultations.find_by_id
    read_done = asyncio.Event()
    release = asyncio.Event()

    async def stalled_find_by_id(consultation_id):
        found = await original(consultation_id)
        consultations.find_by_id = original
        read_done.set()
        await release.wait()
        return found

    consultations.find_by_id = stalled_find_by_id
    return read_done, release


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("operation", ["pause", "cancel"])
async def test_stale_transition_cannot_reopen_completed(
    lifecycle, consultations, medical_records, ana_appointment, operation
):
    consultation = await lifecycle.create(ANA, ana_appointment.id)
    read_done, release = _stall_next_read(consultations)

    racing = asyncio.create_task(getattr(lifecycle, operation)(consultation.id))
    await read_done.wait()
    await lifecycle.finalize(consultation.id)
    release.set()

    with pytest.raises(InvalidTransitionError) as exc_info:
        await racing

    assert exc_info.value.details["operation"] == operation
    assert consultations.rows[consultation.id].status == ConsultationStatus.COMPLETED
    assert consultation.id in medical_records.rows
    assert await lifecycle.recover_in_progress() == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stale_edit_cannot_change_completed(lifecycle, consultations, ana_appointment):
    consultation = await lifecycle.create(ANA, ana_appointment.id)
    await lifecycle.update(consultation.id, {"diagnosis": "miopia"})
    read_done, release = _stall_next_read(consultations)

    racing = asyncio.create_task(lifecycle.update(consultation.id, {"diagnosis": "astigmatismo"}))
    await read_done.wait()
    result = await lifecycle.finalize(consultation.id)
    release.set()

    with pytest.raises(InvalidTransitionError):
        await racing

    assert consultations.rows[consultation.id].diagnosis == "miopia"
    assert result.medical_record.diagnosis == "miopia"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_refused_once_medical_record_exists(lifecycle, consultations, medical_records):
    """A crash between steps 2 and 3: the consultation can only be finalized."""
    consultation = await lifecycle.create(ANA)
    medical_records.rows[consultation.id] = MedicalRecord.from_consultation(consultation, patient_id="p-prev")

    with pytest.raises(InvalidTransitionError):
        await lifecycle.cancel(consultation.id)

    assert consultations.rows[consultation.id].status == ConsultationStatus.IN_PROGRESS
    result = await lifecycle.finalize(consultation.id)
    assert result.consultation.status == ConsultationStatus.COMPLETED
