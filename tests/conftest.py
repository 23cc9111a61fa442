"""
Shared pytest fixtures for all tests.

In-memory implementations of the clinic ports, a deterministic clock and
ready-wired services. Stores keep copies of what they are given, so a
service only sees what it actually persisted.
"""

import copy
import os
from dataclasses import replace
from datetime import UTC, date, datetime, timedelta
from typing import Any

import pytest

from visioncare.core.domain.entities import new_id
from visioncare.core.domain.exceptions import ConflictError, InvalidTransitionError, NotFoundError, UpstreamError
from visioncare.domains.clinic.application.ports import AppointmentFilters
from visioncare.domains.clinic.application.services import (
    ConsultationLifecycleManager,
    IdentityResolver,
    LocalPatientSynchronizer,
)
from visioncare.domains.clinic.domain.entities import (
    CentralCustomer,
    CentralCustomerDraft,
    Consultation,
    DoctorRef,
    ExternalAppointment,
    LocalPatient,
    MedicalRecord,
)
from visioncare.domains.clinic.domain.value_objects import ConsultationStatus, ExternalSyncStatus, ScheduleStatus

# Ensure test environment
os.environ["ENVIRONMENT"] = "test"


# ============================================================================
# CLOCK
# ============================================================================


class TickingClock:
    """Returns a strictly increasing time, one second per call."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 10, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


# ============================================================================
# IN-MEMORY PORTS
# ============================================================================


class InMemoryCentralRegistry:
    """ICentralRegistryClient keeping records in insertion order."""

    def __init__(self) -> None:
        self.records: list[CentralCustomer] = []
        self.created: list[CentralCustomerDraft] = []
        self.unavailable = False
        # Record inserted by "another writer" right before our create
        self.concurrent_record: CentralCustomer | None = None

    def add(self, name: str, phone: str | None = None, cpf: str | None = None, **kwargs: Any) -> CentralCustomer:
        record = CentralCustomer(id=kwargs.pop("id", new_id()), name=name, phone=phone, cpf=cpf, **kwargs)
        self.records.append(record)
        return record

    def _check(self) -> None:
        if self.unavailable:
            raise UpstreamError("central_registry", "central_registry is temporarily unavailable")

    async def find_by_cpf(self, cpf: str) -> CentralCustomer | None:
        self._check()
        return next((r for r in reversed(self.records) if r.cpf == cpf), None)

    async def find_by_phone(self, phone: str) -> list[CentralCustomer]:
        self._check()
        return [r for r in reversed(self.records) if r.phone == phone]

    async def get(self, customer_id: str) -> CentralCustomer | None:
        self._check()
        return next((r for r in self.records if r.id == customer_id), None)

    async def create(self, draft: CentralCustomerDraft) -> CentralCustomer:
        self._check()
        if self.concurrent_record is not None:
            self.records.append(self.concurrent_record)
            self.concurrent_record = None
        if draft.cpf and any(r.cpf == draft.cpf for r in self.records):
            raise ConflictError("clientes", "cpf", draft.cpf)
        self.created.append(draft)
        return self.add(
            draft.name,
            phone=draft.phone,
            cpf=draft.cpf,
            email=draft.email,
            birth_date=draft.birth_date,
            registration_complete=draft.registration_complete,
        )

    async def update(self, customer_id: str, changes: dict[str, Any]) -> CentralCustomer | None:
        self._check()
        for index, record in enumerate(self.records):
            if record.id == customer_id:
                updated = replace(record, **changes)
                self.records[index] = updated
                return updated
        return None


class InMemoryLocalPatientRepository:
    """ILocalPatientRepository with a unique CPF constraint."""

    def __init__(self) -> None:
        self.rows: dict[str, LocalPatient] = {}
        self.insert_calls = 0
        # Patient inserted by "another writer" between our read and our insert
        self.concurrent_insert: LocalPatient | None = None

    async def find_by_cpf(self, cpf: str) -> LocalPatient | None:
        row = self.rows.get(cpf)
        return copy.deepcopy(row) if row else None

    async def insert(self, patient: LocalPatient) -> LocalPatient:
        self.insert_calls += 1
        if self.concurrent_insert is not None:
            winner, self.concurrent_insert = self.concurrent_insert, None
            self.rows[winner.cpf] = winner
        if patient.cpf in self.rows:
            raise ConflictError("LocalPatient", "cpf", patient.cpf)
        stored = copy.deepcopy(patient)
        stored.id = stored.id or new_id()
        self.rows[stored.cpf] = stored
        return copy.deepcopy(stored)


class InMemoryConsultationRepository:
    """IConsultationRepository writing only the requested fields."""

    def __init__(self) -> None:
        self.rows: dict[str, Consultation] = {}
        self.writes: list[set[str]] = []
        self.failing_fields: set[str] = set()

    async def find_by_id(self, consultation_id: str) -> Consultation | None:
        row = self.rows.get(consultation_id)
        return copy.deepcopy(row) if row else None

    async def save(self, consultation: Consultation) -> Consultation:
        assert consultation.id is not None
        self.rows[consultation.id] = copy.deepcopy(consultation)
        return copy.deepcopy(consultation)

    async def update_fields(self, consultation: Consultation, field_names, expected_statuses=None) -> None:
        names = set(field_names)
        if names & self.failing_fields:
            raise UpstreamError("local_store", "Database error")
        assert consultation.id is not None
        stored = self.rows.get(consultation.id)
        if stored is None:
            raise NotFoundError("Consultation", consultation.id)
        if expected_statuses is not None and stored.status not in set(expected_statuses):
            raise InvalidTransitionError("update", stored.status.value)
        for name in names:
            setattr(stored, name, copy.deepcopy(getattr(consultation, name)))
        self.writes.append(names)

    async def find_by_statuses(self, statuses) -> list[Consultation]:
        wanted = set(statuses)
        rows = [c for c in self.rows.values() if c.status in wanted]
        return [copy.deepcopy(c) for c in sorted(rows, key=lambda c: c.created_at, reverse=True)]

    async def find_by_filters(self, filters) -> list[Consultation]:
        rows = [c for c in self.rows.values() if _matches(c, filters)]
        rows.sort(key=lambda c: c.created_at, reverse=True)
        start = filters.offset or 0
        end = start + filters.limit if filters.limit else None
        return [copy.deepcopy(c) for c in rows[start:end]]

    async def count_by_status(self, created_from=None) -> dict[ConsultationStatus, int]:
        counts = {status: 0 for status in ConsultationStatus}
        for c in self.rows.values():
            if created_from is None or c.created_at >= created_from:
                counts[c.status] += 1
        return counts

    async def find_pending_external_sync(self, limit: int, max_attempts: int) -> list[Consultation]:
        rows = [
            c
            for c in self.rows.values()
            if c.status == ConsultationStatus.COMPLETED
            and c.external_sync_status in (ExternalSyncStatus.PENDING, ExternalSyncStatus.FAILED)
            and c.external_sync_attempts < max_attempts
        ]
        rows.sort(key=lambda c: c.completed_at or c.created_at)
        return [copy.deepcopy(c) for c in rows[:limit]]


def _matches(consultation: Consultation, filters) -> bool:
    if filters.status and consultation.status != filters.status:
        return False
    if filters.doctor_ref and consultation.doctor_ref != filters.doctor_ref:
        return False
    if filters.patient_ref and consultation.patient_ref != filters.patient_ref:
        return False
    if filters.patient_name and filters.patient_name.lower() not in consultation.patient_snapshot.name.lower():
        return False
    if filters.created_from and consultation.created_at < filters.created_from:
        return False
    if filters.created_to and consultation.created_at > filters.created_to:
        return False
    return True


class InMemoryMedicalRecordRepository:
    """IMedicalRecordRepository, unique per consultation."""

    def __init__(self) -> None:
        self.rows: dict[str, MedicalRecord] = {}
        self.fail = False

    async def find_by_consultation(self, consultation_id: str) -> MedicalRecord | None:
        return self.rows.get(consultation_id)

    async def find_by_patient(self, patient_id: str) -> list[MedicalRecord]:
        rows = [r for r in self.rows.values() if r.patient_id == patient_id]
        return sorted(rows, key=lambda r: (r.consultation_date, r.created_at), reverse=True)

    async def create(self, record: MedicalRecord) -> MedicalRecord:
        if self.fail:
            raise UpstreamError("local_store", "Database error")
        if record.consultation_id in self.rows:
            raise ConflictError("MedicalRecord", "consultation_id", record.consultation_id)
        self.rows[record.consultation_id] = record
        return record


class FakeScheduleGateway:
    """IExternalScheduleGateway over a dict of appointments."""

    def __init__(self) -> None:
        self.appointments: dict[str, ExternalAppointment] = {}
        self.status_updates: list[tuple[str, ScheduleStatus]] = []
        self.unavailable = False

    def add(self, appointment_id: str, patient_name: str, **kwargs: Any) -> ExternalAppointment:
        kwargs.setdefault("appointment_date", date(2026, 3, 10))
        kwargs.setdefault("status", ScheduleStatus.CONFIRMED)
        appointment = ExternalAppointment(id=appointment_id, patient_name=patient_name, **kwargs)
        self.appointments[appointment_id] = appointment
        return appointment

    async def list_appointments(self, filters: AppointmentFilters) -> list[ExternalAppointment]:
        if self.unavailable:
            raise UpstreamError("schedule_gateway", "schedule_gateway is temporarily unavailable")
        items = list(self.appointments.values())
        if filters.status:
            items = [a for a in items if a.status == filters.status]
        if filters.doctor_id:
            items = [a for a in items if a.doctor and a.doctor.id == filters.doctor_id]
        return items

    async def get_appointment(self, appointment_id: str) -> ExternalAppointment | None:
        if self.unavailable:
            raise UpstreamError("schedule_gateway", "schedule_gateway is temporarily unavailable")
        return self.appointments.get(appointment_id)

    async def update_status(self, appointment_id: str, status: ScheduleStatus) -> bool:
        if self.unavailable:
            raise UpstreamError("schedule_gateway", "Could not reach schedule_gateway")
        if appointment_id not in self.appointments:
            return False
        self.status_updates.append((appointment_id, status))
        self.appointments[appointment_id] = replace(self.appointments[appointment_id], status=status)
        return True


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def registry() -> InMemoryCentralRegistry:
    return InMemoryCentralRegistry()


@pytest.fixture
def patients() -> InMemoryLocalPatientRepository:
    return InMemoryLocalPatientRepository()


@pytest.fixture
def consultations() -> InMemoryConsultationRepository:
    return InMemoryConsultationRepository()


@pytest.fixture
def medical_records() -> InMemoryMedicalRecordRepository:
    return InMemoryMedicalRecordRepository()


@pytest.fixture
def schedule() -> FakeScheduleGateway:
    return FakeScheduleGateway()


@pytest.fixture
def resolver(registry) -> IdentityResolver:
    return IdentityResolver(registry)


@pytest.fixture
def synchronizer(patients) -> LocalPatientSynchronizer:
    return LocalPatientSynchronizer(patients)


@pytest.fixture
def lifecycle(consultations, medical_records, synchronizer, schedule, clock) -> ConsultationLifecycleManager:
    return ConsultationLifecycleManager(
        consultations=consultations,
        medical_records=medical_records,
        synchronizer=synchronizer,
        schedule_gateway=schedule,
        clock=clock,
    )


@pytest.fixture
def ana_appointment(schedule) -> ExternalAppointment:
    """Appointment of a patient with a CPF and a doctor."""
    return schedule.add(
        "apt-1",
        "Ana Souza",
        phone="(11) 98888-7777",
        cpf="123.456.789-01",
        birth_date="1985-04-12",
        time="09:30",
        doctor=DoctorRef(id="doc-1", name="Dr. Lima"),
    )
