"""
Clinic API Routes

FastAPI router for the clinic endpoints. Domain exceptions propagate to the
application exception handlers, which map them to HTTP status codes.
"""

from datetime import date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from ..application.dto import StartConsultationRequest
from ..application.ports import AppointmentFilters, ConsultationFilters
from ..application.services import ConsultationLifecycleManager, ConsultationQueryService, IdentityResolver
from ..application.use_cases import (
    CompleteRegistrationUseCase,
    GetMedicalHistoryUseCase,
    ListAppointmentsUseCase,
    StartConsultationUseCase,
)
from ..domain.value_objects import ConsultationStatus, ScheduleStatus
from .dependencies import (
    ContainerDep,
    get_complete_registration_use_case,
    get_consultation_query_service,
    get_identity_resolver,
    get_lifecycle_manager,
    get_list_appointments_use_case,
    get_medical_history_use_case,
    get_start_consultation_use_case,
)
from .schemas import (
    AppointmentWithIdentityResponse,
    CancelConsultationRequest,
    CentralCustomerResponse,
    ConsultationResponse,
    ConsultationStatsResponse,
    ConsultationUpdateRequest,
    CreateConsultationRequest,
    FinalizationResponse,
    FinalizeRequest,
    IdentityMatchResponse,
    IdentityQueryRequest,
    MedicalHistoryResponse,
    RegistrationRequest,
    StartConsultationRequestSchema,
    StartConsultationResponse,
)

router = APIRouter(prefix="/clinic", tags=["Clinic"])

# Type aliases for dependencies
LifecycleDep = Annotated[ConsultationLifecycleManager, Depends(get_lifecycle_manager)]
IdentityResolverDep = Annotated[IdentityResolver, Depends(get_identity_resolver)]
StartConsultationUseCaseDep = Annotated[StartConsultationUseCase, Depends(get_start_consultation_use_case)]
ListAppointmentsUseCaseDep = Annotated[ListAppointmentsUseCase, Depends(get_list_appointments_use_case)]
CompleteRegistrationUseCaseDep = Annotated[CompleteRegistrationUseCase, Depends(get_complete_registration_use_case)]
QueriesDep = Annotated[ConsultationQueryService, Depends(get_consultation_query_service)]
MedicalHistoryUseCaseDep = Annotated[GetMedicalHistoryUseCase, Depends(get_medical_history_use_case)]


# =============================================================================
# Appointments and identity
# =============================================================================


@router.get("/appointments", response_model=list[AppointmentWithIdentityResponse])
async def list_appointments(
    use_case: ListAppointmentsUseCaseDep,
    date_from: date | None = None,
    date_to: date | None = None,
    status_filter: Annotated[ScheduleStatus | None, Query(alias="status")] = None,
    doctor_id: str | None = None,
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
    offset: Annotated[int | None, Query(ge=0)] = None,
):
    """List external appointments annotated with the resolved identity."""
    result = await use_case.execute(
        AppointmentFilters(
            date_from=date_from,
            date_to=date_to,
            status=status_filter,
            doctor_id=doctor_id,
            limit=limit,
            offset=offset,
        )
    )
    return [AppointmentWithIdentityResponse.from_dto(item) for item in result.unwrap()]


@router.post("/identity/resolve", response_model=IdentityMatchResponse)
async def resolve_identity(request: IdentityQueryRequest, resolver: IdentityResolverDep):
    """Resolve a person to a central registry record."""
    match = await resolver.resolve(request.to_query(), provision=request.provision)
    return IdentityMatchResponse.from_match(match)


@router.put("/identity/customers/{customer_id}/registration", response_model=CentralCustomerResponse)
async def complete_registration(
    customer_id: str,
    request: RegistrationRequest,
    use_case: CompleteRegistrationUseCaseDep,
):
    """Confirm an incomplete registry record with the collected details."""
    result = await use_case.execute(customer_id, request.to_details())
    return CentralCustomerResponse.from_entity(result.unwrap())


# =============================================================================
# Consultations
# =============================================================================


@router.post("/consultations/start", response_model=StartConsultationResponse, status_code=status.HTTP_201_CREATED)
async def start_consultation(request: StartConsultationRequestSchema, use_case: StartConsultationUseCaseDep):
    """Start a consultation from an external appointment."""
    result = await use_case.execute(
        StartConsultationRequest(
            appointment_id=request.appointment_id,
            consultation_id=request.consultation_id,
            doctor_ref=request.doctor_id,
            initial_status=request.initial_status,
        )
    )
    return StartConsultationResponse.from_result(result.unwrap())


@router.post("/consultations", response_model=ConsultationResponse, status_code=status.HTTP_201_CREATED)
async def create_consultation(request: CreateConsultationRequest, lifecycle: LifecycleDep):
    """Create a consultation from an explicit patient snapshot."""
    consultation = await lifecycle.create(
        request.patient.to_snapshot(),
        request.appointment_id,
        consultation_id=request.consultation_id,
        doctor_ref=request.doctor_id,
        patient_ref=request.patient_id,
        status=request.status,
    )
    return ConsultationResponse.from_entity(consultation)


@router.get("/consultations/recover", response_model=list[ConsultationResponse])
async def recover_consultations(lifecycle: LifecycleDep):
    """Open consultations (waiting or in progress), newest first."""
    consultations = await lifecycle.recover_in_progress()
    return [ConsultationResponse.from_entity(c) for c in consultations]


@router.get("/consultations", response_model=list[ConsultationResponse])
async def list_consultations(
    queries: QueriesDep,
    status_filter: Annotated[ConsultationStatus | None, Query(alias="status")] = None,
    doctor_id: str | None = None,
    patient_id: str | None = None,
    patient_name: str | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
    offset: Annotated[int | None, Query(ge=0)] = None,
):
    """List consultations matching every given filter, newest first."""
    consultations = await queries.search(
        ConsultationFilters(
            status=status_filter,
            doctor_ref=doctor_id,
            patient_ref=patient_id,
            patient_name=patient_name,
            created_from=created_from,
            created_to=created_to,
            limit=limit,
            offset=offset,
        )
    )
    return [ConsultationResponse.from_entity(c) for c in consultations]


@router.get("/consultations/stats", response_model=ConsultationStatsResponse)
async def consultation_stats(queries: QueriesDep):
    return ConsultationStatsResponse.from_stats(await queries.stats())


@router.get("/consultations/{consultation_id}", response_model=ConsultationResponse)
async def get_consultation(consultation_id: str, lifecycle: LifecycleDep):
    consultation = await lifecycle.get(consultation_id)
    return ConsultationResponse.from_entity(consultation)


@router.patch("/consultations/{consultation_id}", response_model=ConsultationResponse)
async def update_consultation(consultation_id: str, request: ConsultationUpdateRequest, lifecycle: LifecycleDep):
    """Write the supplied fields only (auto-save target)."""
    consultation = await lifecycle.update(consultation_id, request.to_changes())
    return ConsultationResponse.from_entity(consultation)


@router.post("/consultations/{consultation_id}/pause", response_model=ConsultationResponse)
async def pause_consultation(consultation_id: str, lifecycle: LifecycleDep):
    return ConsultationResponse.from_entity(await lifecycle.pause(consultation_id))


@router.post("/consultations/{consultation_id}/resume", response_model=ConsultationResponse)
async def resume_consultation(consultation_id: str, lifecycle: LifecycleDep):
    return ConsultationResponse.from_entity(await lifecycle.resume(consultation_id))


@router.post("/consultations/{consultation_id}/finalize", response_model=FinalizationResponse)
async def finalize_consultation(
    consultation_id: str,
    lifecycle: LifecycleDep,
    request: FinalizeRequest | None = None,
):
    """Run the finalization saga.

    A failed external status update still answers 200 with a warning; the
    reconciliation job retries it.
    """
    clinical_fields = None
    if request is not None and request.clinical_fields is not None:
        clinical_fields = request.clinical_fields.to_changes()
    result = await lifecycle.finalize(consultation_id, clinical_fields)
    return FinalizationResponse.from_result(result)


@router.post("/consultations/{consultation_id}/cancel", response_model=ConsultationResponse)
async def cancel_consultation(
    consultation_id: str,
    lifecycle: LifecycleDep,
    request: CancelConsultationRequest | None = None,
):
    reason = request.reason if request is not None else None
    return ConsultationResponse.from_entity(await lifecycle.cancel(consultation_id, reason))


@router.get("/patients/{patient_id}/consultations", response_model=list[ConsultationResponse])
async def list_patient_consultations(patient_id: str, queries: QueriesDep):
    return [ConsultationResponse.from_entity(c) for c in await queries.list_for_patient(patient_id)]


@router.get("/doctors/{doctor_id}/consultations", response_model=list[ConsultationResponse])
async def list_doctor_consultations(doctor_id: str, queries: QueriesDep):
    return [ConsultationResponse.from_entity(c) for c in await queries.list_for_doctor(doctor_id)]


@router.get("/medical-history/{cpf}", response_model=MedicalHistoryResponse)
async def get_medical_history(cpf: str, use_case: MedicalHistoryUseCaseDep):
    """Registry record, local patient and medical records of a CPF.

    An unreachable registry still answers 200 with ``registry_error`` set.
    """
    result = await use_case.execute(cpf)
    return MedicalHistoryResponse.from_history(result.unwrap())


# =============================================================================
# Health
# =============================================================================


@router.get("/health")
async def clinic_health(container: ContainerDep) -> dict[str, str]:
    """Local store connectivity."""
    database_ok = await container.database.ping()
    return {
        "status": "ok" if database_ok else "degraded",
        "database": "ok" if database_ok else "unreachable",
    }


__all__ = ["router"]
