# ============================================================================
# SCOPE: APPLICATION LAYER (Clinic)
# Description: Use case for starting a consultation from an appointment.
# ============================================================================
"""Start Consultation Use Case.

Opens a consultation for an external appointment, freezing the patient
identity known at that moment into the consultation snapshot.
"""

import logging

from visioncare.core.domain.exceptions import DomainException, NotFoundError, UpstreamError

from ..dto import IdentityMatch, IdentityQuery, Result, StartConsultationRequest, StartConsultationResult
from ..ports import IExternalScheduleGateway, ILocalPatientRepository
from ..services import ConsultationLifecycleManager, IdentityResolver
from ...domain.entities import ExternalAppointment
from ...domain.value_objects import PatientSnapshot

logger = logging.getLogger(__name__)


class StartConsultationUseCase:
    """Use case for starting a consultation.

    Identity resolution is best effort here: an unreachable registry must
    not keep the clinician from starting, so the consultation is created
    unresolved and the error is returned alongside it.
    """

    def __init__(
        self,
        schedule: IExternalScheduleGateway,
        resolver: IdentityResolver,
        lifecycle: ConsultationLifecycleManager,
        patients: ILocalPatientRepository,
    ) -> None:
        self._schedule = schedule
        self._resolver = resolver
        self._lifecycle = lifecycle
        self._patients = patients

    async def execute(self, request: StartConsultationRequest) -> Result[StartConsultationResult]:
        """Execute the start consultation use case.

        Args:
            request: Appointment to start and optional consultation id.

        Returns:
            Result with the consultation and its identity match.
        """
        logger.info(f"Starting consultation for appointment {request.appointment_id}")
        try:
            appointment = await self._schedule.get_appointment(request.appointment_id)
            if appointment is None:
                raise NotFoundError("Appointment", request.appointment_id)

            identity, identity_error = await self._resolve(appointment)
            snapshot = self._build_snapshot(appointment, identity)

            patient_ref = None
            if snapshot.cpf:
                local = await self._patients.find_by_cpf(snapshot.cpf)
                patient_ref = local.id if local else None

            consultation = await self._lifecycle.create(
                snapshot,
                appointment.id,
                consultation_id=request.consultation_id,
                doctor_ref=request.doctor_ref or (appointment.doctor.id if appointment.doctor else None),
                patient_ref=patient_ref,
                status=request.initial_status,
            )
        except DomainException as e:
            logger.warning(f"Could not start consultation for appointment {request.appointment_id}: {e.message}")
            return Result.fail(e)

        return Result.ok(
            StartConsultationResult(consultation=consultation, identity=identity, identity_error=identity_error)
        )

    async def _resolve(self, appointment: ExternalAppointment) -> tuple[IdentityMatch, str | None]:
        query = IdentityQuery(
            name=appointment.patient_name,
            phone=appointment.phone,
            cpf=appointment.cpf,
            birth_date=appointment.birth_date,
            email=appointment.email,
        )
        try:
            return await self._resolver.resolve(query, provision=True), None
        except UpstreamError as e:
            logger.warning(f"Identity resolution unavailable for appointment {appointment.id}: {e.message}")
            return IdentityMatch.unresolved(), e.message

    @staticmethod
    def _build_snapshot(appointment: ExternalAppointment, identity: IdentityMatch) -> PatientSnapshot:
        record = identity.record
        # Only a trusted match may contribute registry data to the snapshot
        trusted = record if record is not None and identity.confidence.is_trusted() else None
        return PatientSnapshot(
            name=appointment.patient_name,
            cpf=appointment.cpf or (trusted.cpf if trusted else None),
            phone=appointment.phone,
            birth_date=appointment.birth_date
            or (trusted.birth_date.isoformat() if trusted and trusted.birth_date else None),
            email=appointment.email or (trusted.email if trusted else None),
            central_customer_id=record.id if record else None,
            identity_confidence=identity.confidence,
        )
