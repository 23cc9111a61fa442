# ============================================================================
# SCOPE: GLOBAL
# Description: Composition root. Owns the database, the two PostgREST clients
#              and the reconciliation scheduler; builds per-session services.
# ============================================================================
"""
Clinic Container

Single Responsibility: Wire concrete adapters to the clinic ports.

Long-lived resources (engine, HTTP clients, scheduler) are created once per
application and closed by the lifespan. Repositories and services are
created per database session through the ``create_*`` factories.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from visioncare.config.settings import Settings
from visioncare.database import Database
from visioncare.domains.clinic.application.dto import ReconciliationReport
from visioncare.domains.clinic.application.ports import ICentralRegistryClient, IExternalScheduleGateway
from visioncare.domains.clinic.application.services import (
    ConsultationAutoSaver,
    ConsultationLifecycleManager,
    ConsultationQueryService,
    ExternalStatusReconciler,
    IdentityResolver,
    LocalPatientSynchronizer,
)
from visioncare.domains.clinic.application.use_cases import (
    CompleteRegistrationUseCase,
    GetMedicalHistoryUseCase,
    ListAppointmentsUseCase,
    StartConsultationUseCase,
)
from visioncare.domains.clinic.infrastructure.external import (
    CircuitBreakerConfig,
    RESTCentralRegistryClient,
    RESTExternalScheduleGateway,
)
from visioncare.domains.clinic.infrastructure.repositories import (
    SQLAlchemyConsultationRepository,
    SQLAlchemyLocalPatientRepository,
    SQLAlchemyMedicalRecordRepository,
)
from visioncare.domains.clinic.infrastructure.scheduler import ReconciliationScheduler

logger = logging.getLogger(__name__)


class ClinicContainer:
    """
    Clinic dependency container.

    Adapters can be passed in explicitly (tests, scripts); anything omitted
    is built from settings.
    """

    def __init__(
        self,
        settings: Settings,
        database: Database | None = None,
        schedule_gateway: IExternalScheduleGateway | None = None,
        registry: ICentralRegistryClient | None = None,
    ):
        self.settings = settings
        self.database = database or Database(settings)

        breaker_config = CircuitBreakerConfig(
            failure_threshold=settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
            recovery_timeout=settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
        )
        self.schedule_gateway: IExternalScheduleGateway = schedule_gateway or RESTExternalScheduleGateway(
            settings.SCHEDULE_API_URL,
            settings.SCHEDULE_API_KEY,
            table=settings.SCHEDULE_APPOINTMENTS_TABLE,
            timeout=settings.EXTERNAL_HTTP_TIMEOUT,
            circuit_breaker_config=breaker_config,
        )
        self.registry: ICentralRegistryClient = registry or RESTCentralRegistryClient(
            settings.CENTRAL_REGISTRY_URL,
            settings.CENTRAL_REGISTRY_API_KEY,
            table=settings.CENTRAL_CUSTOMERS_TABLE,
            timeout=settings.EXTERNAL_HTTP_TIMEOUT,
            circuit_breaker_config=breaker_config,
        )
        self.scheduler = ReconciliationScheduler(
            self.run_reconciliation,
            interval_seconds=settings.RECONCILIATION_INTERVAL_SECONDS,
            timezone_name=settings.RECONCILIATION_TIMEZONE,
            enabled=settings.RECONCILIATION_ENABLED,
        )
        logger.info("ClinicContainer initialized")

    # ==================== REPOSITORIES ====================

    def create_patient_repository(self, db: AsyncSession) -> SQLAlchemyLocalPatientRepository:
        return SQLAlchemyLocalPatientRepository(session=db)

    def create_consultation_repository(self, db: AsyncSession) -> SQLAlchemyConsultationRepository:
        return SQLAlchemyConsultationRepository(session=db)

    def create_medical_record_repository(self, db: AsyncSession) -> SQLAlchemyMedicalRecordRepository:
        return SQLAlchemyMedicalRecordRepository(session=db)

    # ==================== SERVICES ====================

    def create_identity_resolver(self) -> IdentityResolver:
        return IdentityResolver(self.registry)

    def create_lifecycle_manager(self, db: AsyncSession) -> ConsultationLifecycleManager:
        """Create ConsultationLifecycleManager bound to one session."""
        return ConsultationLifecycleManager(
            consultations=self.create_consultation_repository(db),
            medical_records=self.create_medical_record_repository(db),
            synchronizer=LocalPatientSynchronizer(self.create_patient_repository(db)),
            schedule_gateway=self.schedule_gateway,
        )

    def create_consultation_query_service(self, db: AsyncSession) -> ConsultationQueryService:
        return ConsultationQueryService(
            self.create_consultation_repository(db),
            timezone=self.settings.CLINIC_TIMEZONE,
        )

    def create_auto_saver(self, db: AsyncSession, consultation_id: str) -> ConsultationAutoSaver:
        return ConsultationAutoSaver(
            self.create_lifecycle_manager(db),
            consultation_id,
            debounce_seconds=self.settings.AUTOSAVE_DEBOUNCE_SECONDS,
        )

    def create_reconciler(self, db: AsyncSession) -> ExternalStatusReconciler:
        return ExternalStatusReconciler(
            consultations=self.create_consultation_repository(db),
            lifecycle=self.create_lifecycle_manager(db),
            batch_size=self.settings.RECONCILIATION_BATCH_SIZE,
            max_attempts=self.settings.RECONCILIATION_MAX_ATTEMPTS,
        )

    # ==================== USE CASES ====================

    def create_start_consultation_use_case(self, db: AsyncSession) -> StartConsultationUseCase:
        return StartConsultationUseCase(
            schedule=self.schedule_gateway,
            resolver=self.create_identity_resolver(),
            lifecycle=self.create_lifecycle_manager(db),
            patients=self.create_patient_repository(db),
        )

    def create_list_appointments_use_case(self) -> ListAppointmentsUseCase:
        return ListAppointmentsUseCase(
            schedule=self.schedule_gateway,
            resolver=self.create_identity_resolver(),
        )

    def create_complete_registration_use_case(self) -> CompleteRegistrationUseCase:
        return CompleteRegistrationUseCase(registry=self.registry)

    def create_medical_history_use_case(self, db: AsyncSession) -> GetMedicalHistoryUseCase:
        return GetMedicalHistoryUseCase(
            registry=self.registry,
            patients=self.create_patient_repository(db),
            medical_records=self.create_medical_record_repository(db),
        )

    # ==================== BACKGROUND JOBS ====================

    async def run_reconciliation(self) -> ReconciliationReport:
        """One reconciliation pass in its own session."""
        async with self.database.session() as db:
            return await self.create_reconciler(db).run_once()

    # ==================== LIFECYCLE ====================

    async def start(self) -> None:
        await self.scheduler.start()

    async def close(self) -> None:
        """Stop the scheduler, then release HTTP clients and the engine."""
        await self.scheduler.stop()
        for client in (self.schedule_gateway, self.registry):
            close = getattr(client, "close", None)
            if close is not None:
                await close()
        await self.database.dispose()
        logger.info("ClinicContainer closed")
