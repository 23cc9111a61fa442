"""
Clinic API Dependencies

FastAPI dependencies for the clinic domain. Everything is resolved through
the ClinicContainer stored on ``app.state`` by the lifespan.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from visioncare.core.container import ClinicContainer
from visioncare.core.domain.exceptions import UpstreamError

from ..application.services import ConsultationLifecycleManager, ConsultationQueryService, IdentityResolver
from ..application.use_cases import (
    CompleteRegistrationUseCase,
    GetMedicalHistoryUseCase,
    ListAppointmentsUseCase,
    StartConsultationUseCase,
)


def get_container(request: Request) -> ClinicContainer:
    """Get the application container built by the lifespan."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise UpstreamError("application", "Service is starting up")
    return container


ContainerDep = Annotated[ClinicContainer, Depends(get_container)]


async def get_db_session(container: ContainerDep) -> AsyncGenerator[AsyncSession, None]:
    """One local-store session per request."""
    async with container.database.session() as session:
        yield session


# Type alias for database session dependency
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


def get_identity_resolver(container: ContainerDep) -> IdentityResolver:
    return container.create_identity_resolver()


def get_lifecycle_manager(container: ContainerDep, db: DbSession) -> ConsultationLifecycleManager:
    """Get ConsultationLifecycleManager bound to the request session."""
    return container.create_lifecycle_manager(db)


def get_consultation_query_service(container: ContainerDep, db: DbSession) -> ConsultationQueryService:
    return container.create_consultation_query_service(db)


def get_start_consultation_use_case(container: ContainerDep, db: DbSession) -> StartConsultationUseCase:
    return container.create_start_consultation_use_case(db)


def get_list_appointments_use_case(container: ContainerDep) -> ListAppointmentsUseCase:
    return container.create_list_appointments_use_case()


def get_complete_registration_use_case(container: ContainerDep) -> CompleteRegistrationUseCase:
    return container.create_complete_registration_use_case()


def get_medical_history_use_case(container: ContainerDep, db: DbSession) -> GetMedicalHistoryUseCase:
    return container.create_medical_history_use_case(db)


__all__ = [
    "ContainerDep",
    "DbSession",
    "get_complete_registration_use_case",
    "get_consultation_query_service",
    "get_container",
    "get_db_session",
    "get_identity_resolver",
    "get_lifecycle_manager",
    "get_list_appointments_use_case",
    "get_medical_history_use_case",
    "get_start_consultation_use_case",
]
