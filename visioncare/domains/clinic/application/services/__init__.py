"""Clinic application services."""

from .auto_save import ConsultationAutoSaver
from .consultation_lifecycle import ConsultationLifecycleManager
from .consultation_queries import ConsultationQueryService
from .external_status_reconciler import ExternalStatusReconciler
from .identity_resolver import IdentityResolver
from .patient_synchronizer import LocalPatientSynchronizer

__all__ = [
    "ConsultationAutoSaver",
    "ConsultationLifecycleManager",
    "ConsultationQueryService",
    "ExternalStatusReconciler",
    "IdentityResolver",
    "LocalPatientSynchronizer",
]
