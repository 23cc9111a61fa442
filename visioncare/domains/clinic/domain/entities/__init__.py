"""Clinic domain entities."""

from .central_customer import CentralCustomer, CentralCustomerDraft, CustomerAddress
from .consultation import (
    CANCEL_FIELDS,
    COMPLETION_FIELDS,
    EXTERNAL_SYNC_FIELDS,
    STATUS_FIELDS,
    UPDATABLE_FIELDS,
    Consultation,
)
from .external_appointment import DoctorRef, ExternalAppointment
from .local_patient import LocalPatient
from .medical_record import MedicalRecord

__all__ = [
    "CentralCustomer",
    "CentralCustomerDraft",
    "CustomerAddress",
    "Consultation",
    "CANCEL_FIELDS",
    "COMPLETION_FIELDS",
    "EXTERNAL_SYNC_FIELDS",
    "STATUS_FIELDS",
    "UPDATABLE_FIELDS",
    "DoctorRef",
    "ExternalAppointment",
    "LocalPatient",
    "MedicalRecord",
]
