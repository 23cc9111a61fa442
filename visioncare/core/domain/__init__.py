"""
Core Domain

Base entity and the exception taxonomy shared by all domains.
"""

from visioncare.core.domain.entities import Entity, new_id, utc_now
from visioncare.core.domain.exceptions import (
    ConflictError,
    DomainException,
    InvalidTransitionError,
    NotFoundError,
    PartialFinalizationError,
    UpstreamError,
    ValidationError,
)

__all__ = [
    "Entity",
    "new_id",
    "utc_now",
    "DomainException",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    "UpstreamError",
    "PartialFinalizationError",
]
