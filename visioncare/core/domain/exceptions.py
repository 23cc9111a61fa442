"""
Domain Exceptions

Error taxonomy shared by every layer of the clinic service. Services raise
these, use cases fold them into a typed ``Result``, and the API layer maps
them to HTTP responses.
"""

from typing import Any


class DomainException(Exception):
    """
    Base exception for all domain-related errors.

    Provides a standardized way to communicate business rule violations.
    """

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None):
        """
        Initialize domain exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "NOT_FOUND")
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(DomainException):
    """
    Raised when input or stored data fails validation.

    Examples: a CPF that does not normalize to 11 digits, an unknown
    consultation field, an exam payload with an unsupported schema version.
    """

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class NotFoundError(DomainException):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity_type: str, entity_id: Any, message: str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        msg = message or f"{entity_type} with ID {entity_id} not found"
        super().__init__(
            msg,
            "NOT_FOUND",
            {"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class ConflictError(DomainException):
    """
    Raised when a write collides with a uniqueness constraint.

    Callers that write by natural key (CPF, consultation id) treat this as
    "someone else got there first" and re-read.
    """

    def __init__(self, entity_type: str, field: str, value: Any, message: str | None = None):
        self.entity_type = entity_type
        self.field = field
        self.value = value
        super().__init__(
            message or f"{entity_type} with {field}='{value}' already exists",
            "CONFLICT",
            {"entity_type": entity_type, "field": field, "value": str(value)},
        )


class InvalidTransitionError(DomainException):
    """Raised when an operation is not valid in the consultation's current state."""

    def __init__(self, operation: str, current_state: str, message: str | None = None):
        self.operation = operation
        self.current_state = current_state
        msg = message or f"Cannot perform '{operation}' in state '{current_state}'"
        super().__init__(
            msg,
            "INVALID_TRANSITION",
            {"operation": operation, "current_state": current_state},
        )


class UpstreamError(DomainException):
    """Raised when a store (external registry, schedule or local database) is unreachable or fails."""

    def __init__(self, service: str, message: str, original_error: Exception | None = None):
        self.service = service
        self.original_error = original_error
        details: dict[str, Any] = {"service": service}
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(message, "UPSTREAM_ERROR", details)


class PartialFinalizationError(DomainException):
    """
    A finalization step after the consultation was completed did not succeed.

    Never raised out of ``finalize``: it is attached to the finalization
    result as a warning. The medical record is durable and the step is left
    for the background reconciliation job.
    """

    def __init__(self, step: str, consultation_id: str, cause: str):
        self.step = step
        self.consultation_id = consultation_id
        self.cause = cause
        super().__init__(
            f"Consultation {consultation_id} finalized, but step '{step}' failed: {cause}",
            "PARTIAL_FINALIZATION",
            {"step": step, "consultation_id": consultation_id, "cause": cause},
        )
