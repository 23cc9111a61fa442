# ============================================================================
# SCOPE: APPLICATION LAYER (Clinic)
# Description: Typed use case result.
# ============================================================================
"""Use Case Result.

Use cases never log-and-return-None: they return either the value or a typed
error the caller can branch on.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from visioncare.core.domain.exceptions import (
    ConflictError,
    DomainException,
    InvalidTransitionError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_TRANSITION = "invalid_transition"
    UPSTREAM = "upstream"

    @classmethod
    def of(cls, exc: DomainException) -> "ErrorKind":
        kinds: list[tuple[type[DomainException], ErrorKind]] = [
            (ValidationError, cls.VALIDATION),
            (NotFoundError, cls.NOT_FOUND),
            (ConflictError, cls.CONFLICT),
            (InvalidTransitionError, cls.INVALID_TRANSITION),
            (UpstreamError, cls.UPSTREAM),
        ]
        for exc_type, kind in kinds:
            if isinstance(exc, exc_type):
                return kind
        raise TypeError(f"No error kind for {type(exc).__name__}")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success value or typed error."""

    success: bool
    data: T | None = None
    error_kind: ErrorKind | None = None
    error: DomainException | None = None

    @classmethod
    def ok(cls, data: T) -> "Result[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: DomainException) -> "Result[T]":
        return cls(success=False, error_kind=ErrorKind.of(exc), error=exc)

    @property
    def error_message(self) -> str | None:
        return self.error.message if self.error else None

    def unwrap(self) -> T:
        """Return the value, re-raising the error of a failed result."""
        if self.error is not None:
            raise self.error
        return self.data  # type: ignore[return-value]

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True}
        assert self.error is not None and self.error_kind is not None
        return {"success": False, "error_kind": self.error_kind.value, **self.error.to_dict()}
