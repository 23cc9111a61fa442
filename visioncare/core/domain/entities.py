"""
Base Entity Classes

Entities are domain objects with identity and lifecycle.
They keep their identity regardless of their attributes.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Generic, TypeVar
from uuid import uuid4

TId = TypeVar("TId")


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def new_id() -> str:
    """Generate a new entity identifier (UUID4 string)."""
    return str(uuid4())


@dataclass
class Entity(Generic[TId]):
    """
    Base class for all domain entities.

    Type Parameters:
        TId: Type of entity identifier
    """

    id: TId | None = field(default=None)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __eq__(self, other: object) -> bool:
        """Entities are equal if they have the same ID."""
        if not isinstance(other, Entity):
            return False
        if self.id is None or other.id is None:
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id) if self.id is not None else id(self)

    def is_new(self) -> bool:
        """Check if entity has not been persisted yet."""
        return self.id is None

    def touch(self, now: datetime | None = None) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = now or utc_now()
