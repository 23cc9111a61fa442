"""Identity resolution DTOs."""

from dataclasses import dataclass
from datetime import date

from ...domain.entities import CentralCustomer
from ...domain.value_objects import MatchConfidence


@dataclass(frozen=True)
class IdentityQuery:
    """Loosely specified person as it arrives from the schedule."""

    name: str
    phone: str | None = None
    cpf: str | None = None
    birth_date: str | None = None
    email: str | None = None

    def parsed_birth_date(self) -> date | None:
        """Birth date as a date; schedules send ISO text, anything else is dropped."""
        if not self.birth_date:
            return None
        try:
            return date.fromisoformat(self.birth_date[:10])
        except ValueError:
            return None


@dataclass(frozen=True)
class IdentityMatch:
    """Registry record the query resolved to, if any."""

    record: CentralCustomer | None
    confidence: MatchConfidence
    provisioned: bool = False

    @property
    def requires_confirmation(self) -> bool:
        """Registration incomplete: a person must confirm this identity."""
        if self.record is None or not self.confidence.is_trusted():
            return True
        return not self.record.registration_complete

    @classmethod
    def unresolved(cls) -> "IdentityMatch":
        return cls(record=None, confidence=MatchConfidence.NONE)


@dataclass(frozen=True)
class RegistrationDetails:
    """Details collected when a registration is confirmed manually."""

    cpf: str | None = None
    rg: str | None = None
    email: str | None = None
    birth_date: str | None = None
    address: dict[str, str | None] | None = None
