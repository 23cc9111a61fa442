"""Patient Snapshot Value Object.

Denormalized copy of the patient identity taken when a consultation starts.
It is never invalidated by later identity changes; blanks may be filled in.
"""

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

from visioncare.core.domain.exceptions import ValidationError

from .identity import normalize_cpf, normalize_phone
from .match_confidence import MatchConfidence


@dataclass(frozen=True)
class PatientSnapshot:
    """Identity data frozen into a consultation."""

    name: str
    cpf: str | None = None
    phone: str | None = None
    birth_date: str | None = None  # ISO date as received from the source system
    email: str | None = None
    central_customer_id: str | None = None
    identity_confidence: MatchConfidence = MatchConfidence.NONE

    def __post_init__(self) -> None:
        # Keys are stored normalized; a malformed CPF is kept out of the snapshot
        object.__setattr__(self, "cpf", normalize_cpf(self.cpf))
        object.__setattr__(self, "phone", normalize_phone(self.phone))
        if not isinstance(self.identity_confidence, MatchConfidence):
            object.__setattr__(self, "identity_confidence", MatchConfidence(self.identity_confidence))

    @property
    def has_cpf(self) -> bool:
        return self.cpf is not None

    def with_gaps_filled(self, values: Mapping[str, Any]) -> "PatientSnapshot":
        """Return a snapshot where only empty fields take the given values.

        Raises:
            ValidationError: If a key is not a snapshot field.
        """
        known = {f.name for f in fields(self)}
        unknown = set(values) - known
        if unknown:
            raise ValidationError(
                f"Unknown patient snapshot fields: {', '.join(sorted(unknown))}",
                field="patient_snapshot",
            )
        gaps = {key: value for key, value in values.items() if value not in (None, "") and not getattr(self, key)}
        if "cpf" in gaps and normalize_cpf(gaps["cpf"]) is None:
            raise ValidationError("CPF must contain 11 digits", field="patient_snapshot.cpf")
        return replace(self, **gaps) if gaps else self

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["identity_confidence"] = self.identity_confidence.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "PatientSnapshot":
        """Rebuild a snapshot from its stored JSON."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        values.setdefault("name", "")
        return cls(**values)
