"""Local Patient Entity.

Row of the clinic's own patient table. Exactly one per CPF; created lazily
the first time a consultation for that person is finalized.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from visioncare.core.domain.entities import Entity


@dataclass(eq=False)
class LocalPatient(Entity[str]):
    """Paciente local (referenciado pelos prontuários)."""

    cpf: str = ""
    name: str = ""
    phone: str | None = None
    email: str | None = None
    birth_date: date | None = None
    address: dict[str, Any] = field(default_factory=dict)
    insurance_info: dict[str, Any] = field(default_factory=dict)
    emergency_contact: dict[str, Any] = field(default_factory=dict)
