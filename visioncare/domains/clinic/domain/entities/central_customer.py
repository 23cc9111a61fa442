"""Central Customer Entity.

Record of the shared customer registry used by every clinic system.
"""

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class CustomerAddress:
    """Endereço estruturado do cadastro central."""

    street: str | None = None
    number: str | None = None
    complement: str | None = None
    neighborhood: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None

    def is_empty(self) -> bool:
        return not any(vars(self).values())


@dataclass(frozen=True)
class CentralCustomer:
    """Cliente do cadastro central."""

    id: str
    name: str
    phone: str | None = None
    cpf: str | None = None
    code: str | None = None
    rg: str | None = None
    email: str | None = None
    birth_date: date | None = None
    address: CustomerAddress | None = None
    registration_complete: bool = False
    active: bool = True
    created_at: datetime | None = None


@dataclass(frozen=True)
class CentralCustomerDraft:
    """Minimal data used to provision a registry record (quick registration)."""

    name: str
    phone: str | None = None
    cpf: str | None = None
    email: str | None = None
    birth_date: date | None = None
    registration_complete: bool = False
    active: bool = True
