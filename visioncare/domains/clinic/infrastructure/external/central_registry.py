"""
Central Registry Client (PostgREST)

CRUD over the shared ``clientes`` table. CPF and phone are stored as digits,
so lookups are exact matches on the normalized keys.
"""

import logging
from dataclasses import asdict
from datetime import date, datetime
from typing import Any

from ...application.ports import ICentralRegistryClient
from ...domain.entities import CentralCustomer, CentralCustomerDraft, CustomerAddress
from .postgrest import PostgRESTClient

logger = logging.getLogger(__name__)

# CentralCustomer attribute -> registry column
_COLUMNS = {
    "name": "nome",
    "phone": "telefone",
    "cpf": "cpf",
    "rg": "rg",
    "email": "email",
    "birth_date": "data_nascimento",
    "address": "endereco",
    "registration_complete": "cadastro_completo",
    "active": "active",
    "code": "codigo",
}

# CustomerAddress attribute -> key inside the "endereco" JSON
_ADDRESS_KEYS = {
    "street": "rua",
    "number": "numero",
    "complement": "complemento",
    "neighborhood": "bairro",
    "city": "cidade",
    "state": "estado",
    "zip_code": "cep",
}


class RESTCentralRegistryClient(PostgRESTClient, ICentralRegistryClient):
    """ICentralRegistryClient over the registry's PostgREST API."""

    def __init__(self, base_url: str, api_key: str, table: str = "clientes", **kwargs: Any):
        super().__init__("central_registry", base_url, api_key, **kwargs)
        self.table = table

    async def find_by_cpf(self, cpf: str) -> CentralCustomer | None:
        rows = await self._request(
            "GET",
            self.table,
            params={"select": "*", "cpf": f"eq.{cpf}", "order": "created_at.desc", "limit": "2"},
        )
        if len(rows) > 1:
            logger.warning(f"CPF {cpf} is registered more than once in the central registry, using the newest")
        return self._to_customer(rows[0]) if rows else None

    async def find_by_phone(self, phone: str) -> list[CentralCustomer]:
        rows = await self._request(
            "GET",
            self.table,
            params={"select": "*", "telefone": f"eq.{phone}", "order": "created_at.desc"},
        )
        return [self._to_customer(row) for row in rows]

    async def get(self, customer_id: str) -> CentralCustomer | None:
        rows = await self._request("GET", self.table, params={"select": "*", "id": f"eq.{customer_id}"})
        return self._to_customer(rows[0]) if rows else None

    async def create(self, draft: CentralCustomerDraft) -> CentralCustomer:
        row = self._to_row(asdict(draft))
        rows = await self._request("POST", self.table, json=row, prefer="return=representation")
        customer = self._to_customer(rows[0])
        logger.info(f"Central registry customer {customer.id} created")
        return customer

    async def update(self, customer_id: str, changes: dict[str, Any]) -> CentralCustomer | None:
        row = self._to_row(changes)
        row["updated_at"] = datetime.now().astimezone().isoformat()
        rows = await self._request(
            "PATCH",
            self.table,
            params={"id": f"eq.{customer_id}"},
            json=row,
            prefer="return=representation",
        )
        return self._to_customer(rows[0]) if rows else None

    # Mapping methods

    def _to_customer(self, row: dict[str, Any]) -> CentralCustomer:
        return CentralCustomer(
            id=str(row["id"]),
            name=row.get("nome") or "",
            phone=row.get("telefone"),
            cpf=row.get("cpf"),
            code=str(row["codigo"]) if row.get("codigo") is not None else None,
            rg=row.get("rg"),
            email=row.get("email"),
            birth_date=_parse_date(row.get("data_nascimento")),
            address=_parse_address(row.get("endereco")),
            registration_complete=bool(row.get("cadastro_completo", False)),
            active=bool(row.get("active", True)),
            created_at=_parse_datetime(row.get("created_at")),
        )

    def _to_row(self, values: dict[str, Any]) -> dict[str, Any]:
        row: dict[str, Any] = {}
        for attribute, value in values.items():
            column = _COLUMNS.get(attribute)
            if column is None:
                raise ValueError(f"Unknown central customer field: {attribute}")
            if isinstance(value, date):
                value = value.isoformat()
            elif isinstance(value, CustomerAddress):
                value = {_ADDRESS_KEYS[k]: v for k, v in asdict(value).items() if v is not None}
            row[column] = value
        return row


def _parse_address(value: Any) -> CustomerAddress | None:
    if not isinstance(value, dict) or not value:
        return None
    reverse = {column: attribute for attribute, column in _ADDRESS_KEYS.items()}
    address = CustomerAddress(**{reverse[k]: v for k, v in value.items() if k in reverse})
    return None if address.is_empty() else address


def _parse_date(value: Any) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
