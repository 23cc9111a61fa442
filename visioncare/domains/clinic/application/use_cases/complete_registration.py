"""
Complete Registration Use Case

Manual confirmation of a registry record created by quick registration:
store the collected details and flag the registration as complete.
"""

import logging
from dataclasses import asdict
from datetime import date
from typing import Any

from visioncare.core.domain.exceptions import DomainException, NotFoundError, ValidationError

from ..dto import RegistrationDetails, Result
from ..ports import ICentralRegistryClient
from ...domain.entities import CentralCustomer, CustomerAddress
from ...domain.value_objects import normalize_cpf

logger = logging.getLogger(__name__)


class CompleteRegistrationUseCase:
    def __init__(self, registry: ICentralRegistryClient) -> None:
        self._registry = registry

    async def execute(self, customer_id: str, details: RegistrationDetails) -> Result[CentralCustomer]:
        try:
            changes = self._build_changes(details)
            customer = await self._registry.update(customer_id, changes)
            if customer is None:
                raise NotFoundError("CentralCustomer", customer_id)
        except DomainException as e:
            logger.warning(f"Could not complete registration of customer {customer_id}: {e.message}")
            return Result.fail(e)

        logger.info(f"Registration of customer {customer_id} completed")
        return Result.ok(customer)

    @staticmethod
    def _build_changes(details: RegistrationDetails) -> dict[str, Any]:
        changes: dict[str, Any] = {"registration_complete": True}
        if details.cpf:
            cpf = normalize_cpf(details.cpf)
            if cpf is None:
                raise ValidationError("CPF must contain 11 digits", field="cpf")
            changes["cpf"] = cpf
        if details.rg:
            changes["rg"] = details.rg
        if details.email:
            changes["email"] = details.email
        if details.birth_date:
            try:
                changes["birth_date"] = date.fromisoformat(details.birth_date)
            except ValueError as e:
                raise ValidationError(f"Invalid birth date: {details.birth_date}", field="birth_date") from e
        if details.address:
            known = set(asdict(CustomerAddress()))
            unknown = set(details.address) - known
            if unknown:
                raise ValidationError(f"Unknown address fields: {', '.join(sorted(unknown))}", field="address")
            changes["address"] = CustomerAddress(**details.address)
        return changes
