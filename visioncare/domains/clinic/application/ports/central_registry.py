# ============================================================================
# SCOPE: APPLICATION LAYER (Clinic)
# Description: Central customer registry port.
# ============================================================================
"""Central Registry Port.

Interface to the shared customer registry. Lookups take normalized keys
(digits only).
"""

from typing import Any, Protocol, runtime_checkable

from ...domain.entities import CentralCustomer, CentralCustomerDraft


@runtime_checkable
class ICentralRegistryClient(Protocol):
    """Interface for the shared customer registry.

    Implementations: RESTCentralRegistryClient

    All methods raise UpstreamError when the registry is unreachable.
    """

    async def find_by_cpf(self, cpf: str) -> CentralCustomer | None:
        """Find the customer with this CPF (11 digits)."""
        ...

    async def find_by_phone(self, phone: str) -> list[CentralCustomer]:
        """Find every customer sharing this phone, newest first."""
        ...

    async def get(self, customer_id: str) -> CentralCustomer | None:
        """Get a customer by registry id."""
        ...

    async def create(self, draft: CentralCustomerDraft) -> CentralCustomer:
        """Create a customer.

        Raises:
            ConflictError: If the CPF is already registered.
        """
        ...

    async def update(self, customer_id: str, changes: dict[str, Any]) -> CentralCustomer | None:
        """Update customer fields (domain names, see CentralCustomer).

        Returns:
            The updated customer, None when it does not exist.

        Raises:
            ConflictError: If the new CPF belongs to another customer.
        """
        ...
