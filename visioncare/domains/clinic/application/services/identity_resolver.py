# ============================================================================
# SCOPE: APPLICATION LAYER (Clinic)
# Description: Map a loosely specified person onto a central registry record.
# ============================================================================
"""Identity Resolver.

Resolution order:
1. CPF (strong key): a hit wins regardless of any phone signal.
2. Phone (weak key), disambiguated by name. Several people of one household
   may share a phone, so a candidate whose name is clearly different is
   another person, never a match.
3. Nothing found: optionally provision a minimal registry record flagged as
   an incomplete registration.
"""

import logging

from visioncare.core.domain.exceptions import ConflictError, UpstreamError

from ..dto import IdentityMatch, IdentityQuery
from ..ports import ICentralRegistryClient
from ...domain.entities import CentralCustomer, CentralCustomerDraft
from ...domain.value_objects import MatchConfidence, NameAgreement, compare_names, normalize_cpf, normalize_phone

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Resolve schedule identities against the central customer registry.

    Registry failures propagate as UpstreamError; there is no retry here.
    """

    def __init__(self, registry: ICentralRegistryClient):
        self._registry = registry

    async def resolve(self, query: IdentityQuery, provision: bool = True) -> IdentityMatch:
        """Resolve a person to a registry record.

        Args:
            query: Identity data from the schedule.
            provision: Create a registry record when nothing matches. Listing
                screens pass False so that browsing never writes.

        Returns:
            IdentityMatch with the record (if any) and its confidence.

        Raises:
            UpstreamError: If the registry cannot be queried.
        """
        cpf = normalize_cpf(query.cpf)
        if query.cpf and cpf is None:
            logger.warning(f"Ignoring malformed CPF for '{query.name}' (expected 11 digits)")

        if cpf:
            record = await self._registry.find_by_cpf(cpf)
            if record:
                return IdentityMatch(record=record, confidence=MatchConfidence.EXACT_CPF)

        phone = normalize_phone(query.phone)
        if phone:
            match = await self._match_by_phone(phone, cpf, query.name)
            if match:
                return match

        if not provision:
            return IdentityMatch.unresolved()

        return await self._provision(query, cpf, phone)

    async def _match_by_phone(self, phone: str, cpf: str | None, name: str | None) -> IdentityMatch | None:
        candidates = await self._registry.find_by_phone(phone)
        # A different CPF on record proves a different person
        candidates = [c for c in candidates if not (cpf and c.cpf and normalize_cpf(c.cpf) != cpf)]
        if not candidates:
            return None

        by_agreement: dict[NameAgreement, list[CentralCustomer]] = {}
        for candidate in candidates:
            by_agreement.setdefault(compare_names(name, candidate.name), []).append(candidate)

        # Candidates keep the registry order (newest first)
        if NameAgreement.EXACT in by_agreement:
            return IdentityMatch(
                record=by_agreement[NameAgreement.EXACT][0],
                confidence=MatchConfidence.PHONE_AND_NAME,
            )
        for agreement in (NameAgreement.PARTIAL, NameAgreement.UNKNOWN):
            if agreement in by_agreement:
                return IdentityMatch(record=by_agreement[agreement][0], confidence=MatchConfidence.PHONE_ONLY)

        logger.info(
            f"Phone {phone} is shared by {len(candidates)} registry record(s) with other names; "
            f"treating '{name}' as a different person"
        )
        return None

    async def _provision(self, query: IdentityQuery, cpf: str | None, phone: str | None) -> IdentityMatch:
        draft = CentralCustomerDraft(
            name=(query.name or "").strip(),
            phone=phone,
            cpf=cpf,
            email=query.email,
            birth_date=query.parsed_birth_date(),
            registration_complete=False,
        )
        try:
            record = await self._registry.create(draft)
        except ConflictError:
            # Another writer registered the same CPF in the meantime
            if cpf is None:
                raise
            existing = await self._registry.find_by_cpf(cpf)
            if existing is None:
                raise UpstreamError(
                    "central_registry",
                    f"Registry reported CPF {cpf} as duplicate but it cannot be read back",
                )
            logger.info(f"Registry record for CPF {cpf} created concurrently, reusing it")
            return IdentityMatch(record=existing, confidence=MatchConfidence.EXACT_CPF)

        logger.info(f"Provisioned registry record {record.id} for '{draft.name}' (registration incomplete)")
        return IdentityMatch(record=record, confidence=MatchConfidence.NONE, provisioned=True)
