"""Unit tests for IdentityResolver.

CPF priority, household disambiguation on a shared phone and provisioning
of incomplete registrations.
"""

from datetime import date

import pytest

from visioncare.core.domain.exceptions import UpstreamError
from visioncare.domains.clinic.application.dto import IdentityQuery
from visioncare.domains.clinic.domain.entities import CentralCustomer
from visioncare.domains.clinic.domain.value_objects import MatchConfidence

PHONE = "11988887777"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cpf_match_wins_over_phone_match(resolver, registry):
    """A CPF hit is returned even when another record matches phone and name."""
    by_phone = registry.add("Ana Souza", phone=PHONE)
    by_cpf = registry.add("Ana S.", phone="11000000000", cpf="12345678901")

    match = await resolver.resolve(IdentityQuery(name="Ana Souza", phone=PHONE, cpf="123.456.789-01"))

    assert match.record == by_cpf
    assert match.record != by_phone
    assert match.confidence == MatchConfidence.EXACT_CPF
    assert not match.provisioned


@pytest.mark.unit
@pytest.mark.asyncio
async def test_phone_and_exact_name_is_trusted(resolver, registry):
    record = registry.add("Ana Souza", phone=PHONE)

    match = await resolver.resolve(IdentityQuery(name="ANA  SOUZA", phone="(11) 98888-7777"))

    assert match.record == record
    assert match.confidence == MatchConfidence.PHONE_AND_NAME
    assert match.confidence.is_trusted()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_household_members_sharing_a_phone_are_told_apart(resolver, registry):
    """Beatriz shares Ana's phone: she must not be resolved to Ana's record."""
    ana = registry.add("Ana Souza", phone=PHONE, cpf="12345678901")

    match = await resolver.resolve(IdentityQuery(name="Beatriz Souza", phone=PHONE))

    assert match.record is not None
    assert match.record != ana
    assert match.provisioned
    assert match.confidence == MatchConfidence.NONE
    assert registry.created[-1].name == "Beatriz Souza"
    assert registry.created[-1].phone == PHONE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_household_member_with_exact_name_is_found(resolver, registry):
    registry.add("Ana Souza", phone=PHONE)
    beatriz = registry.add("Beatriz Souza", phone=PHONE)

    match = await resolver.resolve(IdentityQuery(name="Beatriz Souza", phone=PHONE))

    assert match.record == beatriz
    assert match.confidence == MatchConfidence.PHONE_AND_NAME


@pytest.mark.unit
@pytest.mark.asyncio
async def test_partial_name_on_phone_needs_confirmation(resolver, registry):
    record = registry.add("Maria Silva Santos", phone=PHONE)

    match = await resolver.resolve(IdentityQuery(name="Maria Silva", phone=PHONE))

    assert match.record == record
    assert match.confidence == MatchConfidence.PHONE_ONLY
    assert match.requires_confirmation


@pytest.mark.unit
@pytest.mark.asyncio
async def test_phone_candidate_with_other_cpf_is_discarded(resolver, registry):
    registry.add("Ana Souza", phone=PHONE, cpf="99999999999")

    match = await resolver.resolve(IdentityQuery(name="Ana Souza", phone=PHONE, cpf="12345678901"), provision=False)

    assert match.record is None
    assert match.confidence == MatchConfidence.NONE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unmatched_person_is_provisioned_incomplete(resolver, registry):
    match = await resolver.resolve(IdentityQuery(name=" Carlos Lima ", phone="(21) 3333-4444", cpf="98765432100"))

    assert match.provisioned
    assert match.record is not None
    assert match.record.registration_complete is False
    assert match.requires_confirmation
    draft = registry.created[-1]
    assert draft.name == "Carlos Lima"
    assert draft.cpf == "98765432100"
    assert draft.phone == "2133334444"


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "birth_date,expected",
    [("1970-01-31", date(1970, 1, 31)), ("1970-01-31T00:00:00", date(1970, 1, 31)), ("31/01/1970", None)],
)
async def test_provisioning_keeps_known_birth_date(resolver, registry, birth_date, expected):
    match = await resolver.resolve(IdentityQuery(name="Carlos Lima", birth_date=birth_date))

    assert registry.created[-1].birth_date == expected
    assert match.record is not None
    assert match.record.birth_date == expected


@pytest.mark.unit
@pytest.mark.asyncio
async def test_read_only_resolution_never_writes(resolver, registry):
    match = await resolver.resolve(IdentityQuery(name="Carlos Lima", phone="2133334444"), provision=False)

    assert match.record is None
    assert registry.created == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_malformed_cpf_is_ignored(resolver, registry):
    record = registry.add("Ana Souza", phone=PHONE)

    match = await resolver.resolve(IdentityQuery(name="Ana Souza", phone=PHONE, cpf="123"))

    assert match.record == record
    assert match.confidence == MatchConfidence.PHONE_AND_NAME


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_registration_of_same_cpf_is_reused(resolver, registry):
    """Two resolvers provisioning the same CPF end up with one record."""
    winner = CentralCustomer(id="winner", name="Carlos Lima", cpf="98765432100")
    registry.concurrent_record = winner

    match = await resolver.resolve(IdentityQuery(name="Carlos Lima", cpf="98765432100"))

    assert match.record == winner
    assert match.confidence == MatchConfidence.EXACT_CPF
    assert not match.provisioned
    assert len([r for r in registry.records if r.cpf == "98765432100"]) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_registry_failure_propagates(resolver, registry):
    registry.unavailable = True

    with pytest.raises(UpstreamError) as exc_info:
        await resolver.resolve(IdentityQuery(name="Ana Souza", phone=PHONE))
    assert exc_info.value.service == "central_registry"
