"""Delegation registry: window validation, overlap, revocation and lookups."""

from datetime import timedelta

import pytest

from hrflow.domain.exceptions import DelegationConflictError, ResourceNotFoundException
from tests.factories import TENANT


async def test_set_and_lookup_active_delegation(registry, delegation_repo, clock) -> None:
    now = clock.now()
    record = await registry.set_delegation(
        TENANT, "lead", "bob", now, now + timedelta(days=2), reason="vacation"
    )
    assert record.id
    assert delegation_repo.locked == [(TENANT, "lead")]
    assert await registry.active_delegation_for(TENANT, "lead") == "bob"
    assert await registry.delegators_for(TENANT, "bob") == ["lead"]
    assert await registry.active_delegations_for(TENANT, ["lead", "ceo"]) == {"lead": "bob"}


async def test_window_bounds_are_inclusive(registry, clock) -> None:
    start = clock.now() + timedelta(days=1)
    end = start + timedelta(days=1)
    await registry.set_delegation(TENANT, "lead", "bob", start, end)
    assert await registry.active_delegation_for(TENANT, "lead", start) == "bob"
    assert await registry.active_delegation_for(TENANT, "lead", end) == "bob"
    assert await registry.active_delegation_for(TENANT, "lead", end + timedelta(seconds=1)) is None
    assert await registry.active_delegation_for(TENANT, "lead", clock.now()) is None


@pytest.mark.parametrize(
    ("delegate", "start_offset", "end_offset", "message"),
    [
        ("lead", 0, 1, "themselves"),
        ("bob", 2, 1, "before its start"),
        ("bob", -5, -1, "already ended"),
    ],
)
async def test_invalid_windows_are_rejected(registry, clock, delegate, start_offset, end_offset, message) -> None:
    now = clock.now()
    with pytest.raises(DelegationConflictError) as exc_info:
        await registry.set_delegation(
            TENANT,
            "lead",
            delegate,
            now + timedelta(days=start_offset),
            now + timedelta(days=end_offset),
        )
    assert message in exc_info.value.message
    assert exc_info.value.error_code == "DELEGATION_CONFLICT"


async def test_overlapping_window_conflicts(registry, clock) -> None:
    now = clock.now()
    first = await registry.set_delegation(TENANT, "lead", "bob", now, now + timedelta(days=5))
    with pytest.raises(DelegationConflictError) as exc_info:
        await registry.set_delegation(
            TENANT, "lead", "fin", now + timedelta(days=5), now + timedelta(days=9)
        )
    assert exc_info.value.details["conflicting_delegation_id"] == first.id
    later = await registry.set_delegation(
        TENANT, "lead", "fin", now + timedelta(days=6), now + timedelta(days=9)
    )
    assert later.delegate_to_id == "fin"


async def test_revoked_window_frees_the_slot(registry, clock) -> None:
    now = clock.now()
    first = await registry.set_delegation(TENANT, "lead", "bob", now, now + timedelta(days=5))
    revoked = await registry.revoke(TENANT, first.id)
    assert revoked.revoked_at == now
    again = await registry.revoke(TENANT, first.id)
    assert again.revoked_at == now
    assert await registry.active_delegation_for(TENANT, "lead") is None
    await registry.set_delegation(TENANT, "lead", "fin", now, now + timedelta(days=5))
    assert len(await registry.list_for_user(TENANT, "lead")) == 1
    assert len(await registry.list_for_user(TENANT, "lead", include_revoked=True)) == 2


async def test_delegations_do_not_chain(registry, clock) -> None:
    now = clock.now()
    await registry.set_delegation(TENANT, "lead", "bob", now, now + timedelta(days=1))
    await registry.set_delegation(TENANT, "bob", "fin", now, now + timedelta(days=1))
    assert await registry.delegators_for(TENANT, "fin") == ["bob"]


async def test_unknown_delegation_is_not_found(registry) -> None:
    with pytest.raises(ResourceNotFoundException):
        await registry.revoke(TENANT, "missing")
    with pytest.raises(ResourceNotFoundException):
        await registry.get(TENANT, "missing")
