"""Delegation registry: who may act for whom, and when.

A user has at most one active delegation at any instant; overlapping
windows are rejected at write time under a per-user lock. Delegations are
never chained: A -> B and B -> C do not let C act for A.
"""

from __future__ import annotations

from datetime import datetime

from hrflow.application.interfaces.repositories import IDelegationRepository
from hrflow.application.interfaces.services import IClock
from hrflow.domain.entities import DelegationRecord
from hrflow.domain.exceptions import DelegationConflictError, ResourceNotFoundException
from hrflow.shared.telemetry.logging import get_logger
from hrflow.shared.utils.datetime import ensure_utc
from hrflow.shared.utils.generators import generate_cuid

logger = get_logger(__name__)


class DelegationRegistry:
    """Create, revoke and query delegation windows for a tenant."""

    def __init__(self, delegation_repo: IDelegationRepository, clock: IClock) -> None:
        self.delegation_repo = delegation_repo
        self.clock = clock

    async def set_delegation(
        self,
        tenant_id: str,
        user_id: str,
        delegate_to_id: str,
        start_date: datetime,
        end_date: datetime,
        reason: str | None = None,
    ) -> DelegationRecord:
        """Create a delegation window.

        Raises:
            DelegationConflictError: self-delegation, end before start, a window
                already over, or overlap with an existing non-expired window.
        """
        start = ensure_utc(start_date)
        end = ensure_utc(end_date)
        now = self.clock.now()
        if user_id == delegate_to_id:
            raise DelegationConflictError("A user cannot delegate to themselves", user_id=user_id)
        if end < start:
            raise DelegationConflictError(
                "Delegation end date is before its start date",
                start_date=start.isoformat(),
                end_date=end.isoformat(),
            )
        if end < now:
            raise DelegationConflictError(
                "Delegation window has already ended", end_date=end.isoformat()
            )

        await self.delegation_repo.lock_user(tenant_id, user_id)
        existing = await self.delegation_repo.list_for_user(tenant_id, user_id)
        for record in existing:
            if record.is_expired_at(now):
                continue
            if record.overlaps(start, end):
                raise DelegationConflictError(
                    "Delegation overlaps an existing delegation",
                    user_id=user_id,
                    conflicting_delegation_id=record.id,
                )

        record = DelegationRecord(
            id=generate_cuid(),
            tenant_id=tenant_id,
            user_id=user_id,
            delegate_to_id=delegate_to_id,
            start_date=start,
            end_date=end,
            reason=reason,
            created_at=now,
        )
        created = await self.delegation_repo.add(record)
        logger.info(
            "Delegation %s: %s -> %s from %s to %s",
            created.id,
            user_id,
            delegate_to_id,
            start.isoformat(),
            end.isoformat(),
        )
        return created

    async def revoke(self, tenant_id: str, delegation_id: str) -> DelegationRecord:
        """Revoke a delegation (idempotent). Raises ResourceNotFoundException if missing."""
        record = await self.delegation_repo.revoke(tenant_id, delegation_id, self.clock.now())
        if record is None:
            raise ResourceNotFoundException("delegation", delegation_id)
        logger.info("Delegation %s revoked", delegation_id)
        return record

    async def active_delegation_for(
        self, tenant_id: str, user_id: str, as_of: datetime | None = None
    ) -> str | None:
        """Return the delegate acting for user_id at as_of, if any."""
        mapping = await self.active_delegations_for(tenant_id, [user_id], as_of)
        return mapping.get(user_id)

    async def active_delegations_for(
        self, tenant_id: str, user_ids: list[str], as_of: datetime | None = None
    ) -> dict[str, str]:
        """Batch lookup: user id -> delegate id for users with an active delegation."""
        if not user_ids:
            return {}
        at = ensure_utc(as_of) if as_of else self.clock.now()
        records = await self.delegation_repo.list_active_for_users(
            tenant_id, sorted(set(user_ids)), at
        )
        result: dict[str, str] = {}
        for record in sorted(records, key=lambda r: r.start_date):
            if record.is_active_at(at):
                result.setdefault(record.user_id, record.delegate_to_id)
        return result

    async def delegators_for(
        self, tenant_id: str, delegate_id: str, as_of: datetime | None = None
    ) -> list[str]:
        """Users for whom delegate_id may currently act."""
        at = ensure_utc(as_of) if as_of else self.clock.now()
        records = await self.delegation_repo.list_active_to_delegate(tenant_id, delegate_id, at)
        return list(dict.fromkeys(r.user_id for r in records if r.is_active_at(at)))

    async def list_for_user(
        self, tenant_id: str, user_id: str, include_revoked: bool = False
    ) -> list[DelegationRecord]:
        return await self.delegation_repo.list_for_user(
            tenant_id, user_id, include_revoked=include_revoked
        )

    async def get(self, tenant_id: str, delegation_id: str) -> DelegationRecord:
        record = await self.delegation_repo.get_by_id(tenant_id, delegation_id)
        if record is None:
            raise ResourceNotFoundException("delegation", delegation_id)
        return record
