"""Delegation repository. Writes are serialized per (tenant, user) by an advisory lock."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.domain.entities import DelegationRecord
from hrflow.infrastructure.persistence.models.delegation import ApprovalDelegation
from hrflow.infrastructure.persistence.repositories.base import BaseRepository
from hrflow.shared.utils.datetime import ensure_utc


def _delegation_to_entity(orm: ApprovalDelegation) -> DelegationRecord:
    return DelegationRecord(
        id=orm.id,
        tenant_id=orm.tenant_id,
        user_id=orm.user_id,
        delegate_to_id=orm.delegate_to_id,
        start_date=ensure_utc(orm.start_date),
        end_date=ensure_utc(orm.end_date),
        reason=orm.reason,
        created_at=ensure_utc(orm.created_at),
        revoked_at=ensure_utc(orm.revoked_at),
    )


class DelegationRepository(BaseRepository[ApprovalDelegation]):
    """Delegation repository (implements IDelegationRepository)."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, ApprovalDelegation)

    async def lock_user(self, tenant_id: str, user_id: str) -> None:
        await self._advisory_xact_lock("approval_delegation", tenant_id, user_id)

    async def add(self, record: DelegationRecord) -> DelegationRecord:
        orm = ApprovalDelegation(
            id=record.id,
            tenant_id=record.tenant_id,
            user_id=record.user_id,
            delegate_to_id=record.delegate_to_id,
            start_date=record.start_date,
            end_date=record.end_date,
            reason=record.reason,
        )
        created = await self._create(orm)
        return _delegation_to_entity(created)

    async def get_by_id(self, tenant_id: str, delegation_id: str) -> DelegationRecord | None:
        orm = await self._get_orm(tenant_id, delegation_id)
        return _delegation_to_entity(orm) if orm else None

    async def revoke(
        self, tenant_id: str, delegation_id: str, revoked_at: datetime
    ) -> DelegationRecord | None:
        orm = await self._get_orm(tenant_id, delegation_id)
        if orm is None:
            return None
        if orm.revoked_at is None:
            orm.revoked_at = revoked_at
            await self.db.flush()
        return _delegation_to_entity(orm)

    async def list_for_user(
        self, tenant_id: str, user_id: str, include_revoked: bool = False
    ) -> list[DelegationRecord]:
        q = select(ApprovalDelegation).where(
            ApprovalDelegation.tenant_id == tenant_id,
            ApprovalDelegation.user_id == user_id,
        )
        if not include_revoked:
            q = q.where(ApprovalDelegation.revoked_at.is_(None))
        result = await self.db.execute(q.order_by(ApprovalDelegation.start_date.asc()))
        return [_delegation_to_entity(row) for row in result.scalars().all()]

    async def list_active_for_users(
        self, tenant_id: str, user_ids: list[str], as_of: datetime
    ) -> list[DelegationRecord]:
        if not user_ids:
            return []
        result = await self.db.execute(
            select(ApprovalDelegation).where(
                ApprovalDelegation.tenant_id == tenant_id,
                ApprovalDelegation.user_id.in_(user_ids),
                ApprovalDelegation.revoked_at.is_(None),
                ApprovalDelegation.start_date <= as_of,
                ApprovalDelegation.end_date >= as_of,
            )
        )
        return [_delegation_to_entity(row) for row in result.scalars().all()]

    async def list_active_to_delegate(
        self, tenant_id: str, delegate_id: str, as_of: datetime
    ) -> list[DelegationRecord]:
        result = await self.db.execute(
            select(ApprovalDelegation).where(
                ApprovalDelegation.tenant_id == tenant_id,
                ApprovalDelegation.delegate_to_id == delegate_id,
                ApprovalDelegation.revoked_at.is_(None),
                ApprovalDelegation.start_date <= as_of,
                ApprovalDelegation.end_date >= as_of,
            )
        )
        return [_delegation_to_entity(row) for row in result.scalars().all()]
