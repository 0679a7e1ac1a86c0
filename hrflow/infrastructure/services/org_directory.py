"""Org directory backed by the org_member read model."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.infrastructure.persistence.models.org_member import OrgMember
from hrflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class SqlOrgDirectory:
    """IOrgDirectory over org_member. Results are ordered by user_id for stability."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def users_with_role(self, tenant_id: str, role: str) -> list[str]:
        result = await self.db.execute(
            select(OrgMember.user_id)
            .where(
                OrgMember.tenant_id == tenant_id,
                OrgMember.is_active.is_(True),
                OrgMember.roles.contains([role]),
            )
            .order_by(OrgMember.user_id.asc())
        )
        return [row[0] for row in result.all()]

    async def users_at_level(self, tenant_id: str, level: int) -> list[str]:
        result = await self.db.execute(
            select(OrgMember.user_id)
            .where(
                OrgMember.tenant_id == tenant_id,
                OrgMember.is_active.is_(True),
                OrgMember.position_level == level,
            )
            .order_by(OrgMember.user_id.asc())
        )
        return [row[0] for row in result.all()]

    async def manager_chain(
        self, tenant_id: str, user_id: str, max_depth: int
    ) -> list[str]:
        """Walk manager_id links upward; stops at the root, a cycle or max_depth.

        Inactive managers are passed over (their own manager is used instead).
        """
        chain: list[str] = []
        seen = {user_id}
        current = user_id
        while len(chain) < max_depth:
            row = (
                await self.db.execute(
                    select(OrgMember.manager_id).where(
                        OrgMember.tenant_id == tenant_id, OrgMember.user_id == current
                    )
                )
            ).first()
            manager_id = row[0] if row else None
            if not manager_id:
                break
            if manager_id in seen:
                logger.warning("Manager cycle detected at %s in tenant %s", manager_id, tenant_id)
                break
            seen.add(manager_id)
            active = (
                await self.db.execute(
                    select(OrgMember.is_active).where(
                        OrgMember.tenant_id == tenant_id, OrgMember.user_id == manager_id
                    )
                )
            ).scalar_one_or_none()
            if active:
                chain.append(manager_id)
            current = manager_id
        return chain
