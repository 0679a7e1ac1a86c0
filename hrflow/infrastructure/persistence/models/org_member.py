"""Org directory read model. Table: org_member.

Synchronized from the host HR system; the engine only reads it.
"""

from typing import Any

import sqlalchemy as sa
from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from hrflow.infrastructure.persistence.database import Base
from hrflow.infrastructure.persistence.models.mixins import TimestampMixin


class OrgMember(TimestampMixin, Base):
    """One user in a tenant: manager link, position level, roles."""

    __tablename__ = "org_member"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String, primary_key=True)
    manager_id: Mapped[str | None] = mapped_column(String, nullable=True)
    position_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    roles: Mapped[list[Any]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=sa.text("'[]'::jsonb")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )

    __table_args__ = (
        Index("ix_org_member_tenant_level", "tenant_id", "position_level"),
        Index("ix_org_member_roles", "roles", postgresql_using="gin"),
    )
