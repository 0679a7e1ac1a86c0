"""Delegation ORM model. Table: approval_delegation."""

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hrflow.infrastructure.persistence.database import Base
from hrflow.infrastructure.persistence.models.mixins import MultiTenantModel


class ApprovalDelegation(MultiTenantModel, Base):
    """User -> delegate window; revoked_at set means no longer in force."""

    __tablename__ = "approval_delegation"

    user_id: Mapped[str] = mapped_column(String, nullable=False)
    delegate_to_id: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_approval_delegation_user", "tenant_id", "user_id"),
        Index("ix_approval_delegation_delegate", "tenant_id", "delegate_to_id"),
        sa.CheckConstraint("end_date >= start_date", name="approval_delegation_window_check"),
        sa.CheckConstraint("user_id <> delegate_to_id", name="approval_delegation_self_check"),
    )
