"""Approval flow instance ORM model.

Step states and history are stored as JSONB next to the frozen definition
snapshot; current_deadline_at and awaiting_approver_ids are denormalized
from the active step for the timeout sweep and the pending-approvals query.
"""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from hrflow.domain.enums import DocumentType, FlowInstanceStatus
from hrflow.infrastructure.persistence.database import Base
from hrflow.infrastructure.persistence.models._checks import enum_check
from hrflow.infrastructure.persistence.models.mixins import MultiTenantModel, VersionedMixin


class ApprovalFlowInstance(MultiTenantModel, VersionedMixin, Base):
    """Running or finished approval. Table: approval_flow_instance."""

    __tablename__ = "approval_flow_instance"

    # No FK: instances outlive the definition they were started from.
    flow_definition_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    definition_snapshot: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    document_type: Mapped[str] = mapped_column(String, nullable=False)
    document_id: Mapped[str] = mapped_column(String, nullable=False)
    requester_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    attributes: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=sa.text("'{}'::jsonb")
    )
    current_step_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=FlowInstanceStatus.PENDING.value
    )
    status_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    current_deadline_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    awaiting_approver_ids: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=sa.text("'[]'::jsonb")
    )
    steps: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)
    history: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)

    __table_args__ = (
        Index(
            "ix_approval_flow_instance_document",
            "tenant_id",
            "document_type",
            "document_id",
        ),
        Index(
            "uq_approval_flow_instance_pending_document",
            "tenant_id",
            "document_type",
            "document_id",
            unique=True,
            postgresql_where=sa.text("status = 'pending'"),
        ),
        Index(
            "ix_approval_flow_instance_deadline",
            "current_deadline_at",
            postgresql_where=sa.text("status = 'pending' AND current_deadline_at IS NOT NULL"),
        ),
        Index(
            "ix_approval_flow_instance_awaiting",
            "awaiting_approver_ids",
            postgresql_using="gin",
        ),
        enum_check("status", FlowInstanceStatus.values(), "approval_flow_instance_status_check"),
        enum_check("document_type", DocumentType.values(), "approval_flow_instance_doc_type_check"),
    )
