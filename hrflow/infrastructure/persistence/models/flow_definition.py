"""Approval flow definition ORM models: definition, steps, approvers, conditions."""

from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrflow.domain.enums import (
    ApproverType,
    ConditionOperator,
    DocumentType,
    ExecutionMode,
    FlowType,
)
from hrflow.infrastructure.persistence.database import Base
from hrflow.infrastructure.persistence.models._checks import enum_check
from hrflow.infrastructure.persistence.models.mixins import CuidMixin, MultiTenantModel


class ApprovalFlowDefinition(MultiTenantModel, Base):
    """Flow template. Table: approval_flow_definition.

    At most one row per (tenant_id, document_type) has is_default = true
    (partial unique index); promotion is serialized by an advisory lock.
    """

    __tablename__ = "approval_flow_definition"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_type: Mapped[str] = mapped_column(String, nullable=False)
    flow_type: Mapped[str] = mapped_column(
        String, nullable=False, default=FlowType.CUSTOM.value
    )
    use_organization_hierarchy: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.text("false")
    )
    organization_levels: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )
    is_default: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.text("false")
    )
    priority: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)

    steps: Mapped[list["ApprovalFlowStep"]] = relationship(
        back_populates="definition",
        cascade="all, delete-orphan",
        order_by="ApprovalFlowStep.step_number",
        lazy="selectin",
    )
    conditions: Mapped[list["ApprovalFlowCondition"]] = relationship(
        back_populates="definition",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index(
            "ix_approval_flow_definition_tenant_doc_active",
            "tenant_id",
            "document_type",
            "is_active",
        ),
        Index(
            "uq_approval_flow_definition_default",
            "tenant_id",
            "document_type",
            unique=True,
            postgresql_where=sa.text("is_default"),
        ),
        enum_check("document_type", DocumentType.values(), "approval_flow_definition_doc_type_check"),
        enum_check("flow_type", FlowType.values(), "approval_flow_definition_flow_type_check"),
    )


class ApprovalFlowStep(CuidMixin, Base):
    """Step of a flow definition. Table: approval_flow_step."""

    __tablename__ = "approval_flow_step"

    definition_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("approval_flow_definition.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    execution_mode: Mapped[str] = mapped_column(
        String, nullable=False, default=ExecutionMode.SERIAL.value
    )
    required_approvals: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=sa.text("1")
    )
    timeout_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    allow_delegate: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )
    allow_skip: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.text("false")
    )

    definition: Mapped[ApprovalFlowDefinition] = relationship(back_populates="steps")
    approvers: Mapped[list["ApprovalFlowApprover"]] = relationship(
        back_populates="step",
        cascade="all, delete-orphan",
        order_by="ApprovalFlowApprover.order",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("definition_id", "step_number", name="uq_approval_flow_step_number"),
        sa.CheckConstraint("step_number >= 1", name="approval_flow_step_number_check"),
        sa.CheckConstraint("required_approvals >= 1", name="approval_flow_step_required_check"),
        enum_check("execution_mode", ExecutionMode.values(), "approval_flow_step_mode_check"),
    )


class ApprovalFlowApprover(CuidMixin, Base):
    """Approver spec of a step (tagged by approver_type). Table: approval_flow_approver."""

    __tablename__ = "approval_flow_approver"

    step_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("approval_flow_step.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    approver_type: Mapped[str] = mapped_column(String, nullable=False)
    approver_id: Mapped[str | None] = mapped_column(String, nullable=True)
    approver_role: Mapped[str | None] = mapped_column(String, nullable=True)
    position_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    order: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )

    step: Mapped[ApprovalFlowStep] = relationship(back_populates="approvers")

    __table_args__ = (
        enum_check("approver_type", ApproverType.values(), "approval_flow_approver_type_check"),
    )


class ApprovalFlowCondition(CuidMixin, Base):
    """Eligibility condition of a definition. Table: approval_flow_condition."""

    __tablename__ = "approval_flow_condition"

    definition_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("approval_flow_definition.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field: Mapped[str] = mapped_column(String, nullable=False)
    operator: Mapped[str] = mapped_column(String, nullable=False)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    definition: Mapped[ApprovalFlowDefinition] = relationship(back_populates="conditions")

    __table_args__ = (
        enum_check("operator", ConditionOperator.values(), "approval_flow_condition_operator_check"),
    )
