"""Approval flow definition API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from hrflow.application.dtos.flow_definition import FlowDefinitionCreate
from hrflow.domain.entities import (
    ApproverSpec,
    ConditionDefinition,
    FlowDefinition,
    OrgHierarchyApprover,
    PositionLevelApprover,
    RoleApprover,
    StepDefinition,
    UserApprover,
    approver_to_dict,
)
from hrflow.domain.enums import (
    ConditionOperator,
    DocumentType,
    ExecutionMode,
    FlowType,
)


class UserApproverIn(BaseModel):
    """A specific user approves."""

    type: Literal["user"]
    user_id: str = Field(..., min_length=1, max_length=64)
    order: int | None = None


class RoleApproverIn(BaseModel):
    """Every active holder of a role approves."""

    type: Literal["role"]
    role: str = Field(..., min_length=1, max_length=128)
    order: int | None = None


class PositionLevelApproverIn(BaseModel):
    """Every active user at a position level approves."""

    type: Literal["position_level"]
    level: int = Field(..., ge=0)
    order: int | None = None


class OrgHierarchyApproverIn(BaseModel):
    """The requester's managers approve, up to the flow's organization_levels."""

    type: Literal["org_hierarchy"]
    order: int | None = None


ApproverIn = Annotated[
    UserApproverIn | RoleApproverIn | PositionLevelApproverIn | OrgHierarchyApproverIn,
    Field(discriminator="type"),
]


def _to_spec(item: ApproverIn, position: int) -> ApproverSpec:
    order = item.order if item.order is not None else position
    if isinstance(item, UserApproverIn):
        return UserApprover(user_id=item.user_id, order=order)
    if isinstance(item, RoleApproverIn):
        return RoleApprover(role=item.role, order=order)
    if isinstance(item, PositionLevelApproverIn):
        return PositionLevelApprover(level=item.level, order=order)
    return OrgHierarchyApprover(order=order)


class FlowStepIn(BaseModel):
    """One step of a flow definition. step_number defaults to the list position (1-based)."""

    name: str = Field(..., min_length=1, max_length=255)
    step_number: int | None = Field(default=None, ge=1)
    execution_mode: ExecutionMode = ExecutionMode.SERIAL
    required_approvals: int = Field(default=1, ge=1)
    timeout_hours: float | None = Field(default=None, gt=0)
    allow_delegate: bool = True
    allow_skip: bool = False
    approvers: list[ApproverIn] = Field(default_factory=list)

    def to_entity(self, position: int) -> StepDefinition:
        return StepDefinition(
            step_number=self.step_number if self.step_number is not None else position,
            name=self.name.strip(),
            execution_mode=self.execution_mode,
            required_approvals=self.required_approvals,
            timeout_hours=self.timeout_hours,
            allow_delegate=self.allow_delegate,
            allow_skip=self.allow_skip,
            approvers=[_to_spec(a, i) for i, a in enumerate(self.approvers, start=1)],
        )


class FlowConditionIn(BaseModel):
    """Condition on a document attribute; all conditions of a flow must match."""

    field: str = Field(..., min_length=1, max_length=255)
    operator: ConditionOperator
    value: Any = None
    description: str | None = None

    def to_entity(self) -> ConditionDefinition:
        return ConditionDefinition(
            field=self.field,
            operator=self.operator,
            value=self.value,
            description=self.description,
        )


class FlowDefinitionCreateRequest(BaseModel):
    """Request body for creating (or wholesale replacing) a flow definition."""

    name: str = Field(..., min_length=1, max_length=255)
    document_type: DocumentType
    flow_type: FlowType = FlowType.CUSTOM
    description: str | None = None
    use_organization_hierarchy: bool = False
    organization_levels: int | None = Field(default=None, ge=1)
    is_active: bool = True
    is_default: bool = False
    priority: int = 0
    created_by: str | None = Field(default=None, max_length=64)
    steps: list[FlowStepIn] = Field(default_factory=list)
    conditions: list[FlowConditionIn] = Field(default_factory=list)

    def to_dto(self) -> FlowDefinitionCreate:
        return FlowDefinitionCreate(
            name=self.name,
            document_type=self.document_type,
            flow_type=self.flow_type,
            description=self.description,
            use_organization_hierarchy=self.use_organization_hierarchy,
            organization_levels=self.organization_levels,
            is_active=self.is_active,
            is_default=self.is_default,
            priority=self.priority,
            created_by=self.created_by,
            steps=[s.to_entity(i) for i, s in enumerate(self.steps, start=1)],
            conditions=[c.to_entity() for c in self.conditions],
        )


class FlowStepResponse(BaseModel):
    id: str | None
    step_number: int
    name: str
    execution_mode: ExecutionMode
    required_approvals: int
    timeout_hours: float | None
    allow_delegate: bool
    allow_skip: bool
    approvers: list[dict[str, Any]]


class FlowConditionResponse(BaseModel):
    id: str | None
    field: str
    operator: ConditionOperator
    value: Any
    description: str | None


class FlowDefinitionResponse(BaseModel):
    """Flow definition response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    name: str
    description: str | None
    document_type: DocumentType
    flow_type: FlowType
    use_organization_hierarchy: bool
    organization_levels: int | None
    is_active: bool
    is_default: bool
    priority: int
    created_by: str | None
    created_at: datetime | None
    updated_at: datetime | None
    steps: list[FlowStepResponse]
    conditions: list[FlowConditionResponse]

    @classmethod
    def from_entity(cls, flow: FlowDefinition) -> FlowDefinitionResponse:
        return cls(
            id=flow.id,
            tenant_id=flow.tenant_id,
            name=flow.name,
            description=flow.description,
            document_type=flow.document_type,
            flow_type=flow.flow_type,
            use_organization_hierarchy=flow.use_organization_hierarchy,
            organization_levels=flow.organization_levels,
            is_active=flow.is_active,
            is_default=flow.is_default,
            priority=flow.priority,
            created_by=flow.created_by,
            created_at=flow.created_at,
            updated_at=flow.updated_at,
            steps=[
                FlowStepResponse(
                    id=s.id,
                    step_number=s.step_number,
                    name=s.name,
                    execution_mode=s.execution_mode,
                    required_approvals=s.required_approvals,
                    timeout_hours=s.timeout_hours,
                    allow_delegate=s.allow_delegate,
                    allow_skip=s.allow_skip,
                    approvers=[approver_to_dict(a) for a in s.ordered_approvers()],
                )
                for s in flow.ordered_steps()
            ],
            conditions=[
                FlowConditionResponse(
                    id=c.id,
                    field=c.field,
                    operator=c.operator,
                    value=c.value,
                    description=c.description,
                )
                for c in flow.conditions
            ],
        )
