"""Flow definition entities: approver specs, steps, conditions, definitions.

A definition is a reusable template; instances freeze a snapshot of it at
submission (to_snapshot / from_snapshot) so later edits never change an
in-flight approval.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from hrflow.domain.enums import (
    ApproverType,
    ConditionOperator,
    DocumentType,
    ExecutionMode,
    FlowType,
)
from hrflow.shared.utils.datetime import parse_iso_utc


@dataclass(frozen=True)
class UserApprover:
    """A literal user id."""

    user_id: str
    order: int = 0
    id: str | None = None
    type: ClassVar[ApproverType] = ApproverType.USER


@dataclass(frozen=True)
class RoleApprover:
    """Every active user holding a role in the tenant."""

    role: str
    order: int = 0
    id: str | None = None
    type: ClassVar[ApproverType] = ApproverType.ROLE


@dataclass(frozen=True)
class PositionLevelApprover:
    """Every active user at a position level."""

    level: int
    order: int = 0
    id: str | None = None
    type: ClassVar[ApproverType] = ApproverType.POSITION_LEVEL


@dataclass(frozen=True)
class OrgHierarchyApprover:
    """The requester's manager N levels up (N is the flow's organization_levels)."""

    order: int = 0
    id: str | None = None
    type: ClassVar[ApproverType] = ApproverType.ORG_HIERARCHY


ApproverSpec = UserApprover | RoleApprover | PositionLevelApprover | OrgHierarchyApprover


def approver_to_dict(spec: ApproverSpec) -> dict[str, Any]:
    """Serialize an approver spec as a tagged dict ({"type": ..., ...})."""
    data: dict[str, Any] = {"type": spec.type.value, "order": spec.order, "id": spec.id}
    if isinstance(spec, UserApprover):
        data["user_id"] = spec.user_id
    elif isinstance(spec, RoleApprover):
        data["role"] = spec.role
    elif isinstance(spec, PositionLevelApprover):
        data["level"] = spec.level
    return data


def approver_from_dict(data: dict[str, Any]) -> ApproverSpec:
    """Rebuild an approver spec from its tagged dict. Raises ValueError on unknown type."""
    kind = ApproverType(data["type"])
    order = int(data.get("order", 0))
    spec_id = data.get("id")
    if kind is ApproverType.USER:
        return UserApprover(user_id=data["user_id"], order=order, id=spec_id)
    if kind is ApproverType.ROLE:
        return RoleApprover(role=data["role"], order=order, id=spec_id)
    if kind is ApproverType.POSITION_LEVEL:
        return PositionLevelApprover(level=int(data["level"]), order=order, id=spec_id)
    return OrgHierarchyApprover(order=order, id=spec_id)


@dataclass
class ConditionDefinition:
    """Single eligibility predicate: field operator value."""

    field: str
    operator: ConditionOperator
    value: Any
    description: str | None = None
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "field": self.field,
            "operator": self.operator.value,
            "value": self.value,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConditionDefinition":
        return cls(
            field=data["field"],
            operator=ConditionOperator(data["operator"]),
            value=data.get("value"),
            description=data.get("description"),
            id=data.get("id"),
        )


@dataclass
class StepDefinition:
    """One stage of a flow: who approves, how many, how long."""

    step_number: int
    name: str
    approvers: list[ApproverSpec] = field(default_factory=list)
    execution_mode: ExecutionMode = ExecutionMode.SERIAL
    required_approvals: int = 1
    timeout_hours: float | None = None
    allow_delegate: bool = True
    allow_skip: bool = False
    id: str | None = None

    def ordered_approvers(self) -> list[ApproverSpec]:
        """Approver specs by ascending order (stable for equal orders)."""
        return sorted(self.approvers, key=lambda a: a.order)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "step_number": self.step_number,
            "name": self.name,
            "execution_mode": self.execution_mode.value,
            "required_approvals": self.required_approvals,
            "timeout_hours": self.timeout_hours,
            "allow_delegate": self.allow_delegate,
            "allow_skip": self.allow_skip,
            "approvers": [approver_to_dict(a) for a in self.approvers],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StepDefinition":
        return cls(
            id=data.get("id"),
            step_number=int(data["step_number"]),
            name=data["name"],
            execution_mode=ExecutionMode(data.get("execution_mode", ExecutionMode.SERIAL.value)),
            required_approvals=int(data.get("required_approvals", 1)),
            timeout_hours=data.get("timeout_hours"),
            allow_delegate=bool(data.get("allow_delegate", True)),
            allow_skip=bool(data.get("allow_skip", False)),
            approvers=[approver_from_dict(a) for a in data.get("approvers", [])],
        )


@dataclass
class FlowDefinition:
    """Domain entity for an approval flow template."""

    id: str
    tenant_id: str
    name: str
    document_type: DocumentType
    flow_type: FlowType = FlowType.CUSTOM
    description: str | None = None
    use_organization_hierarchy: bool = False
    organization_levels: int | None = None
    is_active: bool = True
    is_default: bool = False
    priority: int = 0
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    steps: list[StepDefinition] = field(default_factory=list)
    conditions: list[ConditionDefinition] = field(default_factory=list)

    def belongs_to_tenant(self, tenant_id: str) -> bool:
        """Return whether this definition belongs to the given tenant."""
        return self.tenant_id == tenant_id

    def ordered_steps(self) -> list[StepDefinition]:
        """Steps by ascending step_number."""
        return sorted(self.steps, key=lambda s: s.step_number)

    def to_snapshot(self) -> dict[str, Any]:
        """Frozen, JSON-safe copy stored on each instance."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "document_type": self.document_type.value,
            "flow_type": self.flow_type.value,
            "use_organization_hierarchy": self.use_organization_hierarchy,
            "organization_levels": self.organization_levels,
            "is_active": self.is_active,
            "is_default": self.is_default,
            "priority": self.priority,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "steps": [s.to_dict() for s in self.ordered_steps()],
            "conditions": [c.to_dict() for c in self.conditions],
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "FlowDefinition":
        return cls(
            id=data["id"],
            tenant_id=data["tenant_id"],
            name=data["name"],
            description=data.get("description"),
            document_type=DocumentType(data["document_type"]),
            flow_type=FlowType(data.get("flow_type", FlowType.CUSTOM.value)),
            use_organization_hierarchy=bool(data.get("use_organization_hierarchy", False)),
            organization_levels=data.get("organization_levels"),
            is_active=bool(data.get("is_active", True)),
            is_default=bool(data.get("is_default", False)),
            priority=int(data.get("priority", 0)),
            created_by=data.get("created_by"),
            created_at=parse_iso_utc(data.get("created_at")),
            updated_at=parse_iso_utc(data.get("updated_at")),
            steps=[StepDefinition.from_dict(s) for s in data.get("steps", [])],
            conditions=[ConditionDefinition.from_dict(c) for c in data.get("conditions", [])],
        )
