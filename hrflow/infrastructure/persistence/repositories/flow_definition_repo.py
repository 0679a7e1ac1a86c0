"""Flow definition repository. Returns domain FlowDefinition entities."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

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
)
from hrflow.domain.enums import (
    ApproverType,
    ConditionOperator,
    DocumentType,
    ExecutionMode,
    FlowType,
)
from hrflow.domain.exceptions import ResourceNotFoundException
from hrflow.infrastructure.persistence.models.flow_definition import (
    ApprovalFlowApprover,
    ApprovalFlowCondition,
    ApprovalFlowDefinition,
    ApprovalFlowStep,
)
from hrflow.infrastructure.persistence.repositories.base import BaseRepository
from hrflow.shared.utils.datetime import ensure_utc


def _approver_to_spec(row: ApprovalFlowApprover) -> ApproverSpec:
    kind = ApproverType(row.approver_type)
    if kind is ApproverType.USER:
        return UserApprover(user_id=row.approver_id or "", order=row.order, id=row.id)
    if kind is ApproverType.ROLE:
        return RoleApprover(role=row.approver_role or "", order=row.order, id=row.id)
    if kind is ApproverType.POSITION_LEVEL:
        return PositionLevelApprover(level=row.position_level or 0, order=row.order, id=row.id)
    return OrgHierarchyApprover(order=row.order, id=row.id)


def _spec_to_approver(spec: ApproverSpec) -> ApprovalFlowApprover:
    row = ApprovalFlowApprover(approver_type=spec.type.value, order=spec.order)
    if isinstance(spec, UserApprover):
        row.approver_id = spec.user_id
    elif isinstance(spec, RoleApprover):
        row.approver_role = spec.role
    elif isinstance(spec, PositionLevelApprover):
        row.position_level = spec.level
    return row


def _definition_to_entity(orm: ApprovalFlowDefinition) -> FlowDefinition:
    """Map ORM definition (with steps, approvers, conditions loaded) to the domain entity."""
    return FlowDefinition(
        id=orm.id,
        tenant_id=orm.tenant_id,
        name=orm.name,
        description=orm.description,
        document_type=DocumentType(orm.document_type),
        flow_type=FlowType(orm.flow_type),
        use_organization_hierarchy=orm.use_organization_hierarchy,
        organization_levels=orm.organization_levels,
        is_active=orm.is_active,
        is_default=orm.is_default,
        priority=orm.priority,
        created_by=orm.created_by,
        created_at=ensure_utc(orm.created_at),
        updated_at=ensure_utc(orm.updated_at),
        steps=[
            StepDefinition(
                id=step.id,
                step_number=step.step_number,
                name=step.name,
                execution_mode=ExecutionMode(step.execution_mode),
                required_approvals=step.required_approvals,
                timeout_hours=step.timeout_hours,
                allow_delegate=step.allow_delegate,
                allow_skip=step.allow_skip,
                approvers=[_approver_to_spec(a) for a in step.approvers],
            )
            for step in orm.steps
        ],
        conditions=[
            ConditionDefinition(
                id=c.id,
                field=c.field,
                operator=ConditionOperator(c.operator),
                value=c.value,
                description=c.description,
            )
            for c in orm.conditions
        ],
    )


def _build_children(
    orm: ApprovalFlowDefinition, data: FlowDefinitionCreate
) -> None:
    orm.steps = [
        ApprovalFlowStep(
            step_number=step.step_number,
            name=step.name,
            execution_mode=step.execution_mode.value,
            required_approvals=step.required_approvals,
            timeout_hours=step.timeout_hours,
            allow_delegate=step.allow_delegate,
            allow_skip=step.allow_skip,
            approvers=[_spec_to_approver(a) for a in step.approvers],
        )
        for step in sorted(data.steps, key=lambda s: s.step_number)
    ]
    orm.conditions = [
        ApprovalFlowCondition(
            field=c.field,
            operator=c.operator.value,
            value=c.value,
            description=c.description,
        )
        for c in data.conditions
    ]


def _apply_header(orm: ApprovalFlowDefinition, data: FlowDefinitionCreate) -> None:
    orm.name = data.name.strip()
    orm.description = data.description
    orm.document_type = data.document_type.value
    orm.flow_type = data.flow_type.value
    orm.use_organization_hierarchy = (
        data.use_organization_hierarchy or data.flow_type is FlowType.ORGANIZATION
    )
    orm.organization_levels = data.organization_levels
    orm.is_active = data.is_active
    orm.is_default = data.is_default
    orm.priority = data.priority


class FlowDefinitionRepository(BaseRepository[ApprovalFlowDefinition]):
    """Flow definition repository (implements IFlowDefinitionRepository)."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, ApprovalFlowDefinition)

    async def _load(self, tenant_id: str, definition_id: str) -> ApprovalFlowDefinition | None:
        result = await self.db.execute(
            select(ApprovalFlowDefinition)
            .where(
                ApprovalFlowDefinition.id == definition_id,
                ApprovalFlowDefinition.tenant_id == tenant_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _demote_defaults(
        self, tenant_id: str, document_type: str, keep_id: str | None = None
    ) -> None:
        """Lock (tenant, document_type) and clear is_default on every other definition."""
        await self._advisory_xact_lock("approval_flow_default", tenant_id, document_type)
        stmt = update(ApprovalFlowDefinition).where(
            ApprovalFlowDefinition.tenant_id == tenant_id,
            ApprovalFlowDefinition.document_type == document_type,
            ApprovalFlowDefinition.is_default.is_(True),
        )
        if keep_id is not None:
            stmt = stmt.where(ApprovalFlowDefinition.id != keep_id)
        await self.db.execute(
            stmt.values(is_default=False).execution_options(synchronize_session=False)
        )

    async def list_active(
        self, tenant_id: str, document_type: DocumentType
    ) -> list[FlowDefinition]:
        result = await self.db.execute(
            select(ApprovalFlowDefinition).where(
                ApprovalFlowDefinition.tenant_id == tenant_id,
                ApprovalFlowDefinition.document_type == document_type.value,
                ApprovalFlowDefinition.is_active.is_(True),
            )
        )
        return [_definition_to_entity(row) for row in result.scalars().all()]

    async def get_by_id(self, tenant_id: str, definition_id: str) -> FlowDefinition | None:
        orm = await self._get_orm(tenant_id, definition_id)
        return _definition_to_entity(orm) if orm else None

    async def list_definitions(
        self,
        tenant_id: str,
        document_type: DocumentType | None = None,
        is_active: bool | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[FlowDefinition]:
        q: Any = select(ApprovalFlowDefinition).where(
            ApprovalFlowDefinition.tenant_id == tenant_id
        )
        if document_type is not None:
            q = q.where(ApprovalFlowDefinition.document_type == document_type.value)
        if is_active is not None:
            q = q.where(ApprovalFlowDefinition.is_active.is_(is_active))
        q = (
            q.order_by(
                ApprovalFlowDefinition.document_type.asc(),
                ApprovalFlowDefinition.priority.desc(),
                ApprovalFlowDefinition.created_at.desc(),
                ApprovalFlowDefinition.id.asc(),
            )
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(q)
        return [_definition_to_entity(row) for row in result.scalars().all()]

    async def create_definition(
        self, tenant_id: str, data: FlowDefinitionCreate
    ) -> FlowDefinition:
        if data.is_default:
            await self._demote_defaults(tenant_id, data.document_type.value)
        orm = ApprovalFlowDefinition(tenant_id=tenant_id, created_by=data.created_by)
        _apply_header(orm, data)
        _build_children(orm, data)
        self.db.add(orm)
        await self.db.flush()
        reloaded = await self._load(tenant_id, orm.id)
        if reloaded is None:
            raise ResourceNotFoundException("flow_definition", orm.id)
        return _definition_to_entity(reloaded)

    async def replace_definition(
        self, tenant_id: str, definition_id: str, data: FlowDefinitionCreate
    ) -> FlowDefinition | None:
        orm = await self._get_orm(tenant_id, definition_id)
        if orm is None:
            return None
        if data.is_default:
            await self._demote_defaults(tenant_id, data.document_type.value, keep_id=definition_id)
        _apply_header(orm, data)
        # delete-orphan cascade removes the old steps, approvers and conditions
        orm.steps.clear()
        orm.conditions.clear()
        await self.db.flush()
        _build_children(orm, data)
        await self.db.flush()
        reloaded = await self._load(tenant_id, definition_id)
        return _definition_to_entity(reloaded) if reloaded else None

    async def delete_definition(self, tenant_id: str, definition_id: str) -> bool:
        orm = await self._get_orm(tenant_id, definition_id)
        if orm is None:
            return False
        await self._delete(orm)
        return True

    async def set_default(self, tenant_id: str, definition_id: str) -> FlowDefinition | None:
        orm = await self._get_orm(tenant_id, definition_id)
        if orm is None:
            return None
        await self._demote_defaults(tenant_id, orm.document_type, keep_id=definition_id)
        orm.is_default = True
        await self.db.flush()
        reloaded = await self._load(tenant_id, definition_id)
        return _definition_to_entity(reloaded) if reloaded else None
