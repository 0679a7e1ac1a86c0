"""Flow definition administration: create, replace, delete, list, promote default."""

from __future__ import annotations

from hrflow.application.dtos.flow_definition import FlowDefinitionCreate
from hrflow.application.interfaces.repositories import IFlowDefinitionRepository
from hrflow.domain.entities import (
    FlowDefinition,
    PositionLevelApprover,
    RoleApprover,
    StepDefinition,
    UserApprover,
)
from hrflow.domain.enums import DocumentType, FlowType
from hrflow.domain.exceptions import (
    DefaultFlowDeletionError,
    ResourceNotFoundException,
    UnsatisfiableStepError,
    ValidationException,
)
from hrflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


def _validate_step(step: StepDefinition) -> None:
    label = f"steps[{step.step_number}]"
    if not step.name or not step.name.strip():
        raise ValidationException("Step name is required", f"{label}.name")
    if step.required_approvals < 1:
        raise ValidationException(
            "required_approvals must be at least 1", f"{label}.required_approvals"
        )
    if step.timeout_hours is not None and step.timeout_hours <= 0:
        raise ValidationException(
            "timeout_hours must be positive when set", f"{label}.timeout_hours"
        )
    if not step.approvers:
        raise ValidationException("Each step needs at least one approver", f"{label}.approvers")
    for spec in step.approvers:
        if isinstance(spec, UserApprover) and not spec.user_id:
            raise ValidationException("user approver requires user_id", f"{label}.approvers")
        if isinstance(spec, RoleApprover) and not spec.role:
            raise ValidationException("role approver requires role", f"{label}.approvers")
        if isinstance(spec, PositionLevelApprover) and spec.level < 0:
            raise ValidationException(
                "position_level approver requires a non-negative level", f"{label}.approvers"
            )
    if all(isinstance(spec, UserApprover) for spec in step.approvers):
        distinct = {spec.user_id for spec in step.approvers}
        if len(distinct) < step.required_approvals:
            raise UnsatisfiableStepError(step.step_number, len(distinct), step.required_approvals)


def validate_definition(data: FlowDefinitionCreate) -> None:
    """Raise ValidationException (or UnsatisfiableStepError) for an invalid definition."""
    if not data.name or not data.name.strip():
        raise ValidationException("Flow name is required", "name")
    if data.organization_levels is not None and data.organization_levels < 1:
        raise ValidationException("organization_levels must be at least 1", "organization_levels")
    if data.flow_type is FlowType.CUSTOM and not data.steps:
        raise ValidationException("A custom flow needs at least one step", "steps")
    numbers = [s.step_number for s in data.steps]
    if any(n < 1 for n in numbers):
        raise ValidationException("step_number must be positive", "steps")
    if len(set(numbers)) != len(numbers):
        raise ValidationException("step_number values must be unique", "steps")
    for step in data.steps:
        _validate_step(step)
    for condition in data.conditions:
        if not condition.field or not condition.field.strip():
            raise ValidationException("Condition field is required", "conditions")


class FlowDefinitionService:
    """Admin operations on flow definitions for one tenant."""

    def __init__(self, definition_repo: IFlowDefinitionRepository) -> None:
        self.definition_repo = definition_repo

    async def create(self, tenant_id: str, data: FlowDefinitionCreate) -> FlowDefinition:
        validate_definition(data)
        created = await self.definition_repo.create_definition(tenant_id, data)
        logger.info(
            "Created flow %s (%s, %s, default=%s)",
            created.id,
            created.name,
            created.document_type.value,
            created.is_default,
        )
        return created

    async def replace(
        self, tenant_id: str, definition_id: str, data: FlowDefinitionCreate
    ) -> FlowDefinition:
        """Replace header, steps and conditions; in-flight instances keep their snapshot."""
        validate_definition(data)
        updated = await self.definition_repo.replace_definition(tenant_id, definition_id, data)
        if updated is None:
            raise ResourceNotFoundException("flow_definition", definition_id)
        logger.info("Replaced flow %s (%d steps)", definition_id, len(updated.steps))
        return updated

    async def delete(self, tenant_id: str, definition_id: str) -> None:
        definition = await self.get(tenant_id, definition_id)
        if definition.is_default:
            raise DefaultFlowDeletionError(definition_id, definition.document_type.value)
        await self.definition_repo.delete_definition(tenant_id, definition_id)
        logger.info("Deleted flow %s", definition_id)

    async def get(self, tenant_id: str, definition_id: str) -> FlowDefinition:
        definition = await self.definition_repo.get_by_id(tenant_id, definition_id)
        if definition is None:
            raise ResourceNotFoundException("flow_definition", definition_id)
        return definition

    async def list(
        self,
        tenant_id: str,
        document_type: DocumentType | None = None,
        is_active: bool | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[FlowDefinition]:
        return await self.definition_repo.list_definitions(
            tenant_id, document_type=document_type, is_active=is_active, skip=skip, limit=limit
        )

    async def set_default(self, tenant_id: str, definition_id: str) -> FlowDefinition:
        """Promote definition to default; the previous default is demoted atomically."""
        promoted = await self.definition_repo.set_default(tenant_id, definition_id)
        if promoted is None:
            raise ResourceNotFoundException("flow_definition", definition_id)
        logger.info("Flow %s is now default for %s", definition_id, promoted.document_type.value)
        return promoted
