"""Step materialization: definition steps to StepInstances for one document."""

from __future__ import annotations

from hrflow.application.dtos.approval import SubmittedDocument
from hrflow.application.services.approver_resolver import ApproverResolver
from hrflow.domain.entities import (
    FlowDefinition,
    OrgHierarchyApprover,
    StepDefinition,
    StepInstance,
)
from hrflow.domain.enums import ExecutionMode, FlowType, StepInstanceStatus
from hrflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


def synthesized_org_step() -> StepDefinition:
    """Single serial step used by organization flows that define no steps."""
    return StepDefinition(
        step_number=1,
        name="Manager approval",
        approvers=[OrgHierarchyApprover(order=1)],
        execution_mode=ExecutionMode.SERIAL,
        required_approvals=1,
    )


class StepSequencer:
    """Build the ordered StepInstances for a flow and a submitted document.

    Steps whose resolved approvers cannot reach required_approvals are
    created TIMED_OUT with unsatisfiable=True; the state machine escalates
    them when the instance starts.
    """

    def __init__(
        self,
        resolver: ApproverResolver,
        default_organization_levels: int = 1,
        allow_self_approval: bool = False,
    ) -> None:
        self.resolver = resolver
        self.default_organization_levels = default_organization_levels
        self.allow_self_approval = allow_self_approval

    def organization_levels_for(self, flow: FlowDefinition) -> int:
        return flow.organization_levels or self.default_organization_levels

    def step_definitions_for(self, flow: FlowDefinition) -> list[StepDefinition]:
        steps = flow.ordered_steps()
        if not steps and flow.flow_type is FlowType.ORGANIZATION:
            return [synthesized_org_step()]
        return steps

    async def materialize(
        self, flow: FlowDefinition, document: SubmittedDocument
    ) -> list[StepInstance]:
        levels = self.organization_levels_for(flow)
        exclude = set() if self.allow_self_approval else {document.requester_id}
        instances: list[StepInstance] = []
        for index, step in enumerate(self.step_definitions_for(flow)):
            resolved = await self.resolver.resolve_step(
                document.tenant_id, step, document.requester_id, levels, exclude
            )
            unsatisfiable = len(resolved.approver_ids) < step.required_approvals
            instance = StepInstance(
                step_index=index,
                step_number=step.step_number,
                name=step.name,
                step_definition_id=step.id,
                execution_mode=step.execution_mode,
                required_approvals=step.required_approvals,
                timeout_hours=step.timeout_hours,
                allow_delegate=step.allow_delegate,
                allow_skip=step.allow_skip,
                status=StepInstanceStatus.TIMED_OUT if unsatisfiable else StepInstanceStatus.WAITING,
                resolved_approver_ids=resolved.approver_ids,
                truncated_hierarchy=resolved.truncated_hierarchy,
                unsatisfiable=unsatisfiable,
            )
            if unsatisfiable:
                logger.warning(
                    "Step %d (%s) of flow %s is unsatisfiable: %d approver(s) for %d required",
                    step.step_number,
                    step.name,
                    flow.id,
                    len(resolved.approver_ids),
                    step.required_approvals,
                )
            instances.append(instance)
        return instances
