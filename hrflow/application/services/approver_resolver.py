"""Approver resolution: turn a step's approver specs into concrete user ids."""

from __future__ import annotations

from dataclasses import dataclass, field

from hrflow.application.interfaces.services import IOrgDirectory
from hrflow.domain.entities import (
    ApproverSpec,
    OrgHierarchyApprover,
    PositionLevelApprover,
    RoleApprover,
    StepDefinition,
    UserApprover,
)
from hrflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ResolvedApprovers:
    """Ordered, de-duplicated approver ids for one step."""

    approver_ids: list[str] = field(default_factory=list)
    truncated_hierarchy: bool = False


class ApproverResolver:
    """Expand approver specs against the org directory.

    org_hierarchy climbs the requester's manager chain exactly
    organization_levels steps; a shorter chain yields its topmost manager and
    sets truncated_hierarchy, an empty chain yields nobody.
    """

    def __init__(self, org_directory: IOrgDirectory, max_hierarchy_depth: int = 20) -> None:
        self.org_directory = org_directory
        self.max_hierarchy_depth = max_hierarchy_depth

    async def resolve_spec(
        self,
        tenant_id: str,
        spec: ApproverSpec,
        requester_id: str,
        organization_levels: int,
    ) -> tuple[list[str], bool]:
        """Return (ids, truncated) for a single spec."""
        if isinstance(spec, UserApprover):
            return [spec.user_id], False
        if isinstance(spec, RoleApprover):
            return await self.org_directory.users_with_role(tenant_id, spec.role), False
        if isinstance(spec, PositionLevelApprover):
            return await self.org_directory.users_at_level(tenant_id, spec.level), False
        if isinstance(spec, OrgHierarchyApprover):
            return await self._climb(tenant_id, requester_id, organization_levels)
        raise TypeError(f"Unsupported approver spec: {type(spec).__name__}")

    async def _climb(
        self, tenant_id: str, requester_id: str, levels: int
    ) -> tuple[list[str], bool]:
        depth = max(1, min(levels, self.max_hierarchy_depth))
        chain = await self.org_directory.manager_chain(tenant_id, requester_id, depth)
        if len(chain) >= depth:
            return [chain[depth - 1]], False
        logger.warning(
            "Manager chain for %s has %d level(s), %d requested; hierarchy truncated",
            requester_id,
            len(chain),
            depth,
        )
        if not chain:
            return [], True
        return [chain[-1]], True

    async def resolve_step(
        self,
        tenant_id: str,
        step: StepDefinition,
        requester_id: str,
        organization_levels: int,
        exclude_ids: set[str] | None = None,
    ) -> ResolvedApprovers:
        """Resolve all specs of a step in order, keeping the first occurrence of each id."""
        result = ResolvedApprovers()
        seen: set[str] = set(exclude_ids or ())
        for spec in step.ordered_approvers():
            ids, truncated = await self.resolve_spec(
                tenant_id, spec, requester_id, organization_levels
            )
            result.truncated_hierarchy = result.truncated_hierarchy or truncated
            for approver_id in ids:
                if approver_id and approver_id not in seen:
                    seen.add(approver_id)
                    result.approver_ids.append(approver_id)
        return result
