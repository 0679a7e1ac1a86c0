"""Domain entities (dataclasses, no persistence concerns)."""

from hrflow.domain.entities.delegation import DelegationRecord
from hrflow.domain.entities.events import ApprovalEvent
from hrflow.domain.entities.flow_definition import (
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
from hrflow.domain.entities.flow_instance import (
    DecisionRecord,
    FlowInstance,
    HistoryEntry,
    StepInstance,
)

__all__ = [
    "ApprovalEvent",
    "ApproverSpec",
    "ConditionDefinition",
    "DecisionRecord",
    "DelegationRecord",
    "FlowDefinition",
    "FlowInstance",
    "HistoryEntry",
    "OrgHierarchyApprover",
    "PositionLevelApprover",
    "RoleApprover",
    "StepDefinition",
    "StepInstance",
    "UserApprover",
    "approver_to_dict",
]
