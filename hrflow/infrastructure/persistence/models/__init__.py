"""ORM models. Importing this package registers every table on Base.metadata."""

from hrflow.infrastructure.persistence.models.delegation import ApprovalDelegation
from hrflow.infrastructure.persistence.models.flow_definition import (
    ApprovalFlowApprover,
    ApprovalFlowCondition,
    ApprovalFlowDefinition,
    ApprovalFlowStep,
)
from hrflow.infrastructure.persistence.models.flow_instance import ApprovalFlowInstance
from hrflow.infrastructure.persistence.models.org_member import OrgMember

__all__ = [
    "ApprovalDelegation",
    "ApprovalFlowApprover",
    "ApprovalFlowCondition",
    "ApprovalFlowDefinition",
    "ApprovalFlowInstance",
    "ApprovalFlowStep",
    "OrgMember",
]
