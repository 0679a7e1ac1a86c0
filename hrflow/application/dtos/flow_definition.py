"""Flow definition DTOs (admin input)."""

from dataclasses import dataclass, field

from hrflow.domain.entities import ConditionDefinition, StepDefinition
from hrflow.domain.enums import DocumentType, FlowType


@dataclass
class FlowDefinitionCreate:
    """Full definition payload for create and replace (steps and conditions replace wholesale)."""

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
    steps: list[StepDefinition] = field(default_factory=list)
    conditions: list[ConditionDefinition] = field(default_factory=list)
