"""SQL repositories (implement the application repository ports)."""

from hrflow.infrastructure.persistence.repositories.delegation_repo import DelegationRepository
from hrflow.infrastructure.persistence.repositories.flow_definition_repo import (
    FlowDefinitionRepository,
)
from hrflow.infrastructure.persistence.repositories.flow_instance_repo import (
    FlowInstanceRepository,
)

__all__ = [
    "DelegationRepository",
    "FlowDefinitionRepository",
    "FlowInstanceRepository",
]
