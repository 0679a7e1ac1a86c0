"""Pydantic request/response schemas for the API."""

from hrflow.schemas.approval_flow import (
    FlowDefinitionCreateRequest,
    FlowDefinitionResponse,
)
from hrflow.schemas.approval_instance import (
    BulkDecisionRequest,
    DecisionRequest,
    FlowInstanceResponse,
    SubmitDocumentRequest,
)
from hrflow.schemas.delegation import DelegationCreateRequest, DelegationResponse
from hrflow.schemas.health import HealthResponse

__all__ = [
    "BulkDecisionRequest",
    "DecisionRequest",
    "DelegationCreateRequest",
    "DelegationResponse",
    "FlowDefinitionCreateRequest",
    "FlowDefinitionResponse",
    "FlowInstanceResponse",
    "HealthResponse",
    "SubmitDocumentRequest",
]
