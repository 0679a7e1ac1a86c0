"""Approval DTOs: submissions, decision commands and bulk results."""

from dataclasses import dataclass, field
from typing import Any

from hrflow.domain.entities import FlowInstance
from hrflow.domain.enums import Decision, DocumentType


@dataclass
class SubmittedDocument:
    """A document entering approval; attributes are snapshotted on the instance."""

    tenant_id: str
    document_type: DocumentType
    document_id: str
    requester_id: str
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class DecisionCommand:
    """One approve/reject request from a user."""

    instance_id: str
    approver_id: str
    decision: Decision
    comment: str | None = None
    step_index: int | None = None
    expected_version: int | None = None


@dataclass
class BulkDecisionResult:
    """Outcome of one item in decide_many."""

    instance_id: str
    ok: bool
    instance: FlowInstance | None = None
    error_code: str | None = None
    message: str | None = None
