"""Approval instance API schemas: submission, decisions, cancellation and views."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from hrflow.application.dtos.approval import (
    BulkDecisionResult,
    DecisionCommand,
    SubmittedDocument,
)
from hrflow.domain.entities import (
    DecisionRecord,
    FlowDefinition,
    FlowInstance,
    HistoryEntry,
    StepInstance,
)
from hrflow.domain.enums import (
    Decision,
    DocumentType,
    ExecutionMode,
    FlowInstanceStatus,
    HistoryAction,
    StepInstanceStatus,
)


class SubmitDocumentRequest(BaseModel):
    """Request body for submitting a document for approval."""

    document_type: DocumentType
    document_id: str = Field(..., min_length=1, max_length=64)
    requester_id: str = Field(..., min_length=1, max_length=64)
    attributes: dict[str, Any] = Field(default_factory=dict)

    def to_dto(self, tenant_id: str) -> SubmittedDocument:
        return SubmittedDocument(
            tenant_id=tenant_id,
            document_type=self.document_type,
            document_id=self.document_id,
            requester_id=self.requester_id,
            attributes=dict(self.attributes),
        )


class DecisionRequest(BaseModel):
    """Approve or reject the active step.

    step_index pins the decision to a step; expected_version rejects the call
    when the instance moved on since the client read it.
    """

    approver_id: str = Field(..., min_length=1, max_length=64)
    decision: Decision
    comment: str | None = Field(default=None, max_length=2000)
    step_index: int | None = Field(default=None, ge=0)
    expected_version: int | None = Field(default=None, ge=1)

    def to_command(self, instance_id: str) -> DecisionCommand:
        return DecisionCommand(
            instance_id=instance_id,
            approver_id=self.approver_id,
            decision=self.decision,
            comment=self.comment,
            step_index=self.step_index,
            expected_version=self.expected_version,
        )


class BulkDecisionItem(DecisionRequest):
    instance_id: str = Field(..., min_length=1, max_length=64)


class BulkDecisionRequest(BaseModel):
    """Independent decisions applied in order; each succeeds or fails on its own."""

    items: list[BulkDecisionItem] = Field(..., min_length=1, max_length=200)

    def to_commands(self) -> list[DecisionCommand]:
        return [item.to_command(item.instance_id) for item in self.items]


class CancelRequest(BaseModel):
    actor_id: str | None = Field(default=None, max_length=64)
    reason: str | None = Field(default=None, max_length=500)


class TimeoutSweepRequest(BaseModel):
    """Escalate steps whose deadline has passed as of as_of (now when omitted)."""

    as_of: datetime | None = None


class DecisionRecordResponse(BaseModel):
    decision: Decision
    decided_by: str
    at: datetime | None
    delegated_from: str | None
    comment: str | None

    @classmethod
    def from_entity(cls, record: DecisionRecord) -> DecisionRecordResponse:
        return cls(
            decision=record.decision,
            decided_by=record.decided_by,
            at=record.at,
            delegated_from=record.delegated_from,
            comment=record.comment,
        )


class StepInstanceResponse(BaseModel):
    """Runtime state of one step. decisions are keyed by the approver credited."""

    step_index: int
    step_number: int
    name: str
    execution_mode: ExecutionMode
    required_approvals: int
    timeout_hours: float | None
    allow_delegate: bool
    allow_skip: bool
    status: StepInstanceStatus
    status_reason: str | None
    resolved_approver_ids: list[str]
    awaiting_approver_ids: list[str]
    approval_count: int
    decisions: dict[str, DecisionRecordResponse]
    delegations: dict[str, str]
    truncated_hierarchy: bool
    unsatisfiable: bool
    activated_at: datetime | None
    deadline_at: datetime | None
    completed_at: datetime | None

    @classmethod
    def from_entity(cls, step: StepInstance) -> StepInstanceResponse:
        return cls(
            step_index=step.step_index,
            step_number=step.step_number,
            name=step.name,
            execution_mode=step.execution_mode,
            required_approvals=step.required_approvals,
            timeout_hours=step.timeout_hours,
            allow_delegate=step.allow_delegate,
            allow_skip=step.allow_skip,
            status=step.status,
            status_reason=step.status_reason,
            resolved_approver_ids=list(step.resolved_approver_ids),
            awaiting_approver_ids=step.awaiting_approver_ids(),
            approval_count=step.approval_count,
            decisions={
                k: DecisionRecordResponse.from_entity(v) for k, v in step.decisions.items()
            },
            delegations=dict(step.delegations),
            truncated_hierarchy=step.truncated_hierarchy,
            unsatisfiable=step.unsatisfiable,
            activated_at=step.activated_at,
            deadline_at=step.deadline_at,
            completed_at=step.completed_at,
        )


class HistoryEntryResponse(BaseModel):
    action: HistoryAction
    at: datetime | None
    actor_id: str | None
    step_index: int | None
    comment: str | None
    delegated_from: str | None
    reason: str | None

    @classmethod
    def from_entity(cls, entry: HistoryEntry) -> HistoryEntryResponse:
        return cls(
            action=entry.action,
            at=entry.at,
            actor_id=entry.actor_id,
            step_index=entry.step_index,
            comment=entry.comment,
            delegated_from=entry.delegated_from,
            reason=entry.reason,
        )


class FlowInstanceResponse(BaseModel):
    """Approval instance response (full state, history and progress)."""

    id: str
    tenant_id: str
    flow_definition_id: str
    flow_name: str | None
    document_type: DocumentType
    document_id: str
    requester_id: str
    attributes: dict[str, Any]
    status: FlowInstanceStatus
    status_reason: str | None
    current_step_index: int | None
    progress: float
    awaiting_approver_ids: list[str]
    version: int
    started_at: datetime | None
    completed_at: datetime | None
    steps: list[StepInstanceResponse]
    history: list[HistoryEntryResponse]

    @classmethod
    def from_entity(cls, instance: FlowInstance) -> FlowInstanceResponse:
        return cls(
            id=instance.id,
            tenant_id=instance.tenant_id,
            flow_definition_id=instance.flow_definition_id,
            flow_name=instance.definition_snapshot.get("name"),
            document_type=instance.document_type,
            document_id=instance.document_id,
            requester_id=instance.requester_id,
            attributes=dict(instance.attributes),
            status=instance.status,
            status_reason=instance.status_reason,
            current_step_index=instance.current_step_index,
            progress=instance.progress(),
            awaiting_approver_ids=instance.awaiting_approver_ids(),
            version=instance.version,
            started_at=instance.started_at,
            completed_at=instance.completed_at,
            steps=[StepInstanceResponse.from_entity(s) for s in instance.steps],
            history=[HistoryEntryResponse.from_entity(h) for h in instance.history],
        )


class BulkDecisionItemResponse(BaseModel):
    instance_id: str
    ok: bool
    status: FlowInstanceStatus | None = None
    version: int | None = None
    error: str | None = None
    message: str | None = None

    @classmethod
    def from_result(cls, result: BulkDecisionResult) -> BulkDecisionItemResponse:
        if result.instance is not None:
            return cls(
                instance_id=result.instance_id,
                ok=result.ok,
                status=result.instance.status,
                version=result.instance.version,
            )
        return cls(
            instance_id=result.instance_id,
            ok=result.ok,
            error=result.error_code,
            message=result.message,
        )


class FlowSelectionRequest(SubmitDocumentRequest):
    """Dry run: which flow would a submission use, and who would approve each step."""


class PreviewStep(BaseModel):
    step_index: int
    step_number: int
    name: str
    execution_mode: ExecutionMode
    required_approvals: int
    resolved_approver_ids: list[str]
    truncated_hierarchy: bool
    unsatisfiable: bool


class FlowSelectionResponse(BaseModel):
    flow_definition_id: str
    flow_name: str
    is_default: bool
    priority: int
    steps: list[PreviewStep]

    @classmethod
    def from_preview(
        cls, flow: FlowDefinition, steps: list[StepInstance]
    ) -> FlowSelectionResponse:
        return cls(
            flow_definition_id=flow.id,
            flow_name=flow.name,
            is_default=flow.is_default,
            priority=flow.priority,
            steps=[
                PreviewStep(
                    step_index=s.step_index,
                    step_number=s.step_number,
                    name=s.name,
                    execution_mode=s.execution_mode,
                    required_approvals=s.required_approvals,
                    resolved_approver_ids=list(s.resolved_approver_ids),
                    truncated_hierarchy=s.truncated_hierarchy,
                    unsatisfiable=s.unsatisfiable,
                )
                for s in steps
            ],
        )
