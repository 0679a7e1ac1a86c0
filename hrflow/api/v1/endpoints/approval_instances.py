"""Approval instance API: submit, decide, cancel, sweep timeouts and query."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from hrflow.api.v1.dependencies import (
    get_approval_engine,
    get_approval_engine_for_read,
    get_tenant_id,
)
from hrflow.application.use_cases.approvals import ApprovalEngine
from hrflow.core.limiter import limit_writes
from hrflow.domain.enums import DocumentType, FlowInstanceStatus
from hrflow.domain.exceptions import ValidationException
from hrflow.schemas.approval_instance import (
    BulkDecisionItemResponse,
    BulkDecisionRequest,
    CancelRequest,
    DecisionRequest,
    FlowInstanceResponse,
    SubmitDocumentRequest,
    TimeoutSweepRequest,
)

router = APIRouter()


@router.post("", response_model=FlowInstanceResponse, status_code=201)
@limit_writes
async def submit_document(
    request: Request,
    body: SubmitDocumentRequest,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    engine: ApprovalEngine = Depends(get_approval_engine),
):
    """Select a flow for the document and start its approval."""
    instance = await engine.submit(body.to_dto(tenant_id))
    return FlowInstanceResponse.from_entity(instance)


@router.get("", response_model=list[FlowInstanceResponse])
async def list_instances(
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    document_type: DocumentType | None = Query(None),
    document_id: str | None = Query(None, min_length=1),
    requester_id: str | None = Query(None, min_length=1),
    status: FlowInstanceStatus | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    engine: ApprovalEngine = Depends(get_approval_engine_for_read),
):
    """Instances of one document, or the requests one requester submitted; newest first.

    Pass either document_type with document_id, or requester_id. status
    narrows either listing.
    """
    if requester_id is not None:
        if document_type is not None or document_id is not None:
            raise ValidationException(
                "Filter by requester_id or by document, not both", "requester_id"
            )
        instances = await engine.list_for_requester(
            tenant_id, requester_id, status=status, skip=skip, limit=limit
        )
        return [FlowInstanceResponse.from_entity(i) for i in instances]
    if document_type is None or document_id is None:
        raise ValidationException(
            "document_type and document_id are required unless requester_id is given",
            "document_id",
        )
    instances = await engine.list_for_document(tenant_id, document_type, document_id)
    if status is not None:
        instances = [i for i in instances if i.status is status]
    return [FlowInstanceResponse.from_entity(i) for i in instances]


@router.get("/pending", response_model=list[FlowInstanceResponse])
async def list_pending_for_approver(
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    approver_id: str = Query(..., min_length=1),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    engine: ApprovalEngine = Depends(get_approval_engine_for_read),
):
    """Pending instances waiting on approver_id, directly or through a delegation."""
    instances = await engine.pending_for(tenant_id, approver_id, skip=skip, limit=limit)
    return [FlowInstanceResponse.from_entity(i) for i in instances]


@router.post("/decisions/bulk", response_model=list[BulkDecisionItemResponse])
@limit_writes
async def decide_bulk(
    request: Request,
    body: BulkDecisionRequest,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    engine: ApprovalEngine = Depends(get_approval_engine),
):
    """Apply several decisions; each item reports its own result."""
    results = await engine.decide_many(tenant_id, body.to_commands())
    return [BulkDecisionItemResponse.from_result(r) for r in results]


@router.post("/sweep-timeouts", response_model=list[FlowInstanceResponse])
@limit_writes
async def sweep_timeouts(
    request: Request,
    body: TimeoutSweepRequest,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    engine: ApprovalEngine = Depends(get_approval_engine),
):
    """Escalate this tenant's overdue steps; returns the instances that changed."""
    instances = await engine.sweep_timeouts(as_of=body.as_of, tenant_id=tenant_id)
    return [FlowInstanceResponse.from_entity(i) for i in instances]


@router.get("/{instance_id}", response_model=FlowInstanceResponse)
async def get_instance(
    instance_id: str,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    engine: ApprovalEngine = Depends(get_approval_engine_for_read),
):
    """Get an approval instance with its steps and history."""
    return FlowInstanceResponse.from_entity(await engine.get_instance(tenant_id, instance_id))


@router.post("/{instance_id}/decisions", response_model=FlowInstanceResponse)
@limit_writes
async def decide(
    request: Request,
    instance_id: str,
    body: DecisionRequest,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    engine: ApprovalEngine = Depends(get_approval_engine),
):
    """Approve or reject the active step of an instance."""
    instance = await engine.decide(tenant_id, body.to_command(instance_id))
    return FlowInstanceResponse.from_entity(instance)


@router.post("/{instance_id}/cancel", response_model=FlowInstanceResponse)
@limit_writes
async def cancel_instance(
    request: Request,
    instance_id: str,
    body: CancelRequest,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    engine: ApprovalEngine = Depends(get_approval_engine),
):
    """Cancel a pending instance (no-op when it already finished)."""
    instance = await engine.cancel(
        tenant_id, instance_id, actor_id=body.actor_id, reason=body.reason
    )
    return FlowInstanceResponse.from_entity(instance)
