"""Approval flow definition API: thin routes over FlowDefinitionService."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response

from hrflow.api.v1.dependencies import (
    get_approval_engine_for_read,
    get_flow_definition_service,
    get_flow_definition_service_for_write,
    get_tenant_id,
)
from hrflow.application.use_cases.approvals import ApprovalEngine
from hrflow.application.use_cases.flow_definitions import FlowDefinitionService
from hrflow.core.limiter import limit_writes
from hrflow.domain.enums import DocumentType
from hrflow.schemas.approval_flow import (
    FlowDefinitionCreateRequest,
    FlowDefinitionResponse,
)
from hrflow.schemas.approval_instance import (
    FlowSelectionRequest,
    FlowSelectionResponse,
)

router = APIRouter()


@router.post("", response_model=FlowDefinitionResponse, status_code=201)
@limit_writes
async def create_flow_definition(
    request: Request,
    body: FlowDefinitionCreateRequest,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    service: FlowDefinitionService = Depends(get_flow_definition_service_for_write),
):
    """Create a flow definition (tenant-scoped). is_default demotes the previous default."""
    flow = await service.create(tenant_id, body.to_dto())
    return FlowDefinitionResponse.from_entity(flow)


@router.get("", response_model=list[FlowDefinitionResponse])
async def list_flow_definitions(
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    service: FlowDefinitionService = Depends(get_flow_definition_service),
    document_type: DocumentType | None = Query(None),
    is_active: bool | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
):
    """List flow definitions, optionally filtered by document type and active flag."""
    flows = await service.list(
        tenant_id, document_type=document_type, is_active=is_active, skip=skip, limit=limit
    )
    return [FlowDefinitionResponse.from_entity(f) for f in flows]


@router.post("/select", response_model=FlowSelectionResponse)
async def preview_flow_selection(
    body: FlowSelectionRequest,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    engine: ApprovalEngine = Depends(get_approval_engine_for_read),
):
    """Show which flow a submission would use and who would approve each step."""
    flow, steps = await engine.preview(body.to_dto(tenant_id))
    return FlowSelectionResponse.from_preview(flow, steps)


@router.get("/{definition_id}", response_model=FlowDefinitionResponse)
async def get_flow_definition(
    definition_id: str,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    service: FlowDefinitionService = Depends(get_flow_definition_service),
):
    """Get a flow definition by id."""
    return FlowDefinitionResponse.from_entity(await service.get(tenant_id, definition_id))


@router.put("/{definition_id}", response_model=FlowDefinitionResponse)
@limit_writes
async def replace_flow_definition(
    request: Request,
    definition_id: str,
    body: FlowDefinitionCreateRequest,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    service: FlowDefinitionService = Depends(get_flow_definition_service_for_write),
):
    """Replace a flow definition; running instances keep the version they started with."""
    flow = await service.replace(tenant_id, definition_id, body.to_dto())
    return FlowDefinitionResponse.from_entity(flow)


@router.delete("/{definition_id}", status_code=204)
@limit_writes
async def delete_flow_definition(
    request: Request,
    definition_id: str,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    service: FlowDefinitionService = Depends(get_flow_definition_service_for_write),
):
    """Delete a flow definition. The default flow of a document type cannot be deleted."""
    await service.delete(tenant_id, definition_id)
    return Response(status_code=204)


@router.post("/{definition_id}/default", response_model=FlowDefinitionResponse)
@limit_writes
async def set_default_flow_definition(
    request: Request,
    definition_id: str,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    service: FlowDefinitionService = Depends(get_flow_definition_service_for_write),
):
    """Make this the default flow for its document type."""
    return FlowDefinitionResponse.from_entity(await service.set_default(tenant_id, definition_id))
