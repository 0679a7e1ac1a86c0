"""Delegation API: create, list and revoke approval delegations."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from hrflow.api.v1.dependencies import (
    get_delegation_registry,
    get_delegation_registry_for_write,
    get_tenant_id,
)
from hrflow.application.services.delegation_registry import DelegationRegistry
from hrflow.core.limiter import limit_writes
from hrflow.schemas.delegation import DelegationCreateRequest, DelegationResponse

router = APIRouter()


@router.post("", response_model=DelegationResponse, status_code=201)
@limit_writes
async def create_delegation(
    request: Request,
    body: DelegationCreateRequest,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    registry: DelegationRegistry = Depends(get_delegation_registry_for_write),
):
    """Let delegate_to_id act for user_id between start_date and end_date."""
    record = await registry.set_delegation(
        tenant_id,
        user_id=body.user_id,
        delegate_to_id=body.delegate_to_id,
        start_date=body.start_date,
        end_date=body.end_date,
        reason=body.reason,
    )
    return DelegationResponse.model_validate(record)


@router.get("", response_model=list[DelegationResponse])
async def list_delegations(
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    user_id: str = Query(..., min_length=1),
    include_revoked: bool = Query(False),
    registry: DelegationRegistry = Depends(get_delegation_registry),
):
    """Delegations granted by user_id."""
    records = await registry.list_for_user(tenant_id, user_id, include_revoked=include_revoked)
    return [DelegationResponse.model_validate(r) for r in records]


@router.get("/{delegation_id}", response_model=DelegationResponse)
async def get_delegation(
    delegation_id: str,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    registry: DelegationRegistry = Depends(get_delegation_registry),
):
    return DelegationResponse.model_validate(await registry.get(tenant_id, delegation_id))


@router.delete("/{delegation_id}", response_model=DelegationResponse)
@limit_writes
async def revoke_delegation(
    request: Request,
    delegation_id: str,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    registry: DelegationRegistry = Depends(get_delegation_registry_for_write),
):
    """Revoke a delegation; decisions already made through it stand."""
    return DelegationResponse.model_validate(await registry.revoke(tenant_id, delegation_id))
