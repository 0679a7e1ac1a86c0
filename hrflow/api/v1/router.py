"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from hrflow.api.v1.dependencies (no manual repo/service construction).
"""

from fastapi import APIRouter

from hrflow.api.v1.endpoints import (
    approval_flows,
    approval_instances,
    delegations,
    health,
)

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(
    approval_flows.router, prefix="/approval-flows", tags=["approval-flows"]
)
api_router.include_router(
    approval_instances.router, prefix="/approval-instances", tags=["approval-instances"]
)
api_router.include_router(delegations.router, prefix="/delegations", tags=["delegations"])
