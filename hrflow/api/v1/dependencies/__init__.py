"""Presentation-layer dependency injection (composition root).

Provides FastAPI Depends() for the tenant id, DB-backed services and the
approval engine. Routes depend only on these, never on infrastructure
directly; tests replace them with app.dependency_overrides.
"""

from hrflow.api.v1.dependencies.approvals import (
    WriteUnit,
    build_approval_engine,
    get_approval_engine,
    get_approval_engine_for_read,
    get_clock,
    get_delegation_registry,
    get_delegation_registry_for_write,
    get_event_sink,
    get_flow_definition_service,
    get_flow_definition_service_for_write,
    get_write_unit,
)
from hrflow.api.v1.dependencies.tenant import get_tenant_id

__all__ = [
    "WriteUnit",
    "build_approval_engine",
    "get_approval_engine",
    "get_approval_engine_for_read",
    "get_clock",
    "get_delegation_registry",
    "get_delegation_registry_for_write",
    "get_event_sink",
    "get_flow_definition_service",
    "get_flow_definition_service_for_write",
    "get_tenant_id",
    "get_write_unit",
]
