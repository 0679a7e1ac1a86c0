"""Tenant dependency (composition root)."""

from __future__ import annotations

from fastapi import Request

from hrflow.core.config import get_settings
from hrflow.core.tenant_context import normalize_tenant_id
from hrflow.domain.exceptions import TenantRequiredException


async def get_tenant_id(request: Request) -> str:
    """Resolve the tenant id from the tenant header.

    Every approval route is tenant-scoped; a missing or malformed header is
    a 400 (TENANT_REQUIRED).
    """
    name = get_settings().tenant_header_name
    tenant_id = normalize_tenant_id(request.headers.get(name))
    if tenant_id is None:
        raise TenantRequiredException(name)
    return tenant_id
