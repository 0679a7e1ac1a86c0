"""Tenant context middleware for RLS.

Binds the tenant from the tenant header for the duration of the request so
that database sessions run SET LOCAL app.current_tenant_id. Malformed ids
are not bound; the route's get_tenant_id dependency rejects them.
"""

from __future__ import annotations

from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from hrflow.core.config import get_settings
from hrflow.core.tenant_context import normalize_tenant_id, tenant_scope


def TenantContextMiddleware(app: Callable) -> Callable:
    """Bind tenant context (for RLS) from the header around the route."""

    class _Middleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next: Callable) -> Response:
            tenant_id = normalize_tenant_id(request.headers.get(get_settings().tenant_header_name))
            with tenant_scope(tenant_id):
                return await call_next(request)

    return _Middleware(app)
