"""HTTP middleware: request ID and tenant context.

Applied in the main app; the last one added is outermost.
"""

from hrflow.middleware.request_id import RequestIDMiddleware
from hrflow.middleware.tenant_context import TenantContextMiddleware

__all__ = ["RequestIDMiddleware", "TenantContextMiddleware"]
