"""Tenant scope for row-level security.

The tenant header is normalized once here, then carried in a context
variable for the rest of the request so database sessions can run
SET LOCAL app.current_tenant_id. Approval flows, instances and delegations
are all tenant-owned, so an id that fails the format check never reaches
a session.
"""

import re
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

# Alphanumeric, hyphen, underscore; bounded so it is safe inside SET LOCAL.
TENANT_ID_MAX_LENGTH = 64
_TENANT_ID_RE = re.compile(r"[a-zA-Z0-9_-]{1,%d}" % TENANT_ID_MAX_LENGTH)

_current_tenant: ContextVar[str | None] = ContextVar("hrflow_tenant_id", default=None)


def is_valid_tenant_id_format(value: str | None) -> bool:
    """Return True if value can be used as a tenant id (header and SET LOCAL)."""
    return bool(value) and _TENANT_ID_RE.fullmatch(value) is not None


def normalize_tenant_id(raw: str | None) -> str | None:
    """Strip a raw header value; None when it is missing or malformed."""
    if raw is None:
        return None
    value = raw.strip()
    return value if is_valid_tenant_id_format(value) else None


@contextmanager
def tenant_scope(tenant_id: str | None) -> Iterator[None]:
    """Bind tenant_id for the enclosed block and restore the outer value after."""
    token = _current_tenant.set(tenant_id)
    try:
        yield
    finally:
        _current_tenant.reset(token)


def get_tenant_id() -> str | None:
    """Tenant bound by the innermost tenant_scope, if any."""
    return _current_tenant.get()
