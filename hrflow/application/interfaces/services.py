"""Service interfaces (ports) for the application layer.

Protocols define contracts for the org directory, event delivery and time.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from hrflow.domain.entities import ApprovalEvent


class IOrgDirectory(Protocol):
    """Read-only view of the organization used to resolve approvers.

    All lookups return active users only, in a stable order.
    """

    async def users_with_role(self, tenant_id: str, role: str) -> list[str]:
        """Return ids of active users holding role."""

    async def users_at_level(self, tenant_id: str, level: int) -> list[str]:
        """Return ids of active users at position level."""

    async def manager_chain(
        self, tenant_id: str, user_id: str, max_depth: int
    ) -> list[str]:
        """Return the manager chain above user_id, nearest first (at most max_depth ids)."""


class IApprovalEventSink(Protocol):
    """Receives events after the state change is persisted."""

    async def publish(self, event: ApprovalEvent) -> None:
        """Deliver one event. Exceptions are logged by the engine and do not undo the transition."""


class IClock(Protocol):
    """Source of 'now' (UTC-aware); injected so deadlines are testable."""

    def now(self) -> datetime:
        """Return the current UTC time."""
