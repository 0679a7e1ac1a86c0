"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
All types reference domain entities or application DTOs only; no infrastructure imports.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from hrflow.domain.enums import DocumentType, FlowInstanceStatus

if TYPE_CHECKING:
    from hrflow.application.dtos.flow_definition import FlowDefinitionCreate
    from hrflow.domain.entities import DelegationRecord, FlowDefinition, FlowInstance


class IFlowDefinitionRepository(Protocol):
    """Protocol for flow definition storage.

    create_definition, replace_definition and set_default keep at most one
    default per (tenant, document_type): promoting demotes any other default
    atomically.
    """

    async def list_active(
        self, tenant_id: str, document_type: DocumentType
    ) -> list[FlowDefinition]:
        """Return active definitions for (tenant, document_type), steps and conditions loaded."""

    async def get_by_id(self, tenant_id: str, definition_id: str) -> FlowDefinition | None:
        """Return definition by id in tenant."""

    async def list_definitions(
        self,
        tenant_id: str,
        document_type: DocumentType | None = None,
        is_active: bool | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[FlowDefinition]:
        """Return definitions ordered by document_type, priority desc, created_at desc."""

    async def create_definition(
        self, tenant_id: str, data: FlowDefinitionCreate
    ) -> FlowDefinition:
        """Insert a definition with its steps and conditions."""

    async def replace_definition(
        self, tenant_id: str, definition_id: str, data: FlowDefinitionCreate
    ) -> FlowDefinition | None:
        """Replace header fields, steps and conditions in one transaction. None if missing."""

    async def delete_definition(self, tenant_id: str, definition_id: str) -> bool:
        """Delete definition (cascades to steps and conditions). False if missing."""

    async def set_default(self, tenant_id: str, definition_id: str) -> FlowDefinition | None:
        """Promote definition to default for its document type. None if missing."""


class IFlowInstanceRepository(Protocol):
    """Protocol for flow instance storage with optimistic versioning."""

    async def add(self, instance: FlowInstance) -> FlowInstance:
        """Insert a new instance. Raises DuplicateSubmissionError if the document is already pending."""

    async def get_by_id(self, tenant_id: str, instance_id: str) -> FlowInstance | None:
        """Return instance by id in tenant."""

    async def save(self, instance: FlowInstance, expected_version: int) -> FlowInstance:
        """Persist instance state if the stored version equals expected_version.

        Returns the instance with version incremented. Raises
        InstanceVersionConflictError when another writer got there first.
        """

    async def get_pending_for_document(
        self, tenant_id: str, document_type: DocumentType, document_id: str
    ) -> FlowInstance | None:
        """Return the pending instance for a document, if any."""

    async def list_for_document(
        self, tenant_id: str, document_type: DocumentType, document_id: str
    ) -> list[FlowInstance]:
        """Return all instances for a document (newest first)."""

    async def list_due_for_timeout(
        self, as_of: datetime, tenant_id: str | None = None, limit: int = 500
    ) -> list[FlowInstance]:
        """Return pending instances whose active step deadline is strictly before as_of."""

    async def list_pending_awaiting(
        self, tenant_id: str, approver_ids: list[str], skip: int = 0, limit: int = 100
    ) -> list[FlowInstance]:
        """Return pending instances whose active step awaits any of approver_ids."""

    async def list_for_requester(
        self,
        tenant_id: str,
        requester_id: str,
        status: FlowInstanceStatus | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[FlowInstance]:
        """Return instances submitted by requester_id (newest first), optionally by status."""


class IDelegationRepository(Protocol):
    """Protocol for delegation records."""

    async def lock_user(self, tenant_id: str, user_id: str) -> None:
        """Serialize delegation writes for one user until the transaction ends."""

    async def add(self, record: DelegationRecord) -> DelegationRecord:
        """Insert a delegation record."""

    async def get_by_id(self, tenant_id: str, delegation_id: str) -> DelegationRecord | None:
        """Return delegation by id in tenant."""

    async def revoke(
        self, tenant_id: str, delegation_id: str, revoked_at: datetime
    ) -> DelegationRecord | None:
        """Mark revoked (idempotent). None if missing."""

    async def list_for_user(
        self, tenant_id: str, user_id: str, include_revoked: bool = False
    ) -> list[DelegationRecord]:
        """Return delegations created by user (start_date ascending)."""

    async def list_active_for_users(
        self, tenant_id: str, user_ids: list[str], as_of: datetime
    ) -> list[DelegationRecord]:
        """Return delegations by any of user_ids active at as_of."""

    async def list_active_to_delegate(
        self, tenant_id: str, delegate_id: str, as_of: datetime
    ) -> list[DelegationRecord]:
        """Return delegations naming delegate_id that are active at as_of."""
