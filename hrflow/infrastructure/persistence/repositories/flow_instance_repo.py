"""Flow instance repository with optimistic version checks."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Text, cast, select, update
from sqlalchemy.dialects.postgresql import ARRAY, array
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.domain.entities import FlowInstance, HistoryEntry, StepInstance
from hrflow.domain.enums import DocumentType, FlowInstanceStatus
from hrflow.domain.exceptions import DuplicateSubmissionError, InstanceVersionConflictError
from hrflow.infrastructure.persistence.models.flow_instance import ApprovalFlowInstance
from hrflow.infrastructure.persistence.repositories.base import BaseRepository
from hrflow.shared.utils.datetime import ensure_utc


def _instance_to_entity(orm: ApprovalFlowInstance) -> FlowInstance:
    """Map ORM row (JSON steps and history) to the domain entity."""
    return FlowInstance(
        id=orm.id,
        tenant_id=orm.tenant_id,
        flow_definition_id=orm.flow_definition_id,
        definition_snapshot=dict(orm.definition_snapshot or {}),
        document_type=DocumentType(orm.document_type),
        document_id=orm.document_id,
        requester_id=orm.requester_id,
        attributes=dict(orm.attributes or {}),
        current_step_index=orm.current_step_index,
        status=FlowInstanceStatus(orm.status),
        status_reason=orm.status_reason,
        started_at=ensure_utc(orm.started_at),
        completed_at=ensure_utc(orm.completed_at),
        version=orm.version,
        steps=[StepInstance.from_dict(s) for s in orm.steps or []],
        history=[HistoryEntry.from_dict(h) for h in orm.history or []],
    )


def _state_values(instance: FlowInstance) -> dict[str, Any]:
    """Mutable columns written on every save."""
    return {
        "current_step_index": instance.current_step_index,
        "status": instance.status.value,
        "status_reason": instance.status_reason,
        "started_at": instance.started_at,
        "completed_at": instance.completed_at,
        "current_deadline_at": instance.current_deadline_at,
        "awaiting_approver_ids": instance.awaiting_approver_ids(),
        "steps": instance.steps_to_json(),
        "history": instance.history_to_json(),
    }


class FlowInstanceRepository(BaseRepository[ApprovalFlowInstance]):
    """Flow instance repository (implements IFlowInstanceRepository)."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, ApprovalFlowInstance)

    async def add(self, instance: FlowInstance) -> FlowInstance:
        orm = ApprovalFlowInstance(
            id=instance.id,
            tenant_id=instance.tenant_id,
            flow_definition_id=instance.flow_definition_id,
            definition_snapshot=instance.definition_snapshot,
            document_type=instance.document_type.value,
            document_id=instance.document_id,
            requester_id=instance.requester_id,
            attributes=instance.attributes,
            version=1,
            **_state_values(instance),
        )
        try:
            async with self.db.begin_nested():
                self.db.add(orm)
                await self.db.flush()
        except IntegrityError as exc:
            existing = await self.get_pending_for_document(
                instance.tenant_id, instance.document_type, instance.document_id
            )
            if existing is None:
                raise
            raise DuplicateSubmissionError(
                instance.document_type.value, instance.document_id, existing.id
            ) from exc
        await self.db.refresh(orm)
        return _instance_to_entity(orm)

    async def get_by_id(self, tenant_id: str, instance_id: str) -> FlowInstance | None:
        result = await self.db.execute(
            select(ApprovalFlowInstance)
            .where(
                ApprovalFlowInstance.id == instance_id,
                ApprovalFlowInstance.tenant_id == tenant_id,
            )
            .execution_options(populate_existing=True)
        )
        orm = result.scalar_one_or_none()
        return _instance_to_entity(orm) if orm else None

    async def save(self, instance: FlowInstance, expected_version: int) -> FlowInstance:
        """UPDATE ... WHERE version = expected_version; conflict when no row matched."""
        stmt = (
            update(ApprovalFlowInstance)
            .where(
                ApprovalFlowInstance.id == instance.id,
                ApprovalFlowInstance.tenant_id == instance.tenant_id,
                ApprovalFlowInstance.version == expected_version,
            )
            .values(version=expected_version + 1, **_state_values(instance))
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            raise InstanceVersionConflictError(instance.id, expected_version)
        saved = await self.get_by_id(instance.tenant_id, instance.id)
        if saved is None:
            raise InstanceVersionConflictError(instance.id, expected_version)
        return saved

    async def get_pending_for_document(
        self, tenant_id: str, document_type: DocumentType, document_id: str
    ) -> FlowInstance | None:
        result = await self.db.execute(
            select(ApprovalFlowInstance).where(
                ApprovalFlowInstance.tenant_id == tenant_id,
                ApprovalFlowInstance.document_type == document_type.value,
                ApprovalFlowInstance.document_id == document_id,
                ApprovalFlowInstance.status == FlowInstanceStatus.PENDING.value,
            )
        )
        orm = result.scalars().first()
        return _instance_to_entity(orm) if orm else None

    async def list_for_document(
        self, tenant_id: str, document_type: DocumentType, document_id: str
    ) -> list[FlowInstance]:
        result = await self.db.execute(
            select(ApprovalFlowInstance)
            .where(
                ApprovalFlowInstance.tenant_id == tenant_id,
                ApprovalFlowInstance.document_type == document_type.value,
                ApprovalFlowInstance.document_id == document_id,
            )
            .order_by(ApprovalFlowInstance.created_at.desc(), ApprovalFlowInstance.id.desc())
        )
        return [_instance_to_entity(row) for row in result.scalars().all()]

    async def list_due_for_timeout(
        self, as_of: datetime, tenant_id: str | None = None, limit: int = 500
    ) -> list[FlowInstance]:
        q: Any = select(ApprovalFlowInstance).where(
            ApprovalFlowInstance.status == FlowInstanceStatus.PENDING.value,
            ApprovalFlowInstance.current_deadline_at.is_not(None),
            ApprovalFlowInstance.current_deadline_at < as_of,
        )
        if tenant_id is not None:
            q = q.where(ApprovalFlowInstance.tenant_id == tenant_id)
        q = q.order_by(ApprovalFlowInstance.current_deadline_at.asc()).limit(limit)
        result = await self.db.execute(q)
        return [_instance_to_entity(row) for row in result.scalars().all()]

    async def list_pending_awaiting(
        self, tenant_id: str, approver_ids: list[str], skip: int = 0, limit: int = 100
    ) -> list[FlowInstance]:
        if not approver_ids:
            return []
        result = await self.db.execute(
            select(ApprovalFlowInstance)
            .where(
                ApprovalFlowInstance.tenant_id == tenant_id,
                ApprovalFlowInstance.status == FlowInstanceStatus.PENDING.value,
                ApprovalFlowInstance.awaiting_approver_ids.has_any(
                    cast(array(approver_ids), ARRAY(Text))
                ),
            )
            .order_by(ApprovalFlowInstance.started_at.asc(), ApprovalFlowInstance.id.asc())
            .offset(skip)
            .limit(limit)
        )
        return [_instance_to_entity(row) for row in result.scalars().all()]

    async def list_for_requester(
        self,
        tenant_id: str,
        requester_id: str,
        status: FlowInstanceStatus | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[FlowInstance]:
        q: Any = select(ApprovalFlowInstance).where(
            ApprovalFlowInstance.tenant_id == tenant_id,
            ApprovalFlowInstance.requester_id == requester_id,
        )
        if status is not None:
            q = q.where(ApprovalFlowInstance.status == status.value)
        q = (
            q.order_by(
                ApprovalFlowInstance.started_at.desc().nulls_last(),
                ApprovalFlowInstance.created_at.desc(),
                ApprovalFlowInstance.id.desc(),
            )
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(q)
        return [_instance_to_entity(row) for row in result.scalars().all()]
