"""Base repository: session, model and shared helpers for SQL repositories."""

import hashlib
from typing import Any, Generic, TypeVar

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.infrastructure.persistence.database import Base


def advisory_lock_key(*parts: str) -> int:
    """Stable 63-bit key for pg_advisory_xact_lock from string parts."""
    raw = hashlib.sha256(":".join(parts).encode()).digest()[:8]
    return int.from_bytes(raw, "big") % (2**63)


ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with tenant-scoped lookup, create, delete and advisory locks."""

    def __init__(self, db: AsyncSession, model: type[ModelType]) -> None:
        self.db = db
        self.model = model

    async def _get_orm(self, tenant_id: str, entity_id: str) -> ModelType | None:
        """Return a single row by primary key within tenant, or None."""
        model: Any = self.model
        result = await self.db.execute(
            select(self.model).where(model.id == entity_id, model.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    async def _create(self, obj: ModelType) -> ModelType:
        """Persist a new row and refresh server defaults."""
        self.db.add(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        return obj

    async def _delete(self, obj: ModelType) -> None:
        await self.db.delete(obj)
        await self.db.flush()

    async def _advisory_xact_lock(self, *parts: str) -> None:
        """Take a transaction-scoped advisory lock (PostgreSQL); released at commit/rollback."""
        await self.db.execute(
            text("SELECT pg_advisory_xact_lock(:key)"), {"key": advisory_lock_key(*parts)}
        )
