"""Seed dev data from docs/seed-data.json into Postgres.

Loads, per tenant, the org directory (org_member rows, upserted by user id)
and approval flow definitions (created through FlowDefinitionService, so
they are validated exactly like API input). Flows whose name already exists
for the tenant are skipped.

Usage:
    uv run python -m scripts.seed_dev_data [path/to/seed-data.json]

Default path: docs/seed-data.json (relative to project root).
Requires: DATABASE_URL (Postgres) and tables from scripts.init_db.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncSession

import hrflow.infrastructure.persistence.database as database
from hrflow.application.use_cases.flow_definitions import FlowDefinitionService
from hrflow.domain.exceptions import HRFlowException
from hrflow.infrastructure.persistence.models import OrgMember
from hrflow.infrastructure.persistence.repositories import FlowDefinitionRepository
from hrflow.schemas.approval_flow import FlowDefinitionCreateRequest


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _load_env() -> None:
    """Load .env from project root so get_settings() sees DATABASE_URL when run as script."""
    load_dotenv(_project_root() / ".env", override=True)


async def _seed_members(session: AsyncSession, tenant_id: str, members: list[dict[str, Any]]) -> int:
    for m in members:
        await session.merge(
            OrgMember(
                tenant_id=tenant_id,
                user_id=m["user_id"],
                manager_id=m.get("manager_id"),
                position_level=m.get("position_level"),
                roles=list(m.get("roles", [])),
                is_active=m.get("is_active", True),
            )
        )
    await session.flush()
    return len(members)


async def _seed_flows(session: AsyncSession, tenant_id: str, flows: list[dict[str, Any]]) -> int:
    service = FlowDefinitionService(FlowDefinitionRepository(session))
    existing = {f.name for f in await service.list(tenant_id, limit=10_000)}
    created = 0
    for raw in flows:
        body = FlowDefinitionCreateRequest.model_validate(raw)
        if body.name in existing:
            print(f"  flow '{body.name}' exists, skipped")
            continue
        try:
            flow = await service.create(tenant_id, body.to_dto())
        except HRFlowException as e:
            print(f"  flow '{body.name}' rejected: {e.error_code} {e.message}", file=sys.stderr)
            raise
        print(f"  flow '{flow.name}' -> {flow.id}")
        created += 1
    return created


async def main() -> None:
    _load_env()
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else _project_root() / "docs" / "seed-data.json"
    if not path.exists():
        print(f"Seed file not found: {path}", file=sys.stderr)
        sys.exit(1)
    data = json.loads(path.read_text(encoding="utf-8"))

    database._ensure_engine()
    if database.AsyncSessionLocal is None:
        print("AsyncSessionLocal not configured", file=sys.stderr)
        sys.exit(1)

    for tenant in data.get("tenants", []):
        tenant_id = tenant["id"]
        print(f"Tenant {tenant_id}")
        async with database.AsyncSessionLocal() as session:
            async with session.begin():
                members = await _seed_members(session, tenant_id, tenant.get("org_members", []))
                flows = await _seed_flows(session, tenant_id, tenant.get("flows", []))
        print(f"  {members} org member(s), {flows} new flow(s)")
    await database.engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
