"""Escalate approval steps whose deadline has passed.

Usage:
    uv run python -m scripts.run_timeout_sweep [tenant_id]
If tenant_id is omitted, sweeps every tenant. Run it from cron (or any
scheduler); concurrent runs are safe because each instance is saved with a
version check. Events go to APPROVAL_WEBHOOK_URL when set, else to the log,
and only after the sweep transaction commits.
"""

import asyncio
import sys
from pathlib import Path

import httpx
from dotenv import load_dotenv

import hrflow.infrastructure.persistence.database as database
from hrflow.api.v1.dependencies.approvals import build_approval_engine
from hrflow.core.config import get_settings
from hrflow.infrastructure.services.clock import SystemClock
from hrflow.infrastructure.services.event_sinks import (
    BufferedApprovalEventSink,
    build_event_sink,
)
from hrflow.shared.telemetry.logging import setup_logging


async def main() -> None:
    """Run one sweep in one transaction, then deliver its events."""
    load_dotenv(Path(__file__).resolve().parent.parent / ".env")
    settings = get_settings()
    setup_logging()
    database._ensure_engine()
    if database.AsyncSessionLocal is None:
        print("AsyncSessionLocal not configured", file=sys.stderr)
        sys.exit(1)
    tenant_filter = sys.argv[1] if len(sys.argv) > 1 else None

    outbox = BufferedApprovalEventSink()
    async with database.AsyncSessionLocal() as session:
        async with session.begin():
            engine = build_approval_engine(session, outbox, SystemClock())
            changed = await engine.sweep_timeouts(tenant_id=tenant_filter)

    async with httpx.AsyncClient(timeout=settings.approval_webhook_timeout_seconds) as client:
        delivered = await outbox.drain(build_event_sink(settings, client))

    for instance in changed:
        print(f"{instance.tenant_id} {instance.id}: {instance.status.value} ({instance.status_reason or '-'})")
    print(f"Done. Escalated {len(changed)} instance(s), delivered {delivered} event(s)")
    await database.engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
