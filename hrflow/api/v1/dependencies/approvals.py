"""Approval engine, delegation registry and flow definition dependencies.

Writes run in one transaction per request. Approval events raised during the
request are buffered and only handed to the application's event sink after
that transaction commits; a failed request publishes nothing.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.application.interfaces.services import IApprovalEventSink, IClock
from hrflow.application.services.approver_resolver import ApproverResolver
from hrflow.application.services.delegation_registry import DelegationRegistry
from hrflow.application.services.flow_selector import FlowSelector
from hrflow.application.services.step_sequencer import StepSequencer
from hrflow.application.use_cases.approvals import ApprovalEngine
from hrflow.application.use_cases.flow_definitions import FlowDefinitionService
from hrflow.core.config import get_settings
from hrflow.infrastructure.persistence.database import get_db, get_db_transactional
from hrflow.infrastructure.persistence.repositories import (
    DelegationRepository,
    FlowDefinitionRepository,
    FlowInstanceRepository,
)
from hrflow.infrastructure.services.clock import SystemClock
from hrflow.infrastructure.services.event_sinks import (
    BufferedApprovalEventSink,
    LogOnlyApprovalEventSink,
)
from hrflow.infrastructure.services.org_directory import SqlOrgDirectory

_transactional_session = asynccontextmanager(get_db_transactional)


@dataclass
class WriteUnit:
    """Transactional session plus the buffer its events go to."""

    session: AsyncSession
    outbox: BufferedApprovalEventSink


def get_clock() -> IClock:
    return SystemClock()


def get_event_sink(request: Request) -> IApprovalEventSink:
    """Sink built at startup (webhook or log-only); log-only when the lifespan has not run."""
    sink = getattr(request.app.state, "approval_event_sink", None)
    return sink if sink is not None else LogOnlyApprovalEventSink()


async def get_write_unit(
    sink: Annotated[IApprovalEventSink, Depends(get_event_sink)],
) -> AsyncIterator[WriteUnit]:
    """Open a transaction; after it commits, drain buffered events to the sink."""
    outbox = BufferedApprovalEventSink()
    async with _transactional_session() as session:
        yield WriteUnit(session=session, outbox=outbox)
    await outbox.drain(sink)


def build_approval_engine(
    session: AsyncSession, event_sink: IApprovalEventSink, clock: IClock
) -> ApprovalEngine:
    """Wire the engine over SQL repositories and the org directory."""
    settings = get_settings()
    resolver = ApproverResolver(
        SqlOrgDirectory(session), max_hierarchy_depth=settings.org_max_hierarchy_depth
    )
    return ApprovalEngine(
        instance_repo=FlowInstanceRepository(session),
        selector=FlowSelector(FlowDefinitionRepository(session)),
        sequencer=StepSequencer(
            resolver,
            default_organization_levels=settings.approval_default_organization_levels,
            allow_self_approval=settings.approval_allow_self_approval,
        ),
        delegation_registry=DelegationRegistry(DelegationRepository(session), clock),
        event_sink=event_sink,
        clock=clock,
        retry_attempts=settings.approval_decision_retry_attempts,
        sweep_batch_size=settings.approval_timeout_sweep_batch_size,
    )


async def get_approval_engine(
    unit: Annotated[WriteUnit, Depends(get_write_unit)],
    clock: Annotated[IClock, Depends(get_clock)],
) -> ApprovalEngine:
    """Engine for submissions, decisions, cancellation and sweeps (transactional)."""
    return build_approval_engine(unit.session, unit.outbox, clock)


async def get_approval_engine_for_read(
    db: Annotated[AsyncSession, Depends(get_db)],
    sink: Annotated[IApprovalEventSink, Depends(get_event_sink)],
    clock: Annotated[IClock, Depends(get_clock)],
) -> ApprovalEngine:
    """Engine for queries and previews; nothing it does is written."""
    return build_approval_engine(db, sink, clock)


async def get_delegation_registry(
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: Annotated[IClock, Depends(get_clock)],
) -> DelegationRegistry:
    """Delegation registry for read operations."""
    return DelegationRegistry(DelegationRepository(db), clock)


async def get_delegation_registry_for_write(
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    clock: Annotated[IClock, Depends(get_clock)],
) -> DelegationRegistry:
    """Delegation registry for writes (transactional)."""
    return DelegationRegistry(DelegationRepository(db), clock)


async def get_flow_definition_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> FlowDefinitionService:
    """Flow definition service for read operations."""
    return FlowDefinitionService(FlowDefinitionRepository(db))


async def get_flow_definition_service_for_write(
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
) -> FlowDefinitionService:
    """Flow definition service for writes (transactional)."""
    return FlowDefinitionService(FlowDefinitionRepository(db))
