"""Pytest configuration and fixtures for hrflow.

Unit and API tests run against the in-memory fakes in tests.fakes; only
tests marked requires_db need Postgres (DATABASE_URL), and they skip
without it. Run without a database via: pytest -m 'not requires_db'.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

import hrflow.infrastructure.persistence.database as database
from hrflow.api.v1.dependencies import (
    get_approval_engine,
    get_approval_engine_for_read,
    get_delegation_registry,
    get_delegation_registry_for_write,
    get_flow_definition_service,
    get_flow_definition_service_for_write,
)
from hrflow.application.services.approver_resolver import ApproverResolver
from hrflow.application.services.delegation_registry import DelegationRegistry
from hrflow.application.services.flow_selector import FlowSelector
from hrflow.application.services.step_sequencer import StepSequencer
from hrflow.application.use_cases.approvals import ApprovalEngine
from hrflow.application.use_cases.flow_definitions import FlowDefinitionService
from hrflow.core.limiter import limiter
from hrflow.main import create_app
from tests.fakes import (
    FrozenClock,
    InMemoryDelegationRepository,
    InMemoryFlowDefinitionRepository,
    InMemoryFlowInstanceRepository,
    Member,
    RecordingEventSink,
    StaticOrgDirectory,
)

TENANT = "acme"
TENANT_HEADERS = {"X-Tenant-ID": TENANT}


def standard_org() -> StaticOrgDirectory:
    """ceo <- lead <- (alice, bob); two HR managers and a finance director."""
    return StaticOrgDirectory(
        {
            "ceo": Member(level=1, roles=["executive"]),
            "fin": Member(manager_id="ceo", level=2, roles=["finance"]),
            "hr1": Member(manager_id="ceo", level=2, roles=["hr_manager"]),
            "hr2": Member(manager_id="ceo", level=2, roles=["hr_manager"]),
            "lead": Member(manager_id="ceo", level=3, roles=["team_lead"]),
            "alice": Member(manager_id="lead", level=4),
            "bob": Member(manager_id="lead", level=4),
        }
    )


@pytest.fixture(autouse=True)
def reset_rate_limits() -> None:
    """Every test starts with a fresh per-client write budget."""
    limiter.reset()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def sink() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def org() -> StaticOrgDirectory:
    return standard_org()


@pytest.fixture
def definition_repo() -> InMemoryFlowDefinitionRepository:
    return InMemoryFlowDefinitionRepository()


@pytest.fixture
def instance_repo() -> InMemoryFlowInstanceRepository:
    return InMemoryFlowInstanceRepository()


@pytest.fixture
def delegation_repo() -> InMemoryDelegationRepository:
    return InMemoryDelegationRepository()


@pytest.fixture
def registry(delegation_repo, clock) -> DelegationRegistry:
    return DelegationRegistry(delegation_repo, clock)


@pytest.fixture
def flow_service(definition_repo) -> FlowDefinitionService:
    return FlowDefinitionService(definition_repo)


@pytest.fixture
def engine(definition_repo, instance_repo, registry, org, sink, clock) -> ApprovalEngine:
    """ApprovalEngine over the in-memory fakes (self-approval off, one org level)."""
    return ApprovalEngine(
        instance_repo=instance_repo,
        selector=FlowSelector(definition_repo),
        sequencer=StepSequencer(ApproverResolver(org), default_organization_levels=1),
        delegation_registry=registry,
        event_sink=sink,
        clock=clock,
    )


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    """Async HTTP client against a fresh app with no overrides (ASGI)."""
    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def api_client(engine, registry, flow_service) -> AsyncIterator[AsyncClient]:
    """HTTP client whose approval dependencies are backed by the in-memory fakes."""
    app = create_app()
    app.dependency_overrides[get_approval_engine] = lambda: engine
    app.dependency_overrides[get_approval_engine_for_read] = lambda: engine
    app.dependency_overrides[get_delegation_registry] = lambda: registry
    app.dependency_overrides[get_delegation_registry_for_write] = lambda: registry
    app.dependency_overrides[get_flow_definition_service] = lambda: flow_service
    app.dependency_overrides[get_flow_definition_service_for_write] = lambda: flow_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session() -> AsyncIterator[AsyncSession]:
    """Database session for repository/integration tests. Rolls back after test.

    Requires DATABASE_URL and tables from scripts.init_db. Skips when
    Postgres is not configured.
    """
    database._ensure_engine()
    if database.AsyncSessionLocal is None:
        pytest.skip(
            "Postgres not configured: set DATABASE_URL, then run: uv run python -m scripts.init_db"
        )
    async with database.AsyncSessionLocal() as session:
        yield session
        await session.rollback()
