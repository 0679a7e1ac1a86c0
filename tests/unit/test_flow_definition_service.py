"""FlowDefinitionService: validation, default promotion and deletion rules."""

import pytest

from hrflow.domain.entities import RoleApprover
from hrflow.domain.enums import DocumentType, FlowType
from hrflow.domain.exceptions import (
    DefaultFlowDeletionError,
    ResourceNotFoundException,
    UnsatisfiableStepError,
    ValidationException,
)
from tests.factories import TENANT, flow_data, step, users


async def test_create_and_get(flow_service) -> None:
    created = await flow_service.create(TENANT, flow_data("  Leave  "))
    assert created.name == "Leave"
    fetched = await flow_service.get(TENANT, created.id)
    assert fetched.id == created.id
    with pytest.raises(ResourceNotFoundException):
        await flow_service.get("other-tenant", created.id)


async def test_only_one_default_per_document_type(flow_service) -> None:
    first = await flow_service.create(TENANT, flow_data("A", is_default=True))
    second = await flow_service.create(TENANT, flow_data("B", is_default=True))
    expense = await flow_service.create(
        TENANT, flow_data("E", document_type=DocumentType.EXPENSE_CLAIM, is_default=True)
    )
    assert (await flow_service.get(TENANT, first.id)).is_default is False
    assert (await flow_service.get(TENANT, second.id)).is_default is True
    assert (await flow_service.get(TENANT, expense.id)).is_default is True

    promoted = await flow_service.set_default(TENANT, first.id)
    assert promoted.is_default is True
    assert (await flow_service.get(TENANT, second.id)).is_default is False


async def test_default_cannot_be_deleted(flow_service) -> None:
    default = await flow_service.create(TENANT, flow_data("A", is_default=True))
    other = await flow_service.create(TENANT, flow_data("B"))
    with pytest.raises(DefaultFlowDeletionError):
        await flow_service.delete(TENANT, default.id)
    await flow_service.delete(TENANT, other.id)
    with pytest.raises(ResourceNotFoundException):
        await flow_service.get(TENANT, other.id)


async def test_user_only_step_below_quorum_is_unsatisfiable(flow_service) -> None:
    with pytest.raises(UnsatisfiableStepError) as exc_info:
        await flow_service.create(
            TENANT, flow_data(steps=[step(1, users("lead", "lead"), required=2)])
        )
    assert exc_info.value.details == {"step_number": 1, "available": 1, "required": 2}


async def test_role_step_is_checked_at_submission_not_definition(flow_service) -> None:
    created = await flow_service.create(
        TENANT, flow_data(steps=[step(1, [RoleApprover(role="hr_manager")], required=5)])
    )
    assert created.steps[0].required_approvals == 5


@pytest.mark.parametrize(
    ("data", "field"),
    [
        (flow_data(steps=[]), "steps"),
        (flow_data(steps=[step(1, users("a")), step(1, users("b"))]), "steps"),
        (flow_data(steps=[step(1, [])]), "steps[1].approvers"),
        (flow_data(steps=[step(1, users("a"), timeout_hours=0)]), "steps[1].timeout_hours"),
        (flow_data(" "), "name"),
        (flow_data(organization_levels=0), "organization_levels"),
    ],
)
async def test_invalid_definitions(flow_service, data, field) -> None:
    with pytest.raises(ValidationException) as exc_info:
        await flow_service.create(TENANT, data)
    assert exc_info.value.details.get("field") == field


async def test_organization_flow_may_omit_steps(flow_service) -> None:
    created = await flow_service.create(
        TENANT, flow_data(flow_type=FlowType.ORGANIZATION, steps=[])
    )
    assert created.use_organization_hierarchy is True


async def test_replace_and_list(flow_service) -> None:
    created = await flow_service.create(TENANT, flow_data("A"))
    replaced = await flow_service.replace(
        TENANT, created.id, flow_data("A2", steps=[step(1, users("ceo")), step(2, users("fin"))])
    )
    assert replaced.name == "A2"
    assert len(replaced.steps) == 2
    listed = await flow_service.list(TENANT, document_type=DocumentType.LEAVE_REQUEST)
    assert [f.id for f in listed] == [created.id]
    with pytest.raises(ResourceNotFoundException):
        await flow_service.replace(TENANT, "missing", flow_data())
