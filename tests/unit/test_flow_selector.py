"""Flow selection: conditions, priority, default tie-break and fallback."""

from datetime import timedelta

import pytest

from hrflow.application.services.flow_selector import FlowSelector, choose, selection_key
from hrflow.domain.entities import FlowDefinition
from hrflow.domain.enums import DocumentType
from hrflow.domain.exceptions import NoApplicableFlowError
from tests.factories import condition, flow_data
from tests.fakes import T0


def _flow(flow_id: str, **kwargs) -> FlowDefinition:
    return FlowDefinition(
        id=flow_id,
        tenant_id="acme",
        name=flow_id,
        document_type=DocumentType.LEAVE_REQUEST,
        created_at=kwargs.pop("created_at", T0),
        **kwargs,
    )


def test_highest_priority_eligible_wins() -> None:
    low = _flow("low", priority=1)
    high = _flow("high", priority=5, conditions=[condition("days", "gt", 5)])
    assert choose([low, high], {"days": 6}).id == "high"
    assert choose([low, high], {"days": 2}).id == "low"


def test_default_wins_priority_tie() -> None:
    a = _flow("a", priority=3)
    b = _flow("b", priority=3, is_default=True)
    assert choose([a, b], {}).id == "b"


def test_newest_then_id_break_remaining_ties() -> None:
    older = _flow("x", created_at=T0)
    newer = _flow("y", created_at=T0 + timedelta(days=1))
    assert choose([older, newer], {}).id == "y"
    same_a = _flow("a")
    same_b = _flow("b")
    assert choose([same_b, same_a], {}).id == "a"
    assert selection_key(same_a) < selection_key(same_b)


def test_falls_back_to_default_when_nothing_matches() -> None:
    fallback = _flow("fallback", is_default=True, conditions=[condition("days", "gt", 100)])
    strict = _flow("strict", priority=9, conditions=[condition("dept", "eq", "HR")])
    assert choose([fallback, strict], {"days": 1}).id == "fallback"


def test_inactive_definitions_are_ignored() -> None:
    inactive_default = _flow("off", is_default=True, is_active=False)
    assert choose([inactive_default], {}) is None


async def test_select_raises_when_nothing_applies(definition_repo) -> None:
    await definition_repo.create_definition(
        "acme", flow_data(conditions=[condition("days", "gt", 10)])
    )
    selector = FlowSelector(definition_repo)
    with pytest.raises(NoApplicableFlowError) as exc_info:
        await selector.select("acme", DocumentType.LEAVE_REQUEST, {"days": 1})
    assert exc_info.value.details["document_type"] == "leave_request"


async def test_select_is_tenant_and_type_scoped(definition_repo) -> None:
    await definition_repo.create_definition("other", flow_data(is_default=True))
    await definition_repo.create_definition(
        "acme", flow_data(document_type=DocumentType.EXPENSE_CLAIM, is_default=True)
    )
    selector = FlowSelector(definition_repo)
    with pytest.raises(NoApplicableFlowError):
        await selector.select("acme", DocumentType.LEAVE_REQUEST, {})
