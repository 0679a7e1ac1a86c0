"""Approver resolver and step sequencer: expansion, hierarchy climb, exclusions."""

import pytest

from hrflow.application.services.approver_resolver import ApproverResolver
from hrflow.application.services.step_sequencer import StepSequencer
from hrflow.domain.entities import (
    FlowDefinition,
    OrgHierarchyApprover,
    PositionLevelApprover,
    RoleApprover,
    UserApprover,
)
from hrflow.domain.enums import DocumentType, ExecutionMode, FlowType, StepInstanceStatus
from tests.conftest import standard_org
from tests.factories import document, step, users
from tests.fakes import Member, StaticOrgDirectory


def _flow(steps, **kwargs) -> FlowDefinition:
    return FlowDefinition(
        id="f1",
        tenant_id="acme",
        name="f1",
        document_type=DocumentType.LEAVE_REQUEST,
        steps=steps,
        **kwargs,
    )


async def test_specs_expand_in_order_and_dedupe() -> None:
    resolver = ApproverResolver(standard_org())
    definition = step(
        1,
        [
            RoleApprover(role="hr_manager", order=2),
            UserApprover(user_id="hr2", order=1),
            PositionLevelApprover(level=1, order=3),
        ],
    )
    resolved = await resolver.resolve_step("acme", definition, "alice", 1)
    assert resolved.approver_ids == ["hr2", "hr1", "ceo"]
    assert resolved.truncated_hierarchy is False


@pytest.mark.parametrize(
    ("levels", "expected", "truncated"),
    [(1, ["lead"], False), (2, ["ceo"], False), (5, ["ceo"], True)],
)
async def test_org_hierarchy_climbs_exactly_n_levels(levels, expected, truncated) -> None:
    resolver = ApproverResolver(standard_org())
    ids, was_truncated = await resolver.resolve_spec(
        "acme", OrgHierarchyApprover(), "alice", levels
    )
    assert ids == expected
    assert was_truncated is truncated


async def test_org_hierarchy_for_top_of_tree_is_empty() -> None:
    resolver = ApproverResolver(standard_org())
    ids, truncated = await resolver.resolve_spec("acme", OrgHierarchyApprover(), "ceo", 1)
    assert ids == []
    assert truncated is True


async def test_inactive_users_are_not_resolved() -> None:
    org = standard_org()
    org.members["hr1"].active = False
    org.members["lead"].active = False
    resolver = ApproverResolver(org)
    assert await org.users_with_role("acme", "hr_manager") == ["hr2"]
    ids, _ = await resolver.resolve_spec("acme", OrgHierarchyApprover(), "alice", 1)
    assert ids == ["ceo"]


async def test_manager_cycle_stops_the_climb() -> None:
    org = StaticOrgDirectory({"a": Member(manager_id="b"), "b": Member(manager_id="a")})
    resolver = ApproverResolver(org)
    ids, truncated = await resolver.resolve_spec("acme", OrgHierarchyApprover(), "a", 3)
    assert ids == ["b"]
    assert truncated is True


async def test_max_depth_caps_requested_levels() -> None:
    resolver = ApproverResolver(standard_org(), max_hierarchy_depth=1)
    ids, truncated = await resolver.resolve_spec("acme", OrgHierarchyApprover(), "alice", 2)
    assert ids == ["lead"]
    assert truncated is False


async def test_sequencer_excludes_requester_and_marks_unsatisfiable() -> None:
    sequencer = StepSequencer(ApproverResolver(standard_org()))
    flow = _flow(
        [
            step(1, users("alice", "lead")),
            step(2, users("alice"), name="Self only"),
            step(3, [RoleApprover(role="hr_manager")], mode=ExecutionMode.PARALLEL, required=3),
        ]
    )
    steps = await sequencer.materialize(flow, document())
    assert steps[0].resolved_approver_ids == ["lead"]
    assert steps[0].status is StepInstanceStatus.WAITING
    assert steps[1].resolved_approver_ids == []
    assert steps[1].unsatisfiable is True
    assert steps[1].status is StepInstanceStatus.TIMED_OUT
    assert steps[2].unsatisfiable is True
    assert [s.step_index for s in steps] == [0, 1, 2]


async def test_sequencer_allows_self_approval_when_configured() -> None:
    sequencer = StepSequencer(ApproverResolver(standard_org()), allow_self_approval=True)
    steps = await sequencer.materialize(_flow([step(1, users("alice"))]), document())
    assert steps[0].resolved_approver_ids == ["alice"]
    assert steps[0].unsatisfiable is False


async def test_organization_flow_without_steps_gets_one_manager_step() -> None:
    sequencer = StepSequencer(ApproverResolver(standard_org()), default_organization_levels=2)
    flow = _flow([], flow_type=FlowType.ORGANIZATION)
    steps = await sequencer.materialize(flow, document())
    assert len(steps) == 1
    assert steps[0].resolved_approver_ids == ["ceo"]


async def test_flow_organization_levels_override_default() -> None:
    sequencer = StepSequencer(ApproverResolver(standard_org()), default_organization_levels=2)
    flow = _flow([step(1, [OrgHierarchyApprover()])], organization_levels=1)
    steps = await sequencer.materialize(flow, document())
    assert steps[0].resolved_approver_ids == ["lead"]


async def test_steps_follow_step_number_not_list_order() -> None:
    sequencer = StepSequencer(ApproverResolver(standard_org()))
    flow = _flow([step(20, users("ceo"), name="Last"), step(10, users("lead"), name="First")])
    steps = await sequencer.materialize(flow, document())
    assert [s.name for s in steps] == ["First", "Last"]
    assert [s.step_number for s in steps] == [10, 20]
