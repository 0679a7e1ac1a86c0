"""ApprovalEngine end to end over the in-memory fakes."""

from datetime import timedelta

import pytest

from hrflow.application.dtos.approval import DecisionCommand
from hrflow.domain.entities import OrgHierarchyApprover, RoleApprover
from hrflow.domain.enums import (
    ApprovalEventType,
    Decision,
    ExecutionMode,
    FlowInstanceStatus,
    FlowType,
    StepInstanceStatus,
)
from hrflow.domain.exceptions import (
    DuplicateSubmissionError,
    InstanceVersionConflictError,
    NoApplicableFlowError,
    ResourceNotFoundException,
    StaleStateError,
    UnauthorizedApproverError,
)
from tests.factories import TENANT, condition, document, flow_data, step, users
from tests.fakes import RecordingEventSink


def _approve(instance_id: str, who: str, **kwargs) -> DecisionCommand:
    return DecisionCommand(instance_id=instance_id, approver_id=who, decision=Decision.APPROVE, **kwargs)


def _reject(instance_id: str, who: str, **kwargs) -> DecisionCommand:
    return DecisionCommand(instance_id=instance_id, approver_id=who, decision=Decision.REJECT, **kwargs)


@pytest.fixture
async def leave_flows(definition_repo):
    """Default: manager only. Long leave (> 5 days): manager then HR (any one)."""
    default = await definition_repo.create_definition(
        TENANT,
        flow_data(
            "Standard leave",
            [step(1, [OrgHierarchyApprover()], timeout_hours=48)],
            is_default=True,
        ),
    )
    long_leave = await definition_repo.create_definition(
        TENANT,
        flow_data(
            "Long leave",
            [
                step(1, [OrgHierarchyApprover()], timeout_hours=48),
                step(
                    2,
                    [RoleApprover(role="hr_manager")],
                    mode=ExecutionMode.PARALLEL,
                    timeout_hours=72,
                ),
            ],
            conditions=[condition("days", "gt", 5)],
            priority=10,
        ),
    )
    return default, long_leave


async def test_long_leave_goes_through_manager_then_hr(engine, sink, leave_flows) -> None:
    _, long_leave = leave_flows
    inst = await engine.submit(document(days=7))
    assert inst.flow_definition_id == long_leave.id
    assert inst.definition_snapshot["name"] == "Long leave"
    assert [s.resolved_approver_ids for s in inst.steps] == [["lead"], ["hr1", "hr2"]]
    assert inst.version == 1

    inst = await engine.decide(TENANT, _approve(inst.id, "lead"))
    assert inst.current_step_index == 1
    assert inst.version == 2
    inst = await engine.decide(TENANT, _approve(inst.id, "hr2"))
    assert inst.status is FlowInstanceStatus.APPROVED
    assert sink.types() == [
        ApprovalEventType.STEP_ACTIVATED,
        ApprovalEventType.STEP_SATISFIED,
        ApprovalEventType.STEP_ACTIVATED,
        ApprovalEventType.STEP_SATISFIED,
        ApprovalEventType.INSTANCE_APPROVED,
    ]


async def test_short_leave_uses_default_flow(engine, leave_flows) -> None:
    default, _ = leave_flows
    inst = await engine.submit(document(days=2))
    assert inst.flow_definition_id == default.id
    assert len(inst.steps) == 1


async def test_submit_without_any_flow_fails(engine) -> None:
    with pytest.raises(NoApplicableFlowError):
        await engine.submit(document())


async def test_second_pending_submission_is_rejected(engine, leave_flows) -> None:
    first = await engine.submit(document(days=1))
    with pytest.raises(DuplicateSubmissionError) as exc_info:
        await engine.submit(document(days=1))
    assert exc_info.value.details["instance_id"] == first.id


async def test_resubmission_after_rejection_is_allowed(engine, leave_flows) -> None:
    first = await engine.submit(document(days=1))
    await engine.decide(TENANT, _reject(first.id, "lead"))
    second = await engine.submit(document(days=1))
    assert second.id != first.id
    history = await engine.list_for_document(TENANT, second.document_type, "doc-1")
    assert {i.id for i in history} == {first.id, second.id}


async def test_list_for_requester_filters_by_status(engine, leave_flows) -> None:
    rejected = await engine.submit(document("doc-1", days=1))
    await engine.decide(TENANT, _reject(rejected.id, "lead"))
    pending = await engine.submit(document("doc-2", days=2))
    await engine.submit(document("doc-3", requester_id="bob", days=1))

    mine = await engine.list_for_requester(TENANT, "alice")
    assert [i.id for i in mine] == [pending.id, rejected.id]
    only_pending = await engine.list_for_requester(
        TENANT, "alice", status=FlowInstanceStatus.PENDING
    )
    assert [i.id for i in only_pending] == [pending.id]
    assert [i.id for i in await engine.list_for_requester(TENANT, "alice", skip=1)] == [rejected.id]
    assert await engine.list_for_requester("globex", "alice") == []


async def test_snapshot_is_frozen_against_definition_edits(engine, flow_service, definition_repo) -> None:
    flow = await flow_service.create(TENANT, flow_data(steps=[step(1, users("lead"))]))
    inst = await engine.submit(document())
    await flow_service.replace(TENANT, flow.id, flow_data(steps=[step(1, users("ceo"))]))
    inst = await engine.decide(TENANT, _approve(inst.id, "lead"))
    assert inst.status is FlowInstanceStatus.APPROVED
    assert inst.definition_snapshot["steps"][0]["approvers"][0]["user_id"] == "lead"


async def test_expected_version_mismatch_is_stale(engine, leave_flows) -> None:
    inst = await engine.submit(document(days=1))
    with pytest.raises(StaleStateError) as exc_info:
        await engine.decide(TENANT, _approve(inst.id, "lead", expected_version=5))
    assert exc_info.value.error_code == "STALE_STATE"
    ok = await engine.decide(TENANT, _approve(inst.id, "lead", expected_version=1))
    assert ok.status is FlowInstanceStatus.APPROVED


async def test_below_quorum_approval_is_persisted(engine, definition_repo, instance_repo) -> None:
    await definition_repo.create_definition(
        TENANT,
        flow_data(steps=[step(1, users("hr1", "hr2"), mode=ExecutionMode.PARALLEL, required=2)]),
    )
    inst = await engine.submit(document())
    await engine.decide(TENANT, _approve(inst.id, "hr1"))
    stored = await instance_repo.get_by_id(TENANT, inst.id)
    assert "hr1" in stored.steps[0].decisions
    assert stored.version == 2


async def test_version_conflict_is_retried_against_fresh_state(
    engine, definition_repo, instance_repo, sink
) -> None:
    """hr2's decision lands between hr1's load and save; hr1 reapplies on the new state."""
    await definition_repo.create_definition(
        TENANT,
        flow_data(steps=[step(1, users("hr1", "hr2"), mode=ExecutionMode.PARALLEL, required=2)]),
    )
    inst = await engine.submit(document())

    async def competing_writer() -> None:
        await engine.decide(TENANT, _approve(inst.id, "hr2"))

    instance_repo.before_save = competing_writer
    result = await engine.decide(TENANT, _approve(inst.id, "hr1"))
    assert result.status is FlowInstanceStatus.APPROVED
    assert set(result.steps[0].decisions) == {"hr1", "hr2"}
    assert result.version == 3
    assert sink.types().count(ApprovalEventType.INSTANCE_APPROVED) == 1


async def test_conflict_gives_up_after_retry_attempts(engine, leave_flows, instance_repo) -> None:
    inst = await engine.submit(document(days=1))

    async def always_conflict(self_instance, expected_version):
        raise InstanceVersionConflictError(self_instance.id, expected_version)

    instance_repo.save = always_conflict
    with pytest.raises(InstanceVersionConflictError):
        await engine.decide(TENANT, _approve(inst.id, "lead"))


async def test_delegate_approves_and_appears_in_pending(engine, registry, leave_flows, clock) -> None:
    await registry.set_delegation(
        TENANT, "lead", "bob", clock.now(), clock.now() + timedelta(days=3)
    )
    inst = await engine.submit(document(requester_id="alice", days=1))
    pending = await engine.pending_for(TENANT, "bob")
    assert [p.id for p in pending] == [inst.id]
    assert inst.steps[0].delegations == {"lead": "bob"}

    done = await engine.decide(TENANT, _approve(inst.id, "bob"))
    record = done.steps[0].decisions["lead"]
    assert record.decided_by == "bob"
    assert record.delegated_from == "lead"
    assert done.status is FlowInstanceStatus.APPROVED


async def test_revoked_delegation_no_longer_authorizes(engine, registry, leave_flows, clock) -> None:
    delegation = await registry.set_delegation(
        TENANT, "lead", "bob", clock.now(), clock.now() + timedelta(days=3)
    )
    inst = await engine.submit(document(days=1))
    await registry.revoke(TENANT, delegation.id)
    with pytest.raises(UnauthorizedApproverError):
        await engine.decide(TENANT, _approve(inst.id, "bob"))
    assert await engine.pending_for(TENANT, "bob") == []


async def test_pending_lists_only_current_turn(engine, definition_repo) -> None:
    await definition_repo.create_definition(
        TENANT, flow_data(steps=[step(1, users("lead", "ceo"), required=2)])
    )
    inst = await engine.submit(document())
    assert [p.id for p in await engine.pending_for(TENANT, "lead")] == [inst.id]
    assert await engine.pending_for(TENANT, "ceo") == []


async def test_sweep_escalates_overdue_steps_once(engine, leave_flows, clock, sink) -> None:
    inst = await engine.submit(document(days=1))
    assert await engine.sweep_timeouts(as_of=clock.now() + timedelta(hours=47)) == []
    assert await engine.sweep_timeouts(as_of=clock.now() + timedelta(hours=48)) == []
    clock.advance(hours=49)
    swept = await engine.sweep_timeouts(tenant_id=TENANT)
    assert [s.id for s in swept] == [inst.id]
    assert swept[0].status is FlowInstanceStatus.REJECTED
    assert swept[0].status_reason == "step_timeout"
    assert await engine.sweep_timeouts() == []
    assert sink.types()[-2:] == [
        ApprovalEventType.STEP_TIMED_OUT,
        ApprovalEventType.INSTANCE_REJECTED,
    ]


async def test_cancel_is_idempotent(engine, leave_flows) -> None:
    inst = await engine.submit(document(days=1))
    cancelled = await engine.cancel(TENANT, inst.id, actor_id="alice", reason="withdrawn")
    assert cancelled.status is FlowInstanceStatus.CANCELLED
    again = await engine.cancel(TENANT, inst.id)
    assert again.version == cancelled.version
    assert all(s.status is StepInstanceStatus.SKIPPED for s in again.steps)


async def test_bulk_decisions_report_each_item(engine, leave_flows) -> None:
    a = await engine.submit(document("doc-a", days=1))
    b = await engine.submit(document("doc-b", requester_id="bob", days=1))
    results = await engine.decide_many(
        TENANT,
        [
            _approve(a.id, "lead"),
            _approve(b.id, "ceo"),
            _approve("missing", "lead"),
        ],
    )
    assert [r.ok for r in results] == [True, False, False]
    assert results[0].instance.status is FlowInstanceStatus.APPROVED
    assert results[1].error_code == "UNAUTHORIZED_APPROVER"
    assert results[2].error_code == "RESOURCE_NOT_FOUND"


async def test_sink_failure_does_not_undo_transition(
    definition_repo, instance_repo, registry, org, clock, leave_flows
) -> None:
    from hrflow.application.services.approver_resolver import ApproverResolver
    from hrflow.application.services.flow_selector import FlowSelector
    from hrflow.application.services.step_sequencer import StepSequencer
    from hrflow.application.use_cases.approvals import ApprovalEngine

    broken = ApprovalEngine(
        instance_repo=instance_repo,
        selector=FlowSelector(definition_repo),
        sequencer=StepSequencer(ApproverResolver(org)),
        delegation_registry=registry,
        event_sink=RecordingEventSink(fail=True),
        clock=clock,
    )
    inst = await broken.submit(document(days=1))
    done = await broken.decide(TENANT, _approve(inst.id, "lead"))
    assert done.status is FlowInstanceStatus.APPROVED


async def test_organization_flow_without_steps(engine, definition_repo) -> None:
    await definition_repo.create_definition(
        TENANT, flow_data(flow_type=FlowType.ORGANIZATION, steps=[], organization_levels=2)
    )
    inst = await engine.submit(document())
    assert inst.steps[0].resolved_approver_ids == ["ceo"]


async def test_unknown_instance_is_not_found(engine) -> None:
    with pytest.raises(ResourceNotFoundException):
        await engine.get_instance(TENANT, "nope")
