"""Approval state machine: every transition of a flow instance and its steps.

Pure and synchronous. Callers load the instance, prefetch the active
delegations for its approvers (approver id -> delegate id), call one
transition, then persist the instance and publish the returned events.

Instance: pending -> approved | rejected | cancelled.
Step: waiting -> active -> satisfied | rejected | skipped | timed_out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Mapping

from hrflow.domain.entities import (
    ApprovalEvent,
    DecisionRecord,
    FlowInstance,
    HistoryEntry,
    StepInstance,
)
from hrflow.domain.enums import (
    REASON_CANCELLED,
    REASON_REJECTED,
    REASON_STEP_TIMEOUT,
    REASON_UNSATISFIABLE_STEP,
    ApprovalEventType,
    Decision,
    ExecutionMode,
    FlowInstanceStatus,
    HistoryAction,
    StepInstanceStatus,
)
from hrflow.domain.exceptions import (
    OutOfOrderDecisionError,
    StaleStateError,
    UnauthorizedApproverError,
)
from hrflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


@dataclass
class DecisionOutcome:
    """Result of record_decision. applied is False for a no-op (nothing to persist)."""

    applied: bool
    events: list[ApprovalEvent] = field(default_factory=list)
    approver_id: str | None = None
    delegated_from: str | None = None


def _event(
    instance: FlowInstance,
    event_type: ApprovalEventType,
    now: datetime,
    step_index: int | None = None,
    recipients: list[str] | None = None,
    reason: str | None = None,
) -> ApprovalEvent:
    return ApprovalEvent(
        event_type=event_type,
        tenant_id=instance.tenant_id,
        instance_id=instance.id,
        document_type=instance.document_type.value,
        document_id=instance.document_id,
        at=now,
        step_index=step_index,
        recipients=tuple(dict.fromkeys(r for r in (recipients or []) if r)),
        reason=reason,
    )


def _with_delegates(step: StepInstance, approver_ids: list[str]) -> list[str]:
    recipients = list(approver_ids)
    if step.allow_delegate:
        recipients.extend(step.delegations[a] for a in approver_ids if a in step.delegations)
    return recipients


class ApprovalStateMachine:
    """Transitions for FlowInstance. Never performs I/O."""

    # ---- start ----

    def start(
        self,
        instance: FlowInstance,
        now: datetime,
        delegations: Mapping[str, str] | None = None,
    ) -> list[ApprovalEvent]:
        """Record submission, escalate unsatisfiable steps, activate the first step.

        An unsatisfiable step that allows skipping is skipped; otherwise the
        instance is rejected with reason unsatisfiable_step before any step
        activates. With no step left to activate the instance is approved.
        """
        delegations = delegations or {}
        instance.status = FlowInstanceStatus.PENDING
        instance.started_at = now
        instance.history.append(
            HistoryEntry(action=HistoryAction.SUBMITTED, at=now, actor_id=instance.requester_id)
        )
        events: list[ApprovalEvent] = []
        for step in instance.steps:
            if not step.unsatisfiable:
                continue
            step.completed_at = now
            step.status_reason = REASON_UNSATISFIABLE_STEP
            instance.history.append(
                HistoryEntry(
                    action=HistoryAction.ESCALATED,
                    at=now,
                    step_index=step.step_index,
                    reason=REASON_UNSATISFIABLE_STEP,
                )
            )
            if step.allow_skip:
                step.status = StepInstanceStatus.SKIPPED
                events.append(
                    _event(
                        instance,
                        ApprovalEventType.STEP_SKIPPED,
                        now,
                        step.step_index,
                        [instance.requester_id],
                        REASON_UNSATISFIABLE_STEP,
                    )
                )
                continue
            step.status = StepInstanceStatus.TIMED_OUT
            events.append(
                _event(
                    instance,
                    ApprovalEventType.STEP_TIMED_OUT,
                    now,
                    step.step_index,
                    [instance.requester_id],
                    REASON_UNSATISFIABLE_STEP,
                )
            )
            events.extend(
                self._reject_instance(instance, now, step.step_index, REASON_UNSATISFIABLE_STEP)
            )
            return events
        events.extend(self._advance(instance, now, 0, delegations))
        return events

    # ---- decisions ----

    def record_decision(
        self,
        instance: FlowInstance,
        actor_id: str,
        decision: Decision,
        now: datetime,
        delegations: Mapping[str, str] | None = None,
        comment: str | None = None,
        step_index: int | None = None,
    ) -> DecisionOutcome:
        """Apply one approve/reject from actor_id.

        Raises:
            OutOfOrderDecisionError: step not yet active, or not this approver's serial turn.
            UnauthorizedApproverError: actor is neither an approver nor an active delegate.
            StaleStateError: reject on a finished step, or a contradicting second decision.
        """
        delegations = delegations or {}
        decision = Decision(decision)

        if step_index is not None:
            if step_index < 0 or step_index >= len(instance.steps):
                raise OutOfOrderDecisionError(
                    instance.id, step_index, "Step does not exist in this instance"
                )
            target = instance.steps[step_index]
            if target.status is StepInstanceStatus.WAITING:
                raise OutOfOrderDecisionError(
                    instance.id, step_index, "Step is not active yet"
                )
            if target.status is not StepInstanceStatus.ACTIVE or instance.is_terminal:
                return self._late_decision(instance, target, actor_id, decision, delegations)
        else:
            target = instance.current_step
            if instance.is_terminal or target is None or target.status is not StepInstanceStatus.ACTIVE:
                finished = self._finished_step_for(instance, actor_id, delegations)
                if finished is None:
                    raise StaleStateError(instance.id, "Instance has no active step")
                return self._late_decision(instance, finished, actor_id, decision, delegations)
            if not self._is_eligible(target, actor_id, delegations):
                finished = self._finished_step_for(instance, actor_id, delegations)
                if finished is not None:
                    return self._late_decision(instance, finished, actor_id, decision, delegations)

        nominal = self._attribute(instance, target, actor_id, delegations)
        existing = target.decisions.get(nominal)
        if existing is not None:
            if existing.decision is decision:
                logger.debug(
                    "Ignoring duplicate %s by %s on instance %s step %d",
                    decision.value,
                    actor_id,
                    instance.id,
                    target.step_index,
                )
                return DecisionOutcome(applied=False, approver_id=nominal)
            raise StaleStateError(
                instance.id,
                "Approver has already decided this step",
                step_index=target.step_index,
                approver_id=nominal,
            )

        if target.execution_mode is ExecutionMode.SERIAL:
            expected = target.next_serial_approver()
            if nominal != expected:
                raise OutOfOrderDecisionError(
                    instance.id,
                    target.step_index,
                    "Serial step is waiting on an earlier approver",
                    approver_id=nominal,
                    expected_approver_id=expected,
                )

        delegated_from = nominal if nominal != actor_id else None
        target.decisions[nominal] = DecisionRecord(
            decision=decision,
            decided_by=actor_id,
            at=now,
            delegated_from=delegated_from,
            comment=comment,
        )
        instance.history.append(
            HistoryEntry(
                action=HistoryAction.APPROVED if decision is Decision.APPROVE else HistoryAction.REJECTED,
                at=now,
                actor_id=actor_id,
                step_index=target.step_index,
                comment=comment,
                delegated_from=delegated_from,
            )
        )

        events: list[ApprovalEvent] = []
        if decision is Decision.REJECT:
            target.status = StepInstanceStatus.REJECTED
            target.status_reason = REASON_REJECTED
            target.completed_at = now
            events.append(
                _event(
                    instance,
                    ApprovalEventType.STEP_REJECTED,
                    now,
                    target.step_index,
                    [instance.requester_id],
                    REASON_REJECTED,
                )
            )
            events.extend(self._reject_instance(instance, now, target.step_index, REASON_REJECTED))
        elif target.is_quorum_met:
            target.status = StepInstanceStatus.SATISFIED
            target.completed_at = now
            events.append(
                _event(
                    instance,
                    ApprovalEventType.STEP_SATISFIED,
                    now,
                    target.step_index,
                    [instance.requester_id],
                )
            )
            events.extend(self._advance(instance, now, target.step_index + 1, delegations))
        return DecisionOutcome(
            applied=True, events=events, approver_id=nominal, delegated_from=delegated_from
        )

    def _is_eligible(
        self, step: StepInstance, actor_id: str, delegations: Mapping[str, str]
    ) -> bool:
        if actor_id in step.resolved_approver_ids:
            return True
        if not step.allow_delegate:
            return False
        return any(delegations.get(a) == actor_id for a in step.resolved_approver_ids)

    def _finished_step_for(
        self, instance: FlowInstance, actor_id: str, delegations: Mapping[str, str]
    ) -> StepInstance | None:
        """Most recent finished step where actor could have decided."""
        for step in reversed(instance.steps):
            if step.status.is_terminal and self._is_eligible(step, actor_id, delegations):
                return step
            if step.status.is_terminal and actor_id in {
                d.decided_by for d in step.decisions.values()
            }:
                return step
        return None

    def _late_decision(
        self,
        instance: FlowInstance,
        step: StepInstance,
        actor_id: str,
        decision: Decision,
        delegations: Mapping[str, str],
    ) -> DecisionOutcome:
        """Approvals on a satisfied step are no-ops; anything else is stale."""
        deciders = {record.decided_by for record in step.decisions.values()}
        if actor_id not in deciders and not self._is_eligible(step, actor_id, delegations):
            raise UnauthorizedApproverError(instance.id, step.step_index, actor_id)
        if step.status is StepInstanceStatus.SATISFIED and decision is Decision.APPROVE:
            logger.debug(
                "Ignoring approval by %s on satisfied step %d of instance %s",
                actor_id,
                step.step_index,
                instance.id,
            )
            return DecisionOutcome(applied=False)
        prior = [
            approver_id
            for approver_id, record in step.decisions.items()
            if record.decided_by == actor_id and record.decision is decision
        ]
        if prior:
            return DecisionOutcome(applied=False, approver_id=prior[0])
        raise StaleStateError(
            instance.id,
            f"Step {step.step_index} is already {step.status.value}",
            step_index=step.step_index,
            step_status=step.status.value,
        )

    def _attribute(
        self,
        instance: FlowInstance,
        step: StepInstance,
        actor_id: str,
        delegations: Mapping[str, str],
    ) -> str:
        """Return the nominal approver the actor decides for.

        In a serial step whose current turn belongs to someone who delegated to
        the actor, the actor decides for that approver, even when the actor is
        a later approver of the same step. Otherwise a direct approver decides
        for themselves, and a delegate decides for the delegator whose turn it
        is (serial) or the first undecided delegator (parallel). Delegations
        never chain.
        """
        if step.allow_delegate and step.execution_mode is ExecutionMode.SERIAL:
            turn = step.next_serial_approver()
            if turn is not None and turn != actor_id and delegations.get(turn) == actor_id:
                return turn
        if actor_id in step.resolved_approver_ids:
            return actor_id
        if step.allow_delegate:
            delegators = [a for a in step.resolved_approver_ids if delegations.get(a) == actor_id]
            if delegators:
                undecided = [a for a in delegators if a not in step.decisions]
                if step.execution_mode is ExecutionMode.SERIAL:
                    nxt = step.next_serial_approver()
                    if nxt in undecided:
                        return nxt
                if undecided:
                    return undecided[0]
                return delegators[0]
        raise UnauthorizedApproverError(instance.id, step.step_index, actor_id)

    # ---- timeouts ----

    def apply_timeout(
        self,
        instance: FlowInstance,
        now: datetime,
        delegations: Mapping[str, str] | None = None,
    ) -> list[ApprovalEvent]:
        """Escalate the active step if its deadline has passed; [] when nothing is due.

        allow_skip: the step ends skipped and the instance advances.
        Otherwise the instance is rejected with reason step_timeout.
        """
        step = instance.current_step
        if (
            instance.is_terminal
            or step is None
            or step.status is not StepInstanceStatus.ACTIVE
            or step.deadline_at is None
            or step.deadline_at >= now
        ):
            return []
        awaiting = step.awaiting_approver_ids()
        step.status = StepInstanceStatus.TIMED_OUT
        step.status_reason = REASON_STEP_TIMEOUT
        step.completed_at = now
        instance.history.append(
            HistoryEntry(
                action=HistoryAction.TIMED_OUT,
                at=now,
                step_index=step.step_index,
                reason=REASON_STEP_TIMEOUT,
            )
        )
        events = [
            _event(
                instance,
                ApprovalEventType.STEP_TIMED_OUT,
                now,
                step.step_index,
                [*_with_delegates(step, awaiting), instance.requester_id],
                REASON_STEP_TIMEOUT,
            )
        ]
        if step.allow_skip:
            step.status = StepInstanceStatus.SKIPPED
            instance.history.append(
                HistoryEntry(
                    action=HistoryAction.SKIPPED,
                    at=now,
                    step_index=step.step_index,
                    reason=REASON_STEP_TIMEOUT,
                )
            )
            events.append(
                _event(
                    instance,
                    ApprovalEventType.STEP_SKIPPED,
                    now,
                    step.step_index,
                    [instance.requester_id],
                    REASON_STEP_TIMEOUT,
                )
            )
            events.extend(self._advance(instance, now, step.step_index + 1, delegations or {}))
        else:
            events.extend(
                self._reject_instance(instance, now, step.step_index, REASON_STEP_TIMEOUT)
            )
        return events

    # ---- cancellation ----

    def cancel(
        self,
        instance: FlowInstance,
        now: datetime,
        actor_id: str | None = None,
        reason: str | None = None,
    ) -> list[ApprovalEvent]:
        """Skip all open steps and cancel the instance. No-op ([]) when already terminal."""
        if instance.is_terminal:
            return []
        awaiting = instance.awaiting_approver_ids()
        events: list[ApprovalEvent] = []
        for step in instance.steps:
            if step.status in (StepInstanceStatus.WAITING, StepInstanceStatus.ACTIVE):
                step.status = StepInstanceStatus.SKIPPED
                step.status_reason = REASON_CANCELLED
                step.completed_at = now
                events.append(
                    _event(
                        instance,
                        ApprovalEventType.STEP_SKIPPED,
                        now,
                        step.step_index,
                        reason=REASON_CANCELLED,
                    )
                )
        instance.status = FlowInstanceStatus.CANCELLED
        instance.status_reason = reason or REASON_CANCELLED
        instance.completed_at = now
        instance.history.append(
            HistoryEntry(
                action=HistoryAction.CANCELLED,
                at=now,
                actor_id=actor_id,
                step_index=instance.current_step_index,
                reason=instance.status_reason,
            )
        )
        events.append(
            _event(
                instance,
                ApprovalEventType.INSTANCE_CANCELLED,
                now,
                instance.current_step_index,
                [*awaiting, instance.requester_id],
                instance.status_reason,
            )
        )
        logger.info("Instance %s cancelled (%s)", instance.id, instance.status_reason)
        return events

    # ---- internals ----

    def _advance(
        self,
        instance: FlowInstance,
        now: datetime,
        from_index: int,
        delegations: Mapping[str, str],
    ) -> list[ApprovalEvent]:
        """Activate the next waiting step at or after from_index, or approve the instance."""
        for step in instance.steps[from_index:]:
            if step.status is not StepInstanceStatus.WAITING:
                continue
            step.status = StepInstanceStatus.ACTIVE
            step.activated_at = now
            step.deadline_at = (
                now + timedelta(hours=step.timeout_hours) if step.timeout_hours else None
            )
            if step.allow_delegate:
                step.delegations = {
                    a: delegations[a] for a in step.resolved_approver_ids if a in delegations
                }
            instance.current_step_index = step.step_index
            return [
                _event(
                    instance,
                    ApprovalEventType.STEP_ACTIVATED,
                    now,
                    step.step_index,
                    _with_delegates(step, step.awaiting_approver_ids()),
                )
            ]
        instance.status = FlowInstanceStatus.APPROVED
        instance.status_reason = None
        instance.completed_at = now
        instance.current_step_index = None
        logger.info("Instance %s approved", instance.id)
        return [
            _event(
                instance,
                ApprovalEventType.INSTANCE_APPROVED,
                now,
                recipients=[instance.requester_id],
            )
        ]

    def _reject_instance(
        self, instance: FlowInstance, now: datetime, step_index: int, reason: str
    ) -> list[ApprovalEvent]:
        instance.status = FlowInstanceStatus.REJECTED
        instance.status_reason = reason
        instance.completed_at = now
        instance.current_step_index = step_index
        logger.info("Instance %s rejected at step %d (%s)", instance.id, step_index, reason)
        return [
            _event(
                instance,
                ApprovalEventType.INSTANCE_REJECTED,
                now,
                step_index,
                [instance.requester_id],
                reason,
            )
        ]
