"""Approval engine facade: submit, decide, cancel, sweep timeouts, query.

Each mutating operation loads the instance, applies one state machine
transition, saves it with an optimistic version check and only then
publishes the resulting events. Version conflicts are retried by reloading
and re-applying, up to retry_attempts times.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from hrflow.application.dtos.approval import (
    BulkDecisionResult,
    DecisionCommand,
    SubmittedDocument,
)
from hrflow.application.interfaces.repositories import IFlowInstanceRepository
from hrflow.application.interfaces.services import IApprovalEventSink, IClock
from hrflow.application.services.approval_state_machine import ApprovalStateMachine
from hrflow.application.services.delegation_registry import DelegationRegistry
from hrflow.application.services.flow_selector import FlowSelector
from hrflow.application.services.step_sequencer import StepSequencer
from hrflow.domain.entities import ApprovalEvent, FlowDefinition, FlowInstance, StepInstance
from hrflow.domain.enums import DocumentType, FlowInstanceStatus
from hrflow.domain.exceptions import (
    DuplicateSubmissionError,
    HRFlowException,
    InstanceVersionConflictError,
    ResourceNotFoundException,
    StaleStateError,
)
from hrflow.shared.telemetry.logging import get_logger
from hrflow.shared.utils.datetime import ensure_utc
from hrflow.shared.utils.generators import generate_cuid

logger = get_logger(__name__)

# A transition mutates the instance in place and returns (changed, events to publish).
_Transition = Callable[
    [FlowInstance, datetime, dict[str, str]], tuple[bool, list[ApprovalEvent]]
]


class ApprovalEngine:
    """Use case facade over the state machine, persistence and event sink."""

    def __init__(
        self,
        instance_repo: IFlowInstanceRepository,
        selector: FlowSelector,
        sequencer: StepSequencer,
        delegation_registry: DelegationRegistry,
        event_sink: IApprovalEventSink,
        clock: IClock,
        state_machine: ApprovalStateMachine | None = None,
        *,
        retry_attempts: int = 3,
        sweep_batch_size: int = 500,
    ) -> None:
        self.instance_repo = instance_repo
        self.selector = selector
        self.sequencer = sequencer
        self.delegation_registry = delegation_registry
        self.event_sink = event_sink
        self.clock = clock
        self.state_machine = state_machine or ApprovalStateMachine()
        self.retry_attempts = max(1, retry_attempts)
        self.sweep_batch_size = sweep_batch_size

    # ---- submission ----

    async def preview(
        self, document: SubmittedDocument
    ) -> tuple[FlowDefinition, list[StepInstance]]:
        """Select a flow and materialize its steps without persisting anything."""
        flow = await self.selector.select(
            document.tenant_id, document.document_type, document.attributes
        )
        steps = await self.sequencer.materialize(flow, document)
        return flow, steps

    async def submit(self, document: SubmittedDocument) -> FlowInstance:
        """Start approval for a document.

        Raises:
            DuplicateSubmissionError: the document already has a pending instance.
            NoApplicableFlowError: no definition applies and no default exists.
        """
        pending = await self.instance_repo.get_pending_for_document(
            document.tenant_id, document.document_type, document.document_id
        )
        if pending is not None:
            raise DuplicateSubmissionError(
                document.document_type.value, document.document_id, pending.id
            )
        flow, steps = await self.preview(document)
        now = self.clock.now()
        instance = FlowInstance(
            id=generate_cuid(),
            tenant_id=document.tenant_id,
            flow_definition_id=flow.id,
            definition_snapshot=flow.to_snapshot(),
            document_type=document.document_type,
            document_id=document.document_id,
            requester_id=document.requester_id,
            attributes=dict(document.attributes),
            steps=steps,
        )
        delegations = await self._delegations_for(instance, now)
        events = self.state_machine.start(instance, now, delegations)
        saved = await self.instance_repo.add(instance)
        logger.info(
            "Submitted %s %s as instance %s via flow %s (%d steps, status=%s)",
            document.document_type.value,
            document.document_id,
            saved.id,
            flow.id,
            len(saved.steps),
            saved.status.value,
        )
        await self._publish(events)
        return saved

    # ---- decisions ----

    async def decide(self, tenant_id: str, command: DecisionCommand) -> FlowInstance:
        """Record one approve/reject; returns the (possibly unchanged) instance.

        Raises:
            StaleStateError: expected_version does not match, or the decision
                conflicts with state that has moved on.
            OutOfOrderDecisionError, UnauthorizedApproverError: see the state machine.
        """

        def transition(
            instance: FlowInstance, now: datetime, delegations: dict[str, str]
        ) -> tuple[bool, list[ApprovalEvent]]:
            if (
                command.expected_version is not None
                and instance.version != command.expected_version
            ):
                raise StaleStateError(
                    instance.id,
                    "Instance version does not match expected_version",
                    expected_version=command.expected_version,
                    actual_version=instance.version,
                )
            outcome = self.state_machine.record_decision(
                instance,
                command.approver_id,
                command.decision,
                now,
                delegations,
                comment=command.comment,
                step_index=command.step_index,
            )
            return outcome.applied, outcome.events

        instance, _ = await self._mutate(tenant_id, command.instance_id, transition)
        return instance

    async def decide_many(
        self, tenant_id: str, commands: list[DecisionCommand]
    ) -> list[BulkDecisionResult]:
        """Apply decisions independently; one failure does not stop the rest."""
        results: list[BulkDecisionResult] = []
        for command in commands:
            try:
                instance = await self.decide(tenant_id, command)
            except HRFlowException as exc:
                logger.info(
                    "Bulk decision on %s by %s failed: %s",
                    command.instance_id,
                    command.approver_id,
                    exc.error_code,
                )
                results.append(
                    BulkDecisionResult(
                        instance_id=command.instance_id,
                        ok=False,
                        error_code=exc.error_code,
                        message=exc.message,
                    )
                )
                continue
            results.append(
                BulkDecisionResult(instance_id=command.instance_id, ok=True, instance=instance)
            )
        return results

    # ---- cancellation and timeouts ----

    async def cancel(
        self,
        tenant_id: str,
        instance_id: str,
        actor_id: str | None = None,
        reason: str | None = None,
    ) -> FlowInstance:
        """Cancel a pending instance; cancelling a finished one is a no-op."""

        def transition(
            instance: FlowInstance, now: datetime, delegations: dict[str, str]
        ) -> tuple[bool, list[ApprovalEvent]]:
            events = self.state_machine.cancel(instance, now, actor_id=actor_id, reason=reason)
            return bool(events), events

        instance, _ = await self._mutate(tenant_id, instance_id, transition)
        return instance

    async def sweep_timeouts(
        self, as_of: datetime | None = None, tenant_id: str | None = None
    ) -> list[FlowInstance]:
        """Escalate every active step whose deadline is strictly before as_of.

        Returns the instances this sweep changed. Each deadline is handled
        at most once: a concurrent sweep loses the version check, reloads
        and finds nothing left to do.
        """
        cutoff = ensure_utc(as_of) if as_of else self.clock.now()
        due = await self.instance_repo.list_due_for_timeout(
            cutoff, tenant_id=tenant_id, limit=self.sweep_batch_size
        )
        mutated: list[FlowInstance] = []

        def transition(
            instance: FlowInstance, now: datetime, delegations: dict[str, str]
        ) -> tuple[bool, list[ApprovalEvent]]:
            events = self.state_machine.apply_timeout(instance, cutoff, delegations)
            return bool(events), events

        for candidate in due:
            instance, changed = await self._mutate(
                candidate.tenant_id, candidate.id, transition
            )
            if changed:
                mutated.append(instance)
        logger.info(
            "Timeout sweep as of %s: %d due, %d escalated",
            cutoff.isoformat(),
            len(due),
            len(mutated),
        )
        return mutated

    # ---- queries ----

    async def get_instance(self, tenant_id: str, instance_id: str) -> FlowInstance:
        instance = await self.instance_repo.get_by_id(tenant_id, instance_id)
        if instance is None:
            raise ResourceNotFoundException("flow_instance", instance_id)
        return instance

    async def list_for_document(
        self, tenant_id: str, document_type: DocumentType, document_id: str
    ) -> list[FlowInstance]:
        return await self.instance_repo.list_for_document(tenant_id, document_type, document_id)

    async def list_for_requester(
        self,
        tenant_id: str,
        requester_id: str,
        status: FlowInstanceStatus | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[FlowInstance]:
        """Instances requester_id submitted, newest first; status narrows to one state."""
        return await self.instance_repo.list_for_requester(
            tenant_id, requester_id, status=status, skip=skip, limit=limit
        )

    async def pending_for(
        self,
        tenant_id: str,
        user_id: str,
        as_of: datetime | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[FlowInstance]:
        """Pending instances whose active step awaits user_id directly or as a delegate."""
        delegators = await self.delegation_registry.delegators_for(tenant_id, user_id, as_of)
        candidates = await self.instance_repo.list_pending_awaiting(
            tenant_id, [user_id, *delegators], skip=skip, limit=limit
        )
        result: list[FlowInstance] = []
        for instance in candidates:
            step = instance.current_step
            awaiting = instance.awaiting_approver_ids()
            if user_id in awaiting or (
                step is not None
                and step.allow_delegate
                and any(d in awaiting for d in delegators)
            ):
                result.append(instance)
        return result

    # ---- internals ----

    async def _mutate(
        self, tenant_id: str, instance_id: str, transition: _Transition
    ) -> tuple[FlowInstance, bool]:
        """Load, transition, save; reload and re-apply on version conflicts.

        Returns the resulting instance and whether it was changed and saved.
        """
        for attempt in range(1, self.retry_attempts + 1):
            instance = await self.get_instance(tenant_id, instance_id)
            now = self.clock.now()
            delegations = await self._delegations_for(instance, now)
            changed, events = transition(instance, now, delegations)
            if not changed:
                return instance, False
            try:
                saved = await self.instance_repo.save(instance, expected_version=instance.version)
            except InstanceVersionConflictError:
                if attempt >= self.retry_attempts:
                    raise
                logger.debug(
                    "Version conflict on instance %s (attempt %d/%d); reloading",
                    instance_id,
                    attempt,
                    self.retry_attempts,
                )
                continue
            await self._publish(events)
            return saved, True
        raise InstanceVersionConflictError(instance_id, -1)

    async def _delegations_for(self, instance: FlowInstance, now: datetime) -> dict[str, str]:
        """Active delegations (approver id -> delegate id) for the instance approvers."""
        approver_ids = [
            approver_id
            for step in instance.steps
            if step.allow_delegate
            for approver_id in step.resolved_approver_ids
        ]
        if not approver_ids:
            return {}
        return await self.delegation_registry.active_delegations_for(
            instance.tenant_id, approver_ids, now
        )

    async def _publish(self, events: list[ApprovalEvent]) -> None:
        for event in events:
            try:
                await self.event_sink.publish(event)
            except Exception:
                logger.warning(
                    "Event sink failed for %s on instance %s",
                    event.event_type.value,
                    event.instance_id,
                    exc_info=True,
                )
