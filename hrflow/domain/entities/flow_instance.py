"""Flow instance entities: one running approval for one document.

Steps and history are plain dataclasses so the state machine can mutate
them in memory and the repository can persist them as JSON.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from hrflow.domain.enums import (
    Decision,
    DocumentType,
    ExecutionMode,
    FlowInstanceStatus,
    HistoryAction,
    StepInstanceStatus,
)
from hrflow.shared.utils.datetime import parse_iso_utc


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class DecisionRecord:
    """A decision on behalf of one nominal approver.

    decided_by is who acted; delegated_from is set when a delegate acted for
    the nominal approver.
    """

    decision: Decision
    decided_by: str
    at: datetime
    delegated_from: str | None = None
    comment: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "decision": self.decision.value,
            "decided_by": self.decided_by,
            "at": _iso(self.at),
            "delegated_from": self.delegated_from,
            "comment": self.comment,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DecisionRecord":
        return cls(
            decision=Decision(data["decision"]),
            decided_by=data["decided_by"],
            at=parse_iso_utc(data["at"]),
            delegated_from=data.get("delegated_from"),
            comment=data.get("comment"),
        )


@dataclass
class HistoryEntry:
    """One line of the approval trail."""

    action: HistoryAction
    at: datetime
    actor_id: str | None = None
    step_index: int | None = None
    comment: str | None = None
    delegated_from: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "at": _iso(self.at),
            "actor_id": self.actor_id,
            "step_index": self.step_index,
            "comment": self.comment,
            "delegated_from": self.delegated_from,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        return cls(
            action=HistoryAction(data["action"]),
            at=parse_iso_utc(data["at"]),
            actor_id=data.get("actor_id"),
            step_index=data.get("step_index"),
            comment=data.get("comment"),
            delegated_from=data.get("delegated_from"),
            reason=data.get("reason"),
        )


@dataclass
class StepInstance:
    """Runtime state of one step; execution settings are copied from the definition."""

    step_index: int
    step_number: int
    name: str
    step_definition_id: str | None = None
    execution_mode: ExecutionMode = ExecutionMode.SERIAL
    required_approvals: int = 1
    timeout_hours: float | None = None
    allow_delegate: bool = True
    allow_skip: bool = False
    status: StepInstanceStatus = StepInstanceStatus.WAITING
    resolved_approver_ids: list[str] = field(default_factory=list)
    decisions: dict[str, DecisionRecord] = field(default_factory=dict)
    delegations: dict[str, str] = field(default_factory=dict)
    truncated_hierarchy: bool = False
    unsatisfiable: bool = False
    status_reason: str | None = None
    activated_at: datetime | None = None
    deadline_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def approval_count(self) -> int:
        return sum(1 for d in self.decisions.values() if d.decision is Decision.APPROVE)

    @property
    def is_quorum_met(self) -> bool:
        return self.approval_count >= self.required_approvals

    def next_serial_approver(self) -> str | None:
        """First resolved approver (in order) with no recorded decision."""
        for approver_id in self.resolved_approver_ids:
            if approver_id not in self.decisions:
                return approver_id
        return None

    def awaiting_approver_ids(self) -> list[str]:
        """Approvers whose decision the step is currently waiting on."""
        if self.status is not StepInstanceStatus.ACTIVE:
            return []
        if self.execution_mode is ExecutionMode.SERIAL:
            nxt = self.next_serial_approver()
            return [nxt] if nxt else []
        return [a for a in self.resolved_approver_ids if a not in self.decisions]

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_index": self.step_index,
            "step_number": self.step_number,
            "name": self.name,
            "step_definition_id": self.step_definition_id,
            "execution_mode": self.execution_mode.value,
            "required_approvals": self.required_approvals,
            "timeout_hours": self.timeout_hours,
            "allow_delegate": self.allow_delegate,
            "allow_skip": self.allow_skip,
            "status": self.status.value,
            "resolved_approver_ids": list(self.resolved_approver_ids),
            "decisions": {k: v.to_dict() for k, v in self.decisions.items()},
            "delegations": dict(self.delegations),
            "truncated_hierarchy": self.truncated_hierarchy,
            "unsatisfiable": self.unsatisfiable,
            "status_reason": self.status_reason,
            "activated_at": _iso(self.activated_at),
            "deadline_at": _iso(self.deadline_at),
            "completed_at": _iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StepInstance":
        return cls(
            step_index=int(data["step_index"]),
            step_number=int(data["step_number"]),
            name=data["name"],
            step_definition_id=data.get("step_definition_id"),
            execution_mode=ExecutionMode(data.get("execution_mode", ExecutionMode.SERIAL.value)),
            required_approvals=int(data.get("required_approvals", 1)),
            timeout_hours=data.get("timeout_hours"),
            allow_delegate=bool(data.get("allow_delegate", True)),
            allow_skip=bool(data.get("allow_skip", False)),
            status=StepInstanceStatus(data["status"]),
            resolved_approver_ids=list(data.get("resolved_approver_ids", [])),
            decisions={
                k: DecisionRecord.from_dict(v) for k, v in (data.get("decisions") or {}).items()
            },
            delegations=dict(data.get("delegations") or {}),
            truncated_hierarchy=bool(data.get("truncated_hierarchy", False)),
            unsatisfiable=bool(data.get("unsatisfiable", False)),
            status_reason=data.get("status_reason"),
            activated_at=parse_iso_utc(data.get("activated_at")),
            deadline_at=parse_iso_utc(data.get("deadline_at")),
            completed_at=parse_iso_utc(data.get("completed_at")),
        )


@dataclass
class FlowInstance:
    """Domain entity for a running (or finished) approval of one document."""

    id: str
    tenant_id: str
    flow_definition_id: str
    definition_snapshot: dict[str, Any]
    document_type: DocumentType
    document_id: str
    requester_id: str
    attributes: dict[str, Any] = field(default_factory=dict)
    current_step_index: int | None = None
    status: FlowInstanceStatus = FlowInstanceStatus.PENDING
    status_reason: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    version: int = 1
    steps: list[StepInstance] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)

    def belongs_to_tenant(self, tenant_id: str) -> bool:
        return self.tenant_id == tenant_id

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def current_step(self) -> StepInstance | None:
        if self.current_step_index is None:
            return None
        return self.steps[self.current_step_index]

    @property
    def current_deadline_at(self) -> datetime | None:
        """Deadline of the active step; indexed by the timeout sweep."""
        step = self.current_step
        if self.is_terminal or step is None or step.status is not StepInstanceStatus.ACTIVE:
            return None
        return step.deadline_at

    def progress(self) -> float:
        """Fraction of steps in a terminal sub-status (1.0 when there are none)."""
        if not self.steps:
            return 1.0
        done = sum(1 for s in self.steps if s.status.is_terminal)
        return done / len(self.steps)

    def awaiting_approver_ids(self) -> list[str]:
        step = self.current_step
        if self.is_terminal or step is None:
            return []
        return step.awaiting_approver_ids()

    def steps_to_json(self) -> list[dict[str, Any]]:
        return [s.to_dict() for s in self.steps]

    def history_to_json(self) -> list[dict[str, Any]]:
        return [h.to_dict() for h in self.history]
