"""Domain enumerations for the approval engine.

All enums are str-valued so they serialize to JSON and SQL as plain strings.
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class DocumentType(_ValuesMixin, str, Enum):
    """HR document kinds that can be routed through an approval flow."""

    LEAVE_REQUEST = "leave_request"
    OVERTIME_REQUEST = "overtime_request"
    EXPENSE_CLAIM = "expense_claim"
    BUSINESS_TRIP = "business_trip"
    PURCHASE_REQUEST = "purchase_request"
    HIRE = "hire"
    TRANSFER = "transfer"
    RETIREMENT = "retirement"


class FlowType(_ValuesMixin, str, Enum):
    """How a flow's approvers are derived."""

    ORGANIZATION = "organization"
    CUSTOM = "custom"


class ExecutionMode(_ValuesMixin, str, Enum):
    """Approver ordering inside a single step."""

    SERIAL = "serial"
    PARALLEL = "parallel"


class ApproverType(_ValuesMixin, str, Enum):
    """Approver spec variants."""

    USER = "user"
    ROLE = "role"
    POSITION_LEVEL = "position_level"
    ORG_HIERARCHY = "org_hierarchy"


class ConditionOperator(_ValuesMixin, str, Enum):
    """Comparison operators for flow conditions."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


class FlowInstanceStatus(_ValuesMixin, str, Enum):
    """Flow instance lifecycle: pending until one terminal state is reached."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not FlowInstanceStatus.PENDING


class StepInstanceStatus(_ValuesMixin, str, Enum):
    """Step lifecycle: waiting -> active -> one of the terminal states."""

    WAITING = "waiting"
    ACTIVE = "active"
    SATISFIED = "satisfied"
    REJECTED = "rejected"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self not in (StepInstanceStatus.WAITING, StepInstanceStatus.ACTIVE)


class Decision(_ValuesMixin, str, Enum):
    """Approver decision on a step."""

    APPROVE = "approve"
    REJECT = "reject"


class ApprovalEventType(_ValuesMixin, str, Enum):
    """Notification events emitted on every state transition."""

    STEP_ACTIVATED = "step_activated"
    STEP_SATISFIED = "step_satisfied"
    STEP_REJECTED = "step_rejected"
    STEP_SKIPPED = "step_skipped"
    STEP_TIMED_OUT = "step_timed_out"
    INSTANCE_APPROVED = "instance_approved"
    INSTANCE_REJECTED = "instance_rejected"
    INSTANCE_CANCELLED = "instance_cancelled"


class HistoryAction(_ValuesMixin, str, Enum):
    """Entries in an instance's approval history trail."""

    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"
    ESCALATED = "escalated"
    CANCELLED = "cancelled"


# Reasons recorded in status_reason when an instance or step ends without a human decision.
REASON_STEP_TIMEOUT = "step_timeout"
REASON_UNSATISFIABLE_STEP = "unsatisfiable_step"
REASON_REJECTED = "rejected"
REASON_CANCELLED = "cancelled"
