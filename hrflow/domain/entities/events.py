"""Approval events emitted on every state transition."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from hrflow.domain.enums import ApprovalEventType


@dataclass(frozen=True)
class ApprovalEvent:
    """Notification payload; recipients are suggested, delivery is the sink's concern."""

    event_type: ApprovalEventType
    tenant_id: str
    instance_id: str
    document_type: str
    document_id: str
    at: datetime
    step_index: int | None = None
    recipients: tuple[str, ...] = field(default_factory=tuple)
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "tenant_id": self.tenant_id,
            "instance_id": self.instance_id,
            "document_type": self.document_type,
            "document_id": self.document_id,
            "step_index": self.step_index,
            "at": self.at.isoformat(),
            "recipients": list(self.recipients),
            "reason": self.reason,
        }
