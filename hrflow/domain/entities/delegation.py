"""Delegation record: user A lets user B act for them during a window."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class DelegationRecord:
    """Domain entity for a delegation window (inclusive of both ends)."""

    id: str
    tenant_id: str
    user_id: str
    delegate_to_id: str
    start_date: datetime
    end_date: datetime
    reason: str | None = None
    created_at: datetime | None = None
    revoked_at: datetime | None = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_active_at(self, as_of: datetime) -> bool:
        """Return whether the delegation authorizes the delegate at as_of."""
        return not self.is_revoked and self.start_date <= as_of <= self.end_date

    def is_expired_at(self, as_of: datetime) -> bool:
        return self.end_date < as_of

    def overlaps(self, start_date: datetime, end_date: datetime) -> bool:
        """Return whether [start_date, end_date] intersects this (non-revoked) window."""
        if self.is_revoked:
            return False
        return self.start_date <= end_date and start_date <= self.end_date
