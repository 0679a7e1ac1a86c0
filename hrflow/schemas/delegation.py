"""Delegation API schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DelegationCreateRequest(BaseModel):
    """Request body for delegating approval authority for a window (both ends inclusive)."""

    user_id: str = Field(..., min_length=1, max_length=64)
    delegate_to_id: str = Field(..., min_length=1, max_length=64)
    start_date: datetime
    end_date: datetime
    reason: str | None = Field(default=None, max_length=500)


class DelegationResponse(BaseModel):
    """Delegation response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    user_id: str
    delegate_to_id: str
    start_date: datetime
    end_date: datetime
    reason: str | None
    created_at: datetime | None
    revoked_at: datetime | None
