"""Pydantic schemas for ghost sessions."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class GhostSessionStart(BaseModel):
    """Schema for starting a ghost session."""

    target_firm_id: int
    purpose: str = Field(..., min_length=1, max_length=1000)
    access_level: Literal["read", "write"] = "read"
    duration_seconds: int | None = Field(
        default=None,
        ge=60,
        description="Session lifetime; capped by the configured maximum",
    )


class GhostSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    admin_user_id: int
    target_firm_id: int
    session_token: str
    purpose: str
    access_level: str
    is_active: bool
    started_at: datetime
    ended_at: datetime | None = None
    max_duration: int
    expires_at: datetime
