"""Schemas for session management endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class SessionLocation(BaseModel):
    city: str | None = None
    country: str | None = None


class SessionResponse(BaseModel):
    """One active session as shown in the devices list."""

    session_id: str
    browser: str | None
    os: str | None
    device_type: str | None
    location: SessionLocation
    ip_address: str
    created_at: datetime
    last_active_at: datetime
    is_current: bool


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]


class SessionCreateRequest(BaseModel):
    """Register the calling device's session (login already records it)."""

    device_id: str | None = Field(None, max_length=255)


class SessionActivityResponse(BaseModel):
    updated: bool


class RevokeOthersResponse(BaseModel):
    message: str
    revoked_count: int


class SessionCleanupResponse(BaseModel):
    deleted_count: int
