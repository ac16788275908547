"""Schemas for the authenticated user's profile and sessions."""

from datetime import datetime

from pydantic import Field, field_validator

from app.core.security import NAME_MAX_LEN
from app.schemas.base import CamelModel


class RoleInfo(CamelModel):
    name: str
    description: str | None = None


class Profile(CamelModel):
    """Full profile of the current user (no password digest)."""

    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    is_verified: bool
    is_admin: bool
    created_at: datetime
    last_login: datetime | None = None
    roles: list[RoleInfo] = []


class ProfileResponse(CamelModel):
    success: bool = True
    profile: Profile


class ProfileUpdateRequest(CamelModel):
    """Partial profile update; omitted fields are left unchanged."""

    first_name: str | None = Field(default=None, min_length=1, max_length=NAME_MAX_LEN)
    last_name: str | None = Field(default=None, min_length=1, max_length=NAME_MAX_LEN)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class SessionInfo(CamelModel):
    id: str
    ip_address: str | None = None
    user_agent: str | None = None
    last_activity: datetime
    created_at: datetime
    expires_at: datetime
    is_current: bool = False


class SessionsResponse(CamelModel):
    sessions: list[SessionInfo]
    total: int
