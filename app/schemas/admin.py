"""Schemas for admin-only endpoints."""

import re
from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from app.schemas.base import CamelModel

ROLE_NAME_PATTERN = re.compile(r"^[a-z0-9_-]+$")


class AdminStatsResponse(CamelModel):
    """Aggregate counts for the admin dashboard. All values are >= 0."""

    total_users: int = Field(..., ge=0)
    verified_users: int = Field(..., ge=0)
    active_users: int = Field(..., ge=0)
    admin_users: int = Field(..., ge=0)
    active_sessions: int = Field(..., ge=0, description="Active sessions with recent activity")
    total_sessions: int = Field(..., ge=0, description="All sessions not revoked or expired")
    recent_signups: int = Field(..., ge=0, description="Users created in the last 7 days")


class UserListItem(CamelModel):
    """User entry for admin list (no password)."""

    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    is_verified: bool
    is_admin: bool
    is_active: bool
    created_at: datetime
    last_login: datetime | None = None
    roles: list[str] = []


class UsersListResponse(CamelModel):
    """Response for GET /admin/users."""

    users: list[UserListItem]
    total: int


def _normalize_role_name(v: str) -> str:
    v = v.strip().lower()
    if not v:
        raise ValueError("must not be blank")
    if not ROLE_NAME_PATTERN.match(v):
        raise ValueError("may only contain letters, digits, \"-\" and \"_\"")
    return v


class RoleAssignmentRequest(CamelModel):
    role: str = Field(..., min_length=1, max_length=64)

    @field_validator("role")
    @classmethod
    def normalize_role(cls, v: str) -> str:
        return _normalize_role_name(v)


class UserRolesResponse(CamelModel):
    user_id: str
    roles: list[str]


class RoleItem(CamelModel):
    id: str
    name: str
    description: str | None = None
    is_active: bool
    user_count: int = Field(..., ge=0)
    created_at: datetime


class RolesListResponse(CamelModel):
    roles: list[RoleItem]
    total: int


class RoleResponse(CamelModel):
    success: bool = True
    role: RoleItem


class RoleCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=64)
    description: str | None = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return _normalize_role_name(v)


class RoleUpdateRequest(CamelModel):
    """Partial role update; omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=64)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        return v if v is None else _normalize_role_name(v)


SessionStatus = Literal["active", "inactive", "all"]


class AdminSessionItem(CamelModel):
    """A session row joined with its owner's email, for session monitoring."""

    id: str
    user_id: str
    user_email: str
    ip_address: str | None = None
    user_agent: str | None = None
    is_active: bool
    last_activity: datetime
    created_at: datetime
    expires_at: datetime


class AdminSessionsResponse(CamelModel):
    sessions: list[AdminSessionItem]
    total: int
    page: int
    limit: int
    total_pages: int
    active_sessions: int = Field(..., ge=0, description="Active, unexpired sessions across all users")


class SessionsTerminatedResponse(CamelModel):
    success: bool = True
    message: str
    terminated_count: int = Field(..., ge=0)
