"""Pydantic request/response schemas."""

from app.schemas.admin import (
    AdminStatsResponse,
    RoleAssignmentRequest,
    UserListItem,
    UserRolesResponse,
    UsersListResponse,
)
from app.schemas.auth import (
    AuthResponse,
    CurrentUser,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    UserSummary,
)
from app.schemas.health import HealthResponse
from app.schemas.user import (
    Profile,
    ProfileResponse,
    ProfileUpdateRequest,
    RoleInfo,
    SessionInfo,
    SessionsResponse,
)

__all__ = [
    "AdminStatsResponse",
    "AuthResponse",
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "MeResponse",
    "MessageResponse",
    "Profile",
    "ProfileResponse",
    "ProfileUpdateRequest",
    "RegisterRequest",
    "RoleAssignmentRequest",
    "RoleInfo",
    "SessionInfo",
    "SessionsResponse",
    "UserListItem",
    "UserRolesResponse",
    "UserSummary",
    "UsersListResponse",
]
