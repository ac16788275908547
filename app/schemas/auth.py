"""Request/response schemas for auth endpoints."""

from pydantic import EmailStr, Field, field_validator, model_validator

from app.core.security import (
    EMAIL_MAX_LEN,
    NAME_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
)
from app.models.user import ADMIN_ROLE_NAMES
from app.schemas.base import CamelModel


def _normalize_email(v: str) -> str:
    v = v.strip().lower()
    if len(v) > EMAIL_MAX_LEN:
        raise ValueError(f"must be at most {EMAIL_MAX_LEN} characters")
    return v


class LoginRequest(CamelModel):
    """Credentials for login."""

    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: object) -> object:
        return _normalize_email(v) if isinstance(v, str) else v


class RegisterRequest(CamelModel):
    """New account details."""

    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    first_name: str = Field(..., min_length=1, max_length=NAME_MAX_LEN)
    last_name: str = Field(..., min_length=1, max_length=NAME_MAX_LEN)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: object) -> object:
        return _normalize_email(v) if isinstance(v, str) else v

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class UserSummary(CamelModel):
    """Public view of a user; never includes the password digest."""

    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    is_verified: bool
    is_admin: bool


class AuthResponse(CamelModel):
    """Token and user summary returned by login and registration."""

    token: str = Field(..., description="JWT access token; send as Authorization: Bearer <token>")
    refresh_token: str = Field(..., description="Single-use token for POST /auth/refresh")
    user: UserSummary
    expires_in: int = Field(..., description="Token lifetime in seconds")


class CurrentUser(CamelModel):
    """Authenticated user attached to the request by get_current_user."""

    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    is_verified: bool
    is_admin: bool
    roles: list[str] = []
    session_id: str | None = None

    @property
    def has_admin_access(self) -> bool:
        return self.is_admin or any(r in ADMIN_ROLE_NAMES for r in self.roles)


class MeResponse(CamelModel):
    user: UserSummary
    roles: list[str]


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1, max_length=512)


class ChangePasswordRequest(CamelModel):
    """Current password plus the replacement; confirmPassword is optional but must match when sent."""

    current_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    confirm_password: str | None = None

    @model_validator(mode="after")
    def passwords_match(self) -> "ChangePasswordRequest":
        if self.confirm_password is not None and self.confirm_password != self.new_password:
            raise ValueError("New passwords don't match")
        return self


class PasswordChangedResponse(CamelModel):
    success: bool = True
    message: str
    sessions_revoked: int = Field(..., ge=0, description="Other sessions that were signed out")
