"""Login, registration, token refresh, logout, password change and current-user endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import (
    AUTH_LIMITER,
    get_app_settings,
    get_client_info,
    get_current_user,
    protect,
    rate_limit,
)
from app.core.config import Settings
from app.core.database import get_db
from app.core.security import token_lifetime_seconds
from app.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    CurrentUser,
    LoginRequest,
    MeResponse,
    MessageResponse,
    PasswordChangedResponse,
    RefreshRequest,
    RegisterRequest,
    UserSummary,
)
from app.services import auth as auth_service
from app.services import sessions as sessions_service
from app.services.auth import ClientInfo

router = APIRouter()


def _auth_response(result: auth_service.AuthResult, settings: Settings) -> AuthResponse:
    return AuthResponse(
        token=result.token,
        refresh_token=result.refresh_token,
        user=auth_service.to_user_summary(result.user),
        expires_in=token_lifetime_seconds(settings),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    dependencies=[Depends(rate_limit(AUTH_LIMITER))],
)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    client: Annotated[ClientInfo, Depends(get_client_info)],
) -> AuthResponse:
    """
    Authenticate with email and password; returns a JWT access token and user summary.
    Include the token in the Authorization header as: Bearer <token>
    """
    result = auth_service.authenticate(db, settings, body.email, body.password, client)
    return _auth_response(result, settings)


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(AUTH_LIMITER))],
)
def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    client: Annotated[ClientInfo, Depends(get_client_info)],
) -> AuthResponse:
    """Create an account (unverified, non-admin) and sign it in."""
    result = auth_service.register(db, settings, body, client)
    return _auth_response(result, settings)


@router.post("/logout", response_model=MessageResponse, dependencies=protect())
def logout(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Revoke the session behind the presented token. Stateless tokens simply expire."""
    if current_user.session_id is not None:
        sessions_service.revoke_session(db, current_user.id, current_user.session_id)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=MeResponse, dependencies=protect())
def me(current_user: Annotated[CurrentUser, Depends(get_current_user)]) -> MeResponse:
    """Return the authenticated user and their role names."""
    return MeResponse(
        user=UserSummary.model_validate(current_user.model_dump()),
        roles=current_user.roles,
    )


@router.post(
    "/refresh",
    response_model=AuthResponse,
    dependencies=[Depends(rate_limit(AUTH_LIMITER))],
)
def refresh(
    body: RefreshRequest,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AuthResponse:
    """Trade a refresh token for a new access token; the refresh token is rotated."""
    result = auth_service.refresh(db, settings, body.refresh_token)
    return _auth_response(result, settings)


@router.put(
    "/change-password",
    response_model=PasswordChangedResponse,
    dependencies=protect(limiter=AUTH_LIMITER),
)
def change_password(
    body: ChangePasswordRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> PasswordChangedResponse:
    """Change the caller's password; every other session is signed out."""
    revoked = auth_service.change_password(
        db,
        settings,
        current_user.id,
        body.current_password,
        body.new_password,
        keep_session_id=current_user.session_id,
    )
    return PasswordChangedResponse(message="Password changed successfully", sessions_revoked=revoked)
