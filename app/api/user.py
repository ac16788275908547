"""Profile and session management for the authenticated user."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, protect
from app.core.database import get_db
from app.core.errors import NotFoundError
from app.models import User
from app.schemas.auth import CurrentUser, MessageResponse
from app.schemas.user import (
    Profile,
    ProfileResponse,
    ProfileUpdateRequest,
    RoleInfo,
    SessionInfo,
    SessionsResponse,
)
from app.services import sessions as sessions_service

router = APIRouter(dependencies=protect())


def _to_profile(user: User) -> Profile:
    return Profile(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        is_verified=bool(user.is_verified),
        is_admin=bool(user.is_admin),
        created_at=user.created_at,
        last_login=user.last_login,
        roles=[
            RoleInfo(name=ur.role.name, description=ur.role.description)
            for ur in sorted(user.user_roles, key=lambda ur: ur.role.name)
            if ur.role is not None and ur.role.is_active
        ],
    )


def _load_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("Profile not found")
    return user


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ProfileResponse:
    """Return the full profile of the authenticated user, including role names."""
    return ProfileResponse(profile=_to_profile(_load_user(db, current_user.id)))


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    body: ProfileUpdateRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ProfileResponse:
    """Update first and/or last name; omitted fields are unchanged."""
    user = _load_user(db, current_user.id)
    if body.first_name is not None:
        user.first_name = body.first_name
    if body.last_name is not None:
        user.last_name = body.last_name
    db.commit()
    return ProfileResponse(profile=_to_profile(user))


@router.get("/sessions", response_model=SessionsResponse)
def list_sessions(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> SessionsResponse:
    """Active, unexpired sessions of the caller, most recently used first."""
    sessions = sessions_service.list_active_sessions(db, current_user.id)
    items = [
        SessionInfo(
            id=s.id,
            ip_address=s.ip_address,
            user_agent=s.user_agent,
            last_activity=s.last_activity,
            created_at=s.created_at,
            expires_at=s.expires_at,
            is_current=s.id == current_user.session_id,
        )
        for s in sessions
    ]
    return SessionsResponse(sessions=items, total=len(items))


@router.delete("/sessions/{session_id}", response_model=MessageResponse)
def revoke_session(
    session_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Revoke one of the caller's sessions; tokens bound to it stop working immediately."""
    if not sessions_service.revoke_session(db, current_user.id, session_id):
        raise NotFoundError("Session not found")
    return MessageResponse(message="Session revoked")
