"""Admin-only endpoints: dashboard statistics, users, roles and session monitoring."""

import logging
import math
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_app_settings, protect, require_admin
from app.core.config import Settings
from app.core.database import get_db
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models import Role, User, UserSession
from app.schemas.admin import (
    AdminSessionsResponse,
    AdminStatsResponse,
    RoleAssignmentRequest,
    RoleCreateRequest,
    RoleResponse,
    RolesListResponse,
    RoleUpdateRequest,
    SessionStatus,
    SessionsTerminatedResponse,
    UserRolesResponse,
    UsersListResponse,
)
from app.schemas.auth import CurrentUser, MessageResponse
from app.services import admin as admin_service
from app.services import roles as roles_service
from app.services import sessions as sessions_service

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=protect(admin=True))


@router.post("/stats", response_model=AdminStatsResponse)
def get_stats(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AdminStatsResponse:
    """User and session counts for the admin dashboard."""
    return admin_service.collect_stats(db, settings)


@router.get("/users", response_model=UsersListResponse)
def list_users(db: Annotated[Session, Depends(get_db)]) -> UsersListResponse:
    """List all users with their role names (no password digests)."""
    users = admin_service.list_users(db)
    return UsersListResponse(users=users, total=len(users))


def _get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.post("/users/{user_id}/roles", response_model=UserRolesResponse)
def assign_role(
    user_id: str,
    body: RoleAssignmentRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> UserRolesResponse:
    """Give a user an existing role."""
    user = _get_user(db, user_id)
    role = roles_service.get_role(db, body.role)
    if role is None:
        raise NotFoundError("Role not found")
    if roles_service.find_assignment(user, role.name) is not None:
        raise ConflictError("Role already assigned")
    roles_service.assign_role(db, user, role, assigned_by=admin.id)
    db.commit()
    logger.info("Role assigned: user_id=%s role=%s by=%s", user.id, role.name, admin.id)
    return UserRolesResponse(user_id=user.id, roles=user.role_names)


@router.delete("/users/{user_id}/roles/{role_name}", response_model=UserRolesResponse)
def remove_role(
    user_id: str,
    role_name: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> UserRolesResponse:
    """Take a role away from a user."""
    user = _get_user(db, user_id)
    assignment = roles_service.find_assignment(user, role_name.strip().lower())
    if assignment is None:
        raise NotFoundError("Role assignment not found")
    user.user_roles.remove(assignment)
    db.commit()
    logger.info("Role removed: user_id=%s role=%s by=%s", user.id, role_name, admin.id)
    return UserRolesResponse(user_id=user.id, roles=user.role_names)


@router.delete("/users/{user_id}/sessions", response_model=SessionsTerminatedResponse)
def terminate_user_sessions(
    user_id: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> SessionsTerminatedResponse:
    """Sign a user out everywhere."""
    user = _get_user(db, user_id)
    count = sessions_service.revoke_user_sessions(db, user.id)
    db.commit()
    logger.info("Sessions terminated: user_id=%s count=%s by=%s", user.id, count, admin.id)
    return SessionsTerminatedResponse(
        message=f"Terminated {count} sessions for user", terminated_count=count
    )


@router.get("/sessions", response_model=AdminSessionsResponse)
def list_sessions(
    db: Annotated[Session, Depends(get_db)],
    status_filter: Annotated[SessionStatus, Query(alias="status")] = "all",
    search: Annotated[str | None, Query(max_length=255)] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> AdminSessionsResponse:
    """Page through all users' sessions, filtered by status and a search term."""
    items, total, active = admin_service.list_sessions(
        db, status=status_filter, search=search, page=page, limit=limit
    )
    return AdminSessionsResponse(
        sessions=items,
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
        active_sessions=active,
    )


@router.delete("/sessions/{session_id}", response_model=SessionsTerminatedResponse)
def terminate_session(
    session_id: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> SessionsTerminatedResponse:
    """End any user's session; its access and refresh tokens stop working."""
    session = db.get(UserSession, session_id)
    if session is None:
        raise NotFoundError("Session not found")
    count = 1 if session.is_active else 0
    if session.is_active:
        sessions_service.terminate_session(db, session)
    logger.info("Session terminated by admin: session_id=%s by=%s", session_id, admin.id)
    return SessionsTerminatedResponse(message="Session terminated successfully", terminated_count=count)


def _get_role(db: Session, role_id: str) -> Role:
    role = db.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role not found")
    return role


@router.get("/roles", response_model=RolesListResponse)
def list_roles(db: Annotated[Session, Depends(get_db)]) -> RolesListResponse:
    """All roles with the number of users holding each."""
    roles = [admin_service.to_role_item(role, count) for role, count in roles_service.list_roles(db)]
    return RolesListResponse(roles=roles, total=len(roles))


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(
    body: RoleCreateRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> RoleResponse:
    if roles_service.name_taken(db, body.name):
        raise ConflictError("Role name already exists")
    role = roles_service.create_role(db, body.name, body.description)
    db.commit()
    logger.info("Role created: role=%s by=%s", role.name, admin.id)
    return RoleResponse(role=admin_service.to_role_item(role, 0))


@router.get("/roles/{role_id}", response_model=RoleResponse)
def get_role(role_id: str, db: Annotated[Session, Depends(get_db)]) -> RoleResponse:
    role = _get_role(db, role_id)
    return RoleResponse(role=admin_service.to_role_item(role, roles_service.count_assignments(db, role.id)))


@router.put("/roles/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: str,
    body: RoleUpdateRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> RoleResponse:
    """Rename, describe or (de)activate a role. Built-in roles keep their names."""
    role = _get_role(db, role_id)
    if body.name is not None and body.name != role.name:
        if role.name in roles_service.DEFAULT_ROLES:
            raise ValidationError("Built-in roles cannot be renamed")
        if roles_service.name_taken(db, body.name, exclude_role_id=role.id):
            raise ConflictError("Role name already exists")
        role.name = body.name
    if body.description is not None:
        role.description = body.description
    if body.is_active is not None:
        role.is_active = body.is_active
    db.commit()
    logger.info("Role updated: role_id=%s name=%s by=%s", role.id, role.name, admin.id)
    return RoleResponse(role=admin_service.to_role_item(role, roles_service.count_assignments(db, role.id)))


@router.delete("/roles/{role_id}", response_model=MessageResponse)
def delete_role(
    role_id: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Delete an unassigned, non-built-in role."""
    role = _get_role(db, role_id)
    if role.name in roles_service.DEFAULT_ROLES:
        raise ValidationError("Built-in roles cannot be deleted")
    if roles_service.count_assignments(db, role.id) > 0:
        raise ValidationError("Cannot delete role that is assigned to users")
    db.delete(role)
    db.commit()
    logger.info("Role deleted: role=%s by=%s", role.name, admin.id)
    return MessageResponse(message="Role deleted successfully")
