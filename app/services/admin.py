"""Aggregate statistics, user and session listings for admin endpoints."""

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.models import Role, User, UserSession
from app.models.base import as_utc, utcnow
from app.schemas.admin import (
    AdminSessionItem,
    AdminStatsResponse,
    RoleItem,
    SessionStatus,
    UserListItem,
)

if TYPE_CHECKING:
    from app.core.config import Settings

RECENT_SIGNUP_WINDOW = timedelta(days=7)


def _count(db: Session, *criteria) -> int:
    return db.query(func.count(User.id)).filter(*criteria).scalar() or 0


def collect_stats(db: Session, settings: "Settings", now: datetime | None = None) -> AdminStatsResponse:
    """Count users and sessions for the admin dashboard."""
    now = now or utcnow()
    active_cutoff = now - timedelta(minutes=settings.ACTIVE_SESSION_MINUTES)

    live_sessions = db.query(func.count(UserSession.id)).filter(
        UserSession.is_active.is_(True),
        UserSession.expires_at > now,
    )
    total_sessions = live_sessions.scalar() or 0
    active_sessions = (
        live_sessions.filter(UserSession.last_activity >= active_cutoff).scalar() or 0
    )

    return AdminStatsResponse(
        total_users=_count(db),
        verified_users=_count(db, User.is_verified.is_(True)),
        active_users=_count(db, User.is_active.is_(True)),
        admin_users=_count(db, User.is_admin.is_(True)),
        active_sessions=active_sessions,
        total_sessions=total_sessions,
        recent_signups=_count(db, User.created_at >= now - RECENT_SIGNUP_WINDOW),
    )


def to_user_list_item(user: User) -> UserListItem:
    return UserListItem(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        is_verified=bool(user.is_verified),
        is_admin=bool(user.is_admin),
        is_active=bool(user.is_active),
        created_at=user.created_at,
        last_login=user.last_login,
        roles=user.role_names,
    )


def list_users(db: Session) -> list[UserListItem]:
    users = db.query(User).order_by(User.created_at, User.email).all()
    return [to_user_list_item(u) for u in users]


def to_role_item(role: Role, user_count: int) -> RoleItem:
    return RoleItem(
        id=role.id,
        name=role.name,
        description=role.description,
        is_active=bool(role.is_active),
        user_count=user_count,
        created_at=role.created_at,
    )


def list_sessions(
    db: Session,
    *,
    status: SessionStatus = "all",
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
    now: datetime | None = None,
) -> tuple[list[AdminSessionItem], int, int]:
    """
    One page of sessions, most recently active first.

    status "active" means not revoked and not expired; "inactive" is the
    complement. search matches owner email, names and IP address
    (case-insensitive substring). Returns (items, total matching, active overall).
    """
    now = now or utcnow()
    live = (UserSession.is_active.is_(True), UserSession.expires_at > now)

    query = db.query(UserSession, User.email).join(User, User.id == UserSession.user_id)
    if status == "active":
        query = query.filter(*live)
    elif status == "inactive":
        query = query.filter(or_(UserSession.is_active.is_(False), UserSession.expires_at <= now))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                User.email.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                UserSession.ip_address.ilike(pattern),
            )
        )

    total = query.count()
    rows = (
        query.order_by(UserSession.last_activity.desc(), UserSession.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    active = db.query(func.count(UserSession.id)).filter(*live).scalar() or 0
    items = [
        AdminSessionItem(
            id=s.id,
            user_id=s.user_id,
            user_email=email,
            ip_address=s.ip_address,
            user_agent=s.user_agent,
            is_active=bool(s.is_active) and as_utc(s.expires_at) > now,
            last_activity=s.last_activity,
            created_at=s.created_at,
            expires_at=s.expires_at,
        )
        for s, email in rows
    ]
    return items, total, active
