"""Persisted login sessions and their refresh tokens: creation, validation, revocation and cleanup."""

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.core.security import (
    hash_refresh_token,
    new_refresh_token,
    parse_duration,
    refresh_token_lifetime,
)
from app.models import RefreshToken, UserSession
from app.models.base import as_utc, utcnow

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Skip rewriting last_activity when it was refreshed this recently.
ACTIVITY_UPDATE_INTERVAL = timedelta(minutes=1)


def session_lifetime(settings: "Settings") -> timedelta:
    """A session outlives both its access token and its current refresh token."""
    return max(parse_duration(settings.JWT_EXPIRES_IN), refresh_token_lifetime(settings))


def create_session(
    db: Session,
    user_id: str,
    settings: "Settings",
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> UserSession:
    """Add a session row. Caller commits."""
    now = now or utcnow()
    session = UserSession(
        user_id=user_id,
        ip_address=ip_address[:64] if ip_address else None,
        user_agent=user_agent[:512] if user_agent else None,
        is_active=True,
        last_activity=now,
        created_at=now,
        expires_at=now.replace(microsecond=0) + session_lifetime(settings),
    )
    db.add(session)
    db.flush()
    return session


def extend_session(session: UserSession, settings: "Settings", now: datetime | None = None) -> None:
    now = now or utcnow()
    session.expires_at = now.replace(microsecond=0) + session_lifetime(settings)
    session.last_activity = now


def get_valid_session(
    db: Session,
    session_id: str,
    user_id: str,
    now: datetime | None = None,
) -> UserSession | None:
    """Return the session if it belongs to user_id, is active and has not expired."""
    now = now or utcnow()
    session = db.get(UserSession, session_id)
    if session is None or session.user_id != user_id or not session.is_active:
        return None
    if as_utc(session.expires_at) <= now:
        return None
    return session


def touch_session(db: Session, session: UserSession, now: datetime | None = None) -> None:
    now = now or utcnow()
    last = as_utc(session.last_activity)
    if last is None or now - last >= ACTIVITY_UPDATE_INTERVAL:
        session.last_activity = now
        db.commit()


def list_active_sessions(db: Session, user_id: str, now: datetime | None = None) -> list[UserSession]:
    now = now or utcnow()
    return (
        db.query(UserSession)
        .filter(
            UserSession.user_id == user_id,
            UserSession.is_active.is_(True),
            UserSession.expires_at > now,
        )
        .order_by(UserSession.last_activity.desc())
        .all()
    )


def terminate_session(db: Session, session: UserSession) -> None:
    """Deactivate a session and every refresh token bound to it, then commit."""
    session.is_active = False
    db.execute(
        update(RefreshToken)
        .where(RefreshToken.session_id == session.id, RefreshToken.is_revoked.is_(False))
        .values(is_revoked=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.info("Session revoked: user_id=%s session_id=%s", session.user_id, session.id)


def revoke_session(db: Session, user_id: str, session_id: str) -> bool:
    """Mark one of the user's sessions inactive. Returns False if it is not theirs or already revoked."""
    session = db.get(UserSession, session_id)
    if session is None or session.user_id != user_id or not session.is_active:
        return False
    terminate_session(db, session)
    return True


def revoke_user_sessions(db: Session, user_id: str, *, keep_session_id: str | None = None) -> int:
    """
    Deactivate all of a user's active sessions except keep_session_id and
    revoke their refresh tokens. Returns the number of sessions ended. Caller commits.
    """
    session_filter = [UserSession.user_id == user_id, UserSession.is_active.is_(True)]
    token_filter = [RefreshToken.user_id == user_id, RefreshToken.is_revoked.is_(False)]
    if keep_session_id is not None:
        session_filter.append(UserSession.id != keep_session_id)
        token_filter.append(
            or_(RefreshToken.session_id.is_(None), RefreshToken.session_id != keep_session_id)
        )
    result = db.execute(
        update(UserSession)
        .where(*session_filter)
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(RefreshToken)
        .where(*token_filter)
        .values(is_revoked=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def issue_refresh_token(
    db: Session,
    user_id: str,
    settings: "Settings",
    *,
    session_id: str | None = None,
    now: datetime | None = None,
) -> str:
    """Store the digest of a new refresh token and return the token itself. Caller commits."""
    now = now or utcnow()
    token = new_refresh_token()
    db.add(
        RefreshToken(
            user_id=user_id,
            session_id=session_id,
            token_hash=hash_refresh_token(token),
            is_revoked=False,
            created_at=now,
            expires_at=now.replace(microsecond=0) + refresh_token_lifetime(settings),
        )
    )
    db.flush()
    return token


def find_refresh_token(db: Session, token: str) -> RefreshToken | None:
    return db.query(RefreshToken).filter(RefreshToken.token_hash == hash_refresh_token(token)).first()


def cleanup_expired_sessions(db: Session, now: datetime | None = None) -> int:
    """
    Deactivate every active session whose expiry has passed and revoke expired
    refresh tokens.

    Returns the number of sessions deactivated. Idempotent: safe to run repeatedly.
    """
    now = now or utcnow()
    result = db.execute(
        update(UserSession)
        .where(UserSession.is_active.is_(True), UserSession.expires_at <= now)
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(RefreshToken)
        .where(RefreshToken.is_revoked.is_(False), RefreshToken.expires_at <= now)
        .values(is_revoked=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    deactivated = result.rowcount or 0
    if deactivated > 0:
        logger.info("Session cleanup: cutoff=%s, sessions_deactivated=%s", now.isoformat(), deactivated)
    return deactivated
