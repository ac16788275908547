"""Login, registration, token refresh and password change."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    AccountLockedError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.core.security import (
    create_access_token,
    dummy_password_hash,
    hash_password,
    verify_password,
)
from app.models import User, UserSession
from app.models.base import as_utc, utcnow
from app.models.user import DEFAULT_ROLE_NAME
from app.schemas.auth import RegisterRequest, UserSummary
from app.services import roles as roles_service
from app.services import sessions as sessions_service

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Same message for unknown email and wrong password.
INVALID_CREDENTIALS = "Invalid email or password"


@dataclass(frozen=True)
class ClientInfo:
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: str
    refresh_token: str
    session_id: str | None


def to_user_summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        is_verified=bool(user.is_verified),
        is_admin=bool(user.is_admin),
    )


def _issue(
    db: Session,
    user: User,
    settings: "Settings",
    client: ClientInfo,
    now: datetime,
) -> AuthResult:
    session_id = None
    if settings.SESSION_TRACKING_ENABLED:
        session = sessions_service.create_session(
            db,
            user.id,
            settings,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            now=now,
        )
        session_id = session.id
    # Signing happens before commit so a misconfigured secret persists nothing.
    token = create_access_token(user.id, settings, session_id=session_id, now=now)
    refresh_token = sessions_service.issue_refresh_token(
        db, user.id, settings, session_id=session_id, now=now
    )
    return AuthResult(user=user, token=token, refresh_token=refresh_token, session_id=session_id)


def authenticate(
    db: Session,
    settings: "Settings",
    email: str,
    password: str,
    client: ClientInfo | None = None,
    now: datetime | None = None,
) -> AuthResult:
    """
    Verify email/password and issue a token.

    Unknown email and wrong password raise the same AuthenticationError; a
    dummy bcrypt check keeps their timing comparable. Repeated failures lock
    the account for LOCKOUT_MINUTES; the lock is only reported (423) to a
    caller who supplied the correct password.
    """
    now = now or utcnow()
    client = client or ClientInfo()
    email = email.strip().lower()

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        verify_password(password, dummy_password_hash(settings.BCRYPT_ROUNDS))
        logger.info("Login failed: unknown email")
        raise AuthenticationError(INVALID_CREDENTIALS)

    locked_until = as_utc(user.locked_until)
    is_locked = locked_until is not None and locked_until > now

    # A wrong password gets the generic 401 whether or not the account is locked.
    if not verify_password(password, user.password_hash):
        if is_locked:
            logger.info("Login failed: bad password for locked user_id=%s", user.id)
            raise AuthenticationError(INVALID_CREDENTIALS)
        attempts = (user.login_attempts or 0) + 1
        if attempts >= settings.MAX_LOGIN_ATTEMPTS:
            user.locked_until = now + timedelta(minutes=settings.LOCKOUT_MINUTES)
            user.login_attempts = 0
            logger.warning(
                "Account locked after %s failed attempts: user_id=%s", attempts, user.id
            )
        else:
            user.login_attempts = attempts
        db.commit()
        logger.info("Login failed: bad password for user_id=%s", user.id)
        raise AuthenticationError(INVALID_CREDENTIALS)

    if is_locked:
        logger.info("Login rejected: user_id=%s is locked until %s", user.id, locked_until.isoformat())
        raise AccountLockedError()

    if not user.is_active:
        raise AuthorizationError("Account is deactivated. Please contact support.")

    user.login_attempts = 0
    user.locked_until = None
    user.last_login = now
    result = _issue(db, user, settings, client, now)
    db.commit()
    logger.info("Login succeeded: user_id=%s", user.id)
    return result


def register(
    db: Session,
    settings: "Settings",
    data: RegisterRequest,
    client: ClientInfo | None = None,
    now: datetime | None = None,
) -> AuthResult:
    """Create an unverified, non-admin user with the default role and issue a token."""
    now = now or utcnow()
    client = client or ClientInfo()
    email = data.email.strip().lower()

    if db.query(User.id).filter(User.email == email).first() is not None:
        raise ConflictError("User already exists")

    user = User(
        email=email,
        password_hash=hash_password(data.password, rounds=settings.BCRYPT_ROUNDS),
        first_name=data.first_name,
        last_name=data.last_name,
        is_verified=False,
        is_admin=False,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email.
        db.rollback()
        raise ConflictError("User already exists")

    default_role = roles_service.get_role(db, DEFAULT_ROLE_NAME)
    if default_role is not None:
        roles_service.assign_role(db, user, default_role)

    result = _issue(db, user, settings, client, now)
    db.commit()
    logger.info("User registered: user_id=%s", user.id)
    return result


def refresh(
    db: Session,
    settings: "Settings",
    refresh_token: str,
    now: datetime | None = None,
) -> AuthResult:
    """
    Exchange a refresh token for a new access token and a new refresh token.

    The presented token is revoked (single use). Presenting an already revoked
    token ends the session it belonged to.
    """
    now = now or utcnow()
    record = sessions_service.find_refresh_token(db, refresh_token)
    if record is None:
        raise AuthenticationError("Invalid refresh token")

    session = db.get(UserSession, record.session_id) if record.session_id else None
    if record.is_revoked:
        logger.warning(
            "Revoked refresh token presented: user_id=%s session_id=%s", record.user_id, record.session_id
        )
        if session is not None and session.is_active:
            sessions_service.terminate_session(db, session)
        raise AuthenticationError("Refresh token has been revoked")

    if as_utc(record.expires_at) <= now:
        record.is_revoked = True
        db.commit()
        raise AuthenticationError("Refresh token has expired")

    user = db.get(User, record.user_id)
    if user is None:
        raise AuthenticationError("Invalid refresh token")
    if not user.is_active:
        raise AuthorizationError("Account is deactivated. Please contact support.")
    if record.session_id is not None and (session is None or not session.is_active):
        raise AuthenticationError("Session revoked")

    record.is_revoked = True
    if session is not None:
        sessions_service.extend_session(session, settings, now)
    token = create_access_token(user.id, settings, session_id=record.session_id, now=now)
    new_token = sessions_service.issue_refresh_token(
        db, user.id, settings, session_id=record.session_id, now=now
    )
    db.commit()
    logger.info("Token refreshed: user_id=%s session_id=%s", user.id, record.session_id)
    return AuthResult(user=user, token=token, refresh_token=new_token, session_id=record.session_id)


def change_password(
    db: Session,
    settings: "Settings",
    user_id: str,
    current_password: str,
    new_password: str,
    *,
    keep_session_id: str | None = None,
) -> int:
    """
    Replace the user's password after checking the current one. Every other
    session (and its refresh tokens) is revoked. Returns how many sessions ended.
    """
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    if verify_password(new_password, user.password_hash):
        raise ValidationError("New password must be different from current password")

    user.password_hash = hash_password(new_password, rounds=settings.BCRYPT_ROUNDS)
    user.login_attempts = 0
    user.locked_until = None
    revoked = sessions_service.revoke_user_sessions(db, user.id, keep_session_id=keep_session_id)
    db.commit()
    logger.info("Password changed: user_id=%s sessions_revoked=%s", user.id, revoked)
    return revoked
