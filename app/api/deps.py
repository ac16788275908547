"""
Request guards shared by the routers.

Each guard is a FastAPI dependency that either returns context for the next
one or short-circuits the request by raising an AppError. protect() builds
the ordered list for a router: rate limit, then authentication, then
(optionally) admin authorization.
"""

import logging
from typing import Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.database import get_db
from app.core.errors import AuthenticationError, AuthorizationError, RateLimitError
from app.core.rate_limit import FixedWindowRateLimiter
from app.core.security import TokenExpiredError, TokenInvalidError, decode_access_token
from app.models import User
from app.schemas.auth import CurrentUser
from app.services import sessions as sessions_service
from app.services.auth import ClientInfo

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

API_LIMITER = "api"
AUTH_LIMITER = "auth"


def get_app_settings(request: Request) -> Settings:
    """Dependency: the Settings the running app was created with."""
    return request.app.state.settings


def client_identity(request: Request) -> str:
    """
    Client address used for rate limiting and session records.

    Proxy headers (first X-Forwarded-For hop, then X-Real-IP) are only read
    when TRUST_PROXY_HEADERS is set; otherwise the peer address is used.
    """
    settings: Settings = request.app.state.settings
    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        real_ip = request.headers.get("x-real-ip")
        if real_ip and real_ip.strip():
            return real_ip.strip()
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=client_identity(request),
        user_agent=request.headers.get("user-agent"),
    )


def build_rate_limiters(settings: Settings) -> dict[str, FixedWindowRateLimiter]:
    return {
        API_LIMITER: FixedWindowRateLimiter(
            settings.RATE_LIMIT_MAX, settings.RATE_LIMIT_WINDOW_SECONDS
        ),
        AUTH_LIMITER: FixedWindowRateLimiter(
            settings.AUTH_RATE_LIMIT_MAX, settings.AUTH_RATE_LIMIT_WINDOW_SECONDS
        ),
    }


def rate_limit(name: str = API_LIMITER):
    """Build a dependency that counts the request against the named limiter (429 when over)."""

    def check_rate_limit(request: Request) -> None:
        settings: Settings = request.app.state.settings
        if not settings.RATE_LIMIT_ENABLED:
            return
        limiter: FixedWindowRateLimiter = request.app.state.rate_limiters[name]
        client = client_identity(request)
        result = limiter.check(f"{client}:{request.url.path}")
        if not result.allowed:
            logger.warning(
                "Rate limit exceeded: limiter=%s client=%s path=%s", name, client, request.url.path
            )
            raise RateLimitError(retry_after=result.reset_after, limit=result.limit)

    return check_rate_limit


def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> CurrentUser:
    """Dependency: require valid Bearer JWT and return the current user. Raises 401 if missing or invalid."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")
    try:
        payload = decode_access_token(credentials.credentials, settings)
    except TokenExpiredError:
        raise AuthenticationError("Token expired")
    except TokenInvalidError:
        raise AuthenticationError("Invalid token")

    user = db.get(User, payload.user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    if settings.SESSION_TRACKING_ENABLED and payload.session_id is not None:
        session = sessions_service.get_valid_session(db, payload.session_id, user.id)
        if session is None:
            raise AuthenticationError("Session revoked")
        sessions_service.touch_session(db, session)

    current = CurrentUser(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        is_verified=bool(user.is_verified),
        is_admin=bool(user.is_admin),
        roles=user.role_names,
        session_id=payload.session_id,
    )
    request.state.user = current
    return current


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require the admin flag or an admin role. Raises 403 otherwise."""
    if not current_user.has_admin_access:
        logger.info("Admin access denied: user_id=%s", current_user.id)
        raise AuthorizationError("Admin access required")
    return current_user


def protect(admin: bool = False, limiter: str | None = API_LIMITER) -> list[Any]:
    """Ordered guard list for a router or route: rate limit, authenticate, authorize."""
    guards: list[Any] = []
    if limiter is not None:
        guards.append(Depends(rate_limit(limiter)))
    guards.append(Depends(require_admin if admin else get_current_user))
    return guards
