"""Password hashing and JWT creation/verification for authentication."""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import bcrypt
import jwt
from jwt.utils import base64url_decode, base64url_encode

from app.core.config import DURATION_PATTERN, is_insecure_secret

if TYPE_CHECKING:
    from app.core.config import Settings

# Bcrypt cost (rounds) used when no settings are passed in.
BCRYPT_ROUNDS = 12
# bcrypt only looks at the first 72 bytes of its input.
BCRYPT_MAX_BYTES = 72

# Min/max lengths for email and password validation.
EMAIL_MAX_LEN = 255
NAME_MAX_LEN = 100
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


class TokenError(Exception):
    """Base class for token verification failures."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TokenInvalidError(TokenError):
    """Malformed token, bad signature, wrong algorithm or missing claims."""


class TokenExpiredError(TokenError):
    """Well-formed, correctly signed token whose exp is in the past."""


class TokenConfigurationError(Exception):
    """Signing secret is unset or a known placeholder; no token may be issued or accepted."""


@dataclass(frozen=True)
class TokenPayload:
    user_id: str
    issued_at: datetime
    expires_at: datetime
    session_id: str | None = None


def hash_password(plain_password: str, rounds: int | None = None) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    salt = bcrypt.gensalt(rounds=rounds or BCRYPT_ROUNDS)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


@lru_cache(maxsize=4)
def dummy_password_hash(rounds: int = BCRYPT_ROUNDS) -> str:
    """A throwaway digest at the given cost, verified against when the user does not exist."""
    return hash_password("inmotech-dummy-password", rounds=rounds)


def parse_duration(value: str) -> timedelta:
    """Parse '3600', '45s', '15m', '12h' or '7d' into a timedelta."""
    match = DURATION_PATTERN.match(value or "")
    if match is None:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = int(match.group(1)), match.group(2).lower()
    if amount <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return timedelta(seconds=amount * _DURATION_UNITS[unit])


def ensure_signing_secret(settings: "Settings") -> str:
    """Return the JWT secret, or raise TokenConfigurationError if it is unusable."""
    secret = settings.JWT_SECRET.get_secret_value() if settings.JWT_SECRET else None
    if is_insecure_secret(secret):
        raise TokenConfigurationError(
            "JWT_SECRET is not configured; set it to a long random value"
        )
    return secret


def create_access_token(
    user_id: str | int,
    settings: "Settings",
    *,
    session_id: str | None = None,
    now: datetime | None = None,
) -> str:
    """Create a JWT access token with sub (user id), iat, exp and optional jti (session id)."""
    secret = ensure_signing_secret(settings)
    issued_at = (now or datetime.now(UTC)).replace(microsecond=0)
    expire = issued_at + parse_duration(settings.JWT_EXPIRES_IN)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": expire,
    }
    if session_id is not None:
        payload["jti"] = session_id
    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(
    token: str,
    settings: "Settings",
    *,
    now: datetime | None = None,
) -> TokenPayload:
    """
    Verify signature and claims; return the decoded payload.
    Raises TokenInvalidError on any tampering or malformed input and
    TokenExpiredError once now >= exp.
    """
    secret = ensure_signing_secret(settings)
    try:
        _require_canonical_signature(token)
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp", "iat"], "verify_exp": False},
        )
    except (jwt.PyJWTError, ValueError, TypeError) as e:
        raise TokenInvalidError("Invalid token") from e

    sub, exp, iat = payload.get("sub"), payload.get("exp"), payload.get("iat")
    if not isinstance(sub, str) or not sub:
        raise TokenInvalidError("Invalid token payload")
    if not isinstance(exp, int) or not isinstance(iat, int):
        raise TokenInvalidError("Invalid token payload")

    current = now or datetime.now(UTC)
    if current.timestamp() >= exp:
        raise TokenExpiredError("Token expired")

    jti = payload.get("jti")
    return TokenPayload(
        user_id=sub,
        issued_at=datetime.fromtimestamp(iat, UTC),
        expires_at=datetime.fromtimestamp(exp, UTC),
        session_id=jti if isinstance(jti, str) and jti else None,
    )


def token_lifetime_seconds(settings: "Settings") -> int:
    return int(parse_duration(settings.JWT_EXPIRES_IN).total_seconds())


def _require_canonical_signature(token: str) -> None:
    """
    Reject a signature segment that does not re-encode to itself.

    Decoders ignore the spare bits of the last base64url character, so a
    non-canonical segment can decode to the genuine signature.
    """
    parts = token.split(".")
    if len(parts) != 3 or not parts[2]:
        return
    signature = parts[2].encode("ascii")
    if base64url_encode(base64url_decode(signature)) != signature:
        raise TokenInvalidError("Invalid token")


def refresh_token_lifetime(settings: "Settings") -> timedelta:
    return parse_duration(settings.REFRESH_TOKEN_EXPIRES_IN)


def new_refresh_token() -> str:
    """Opaque, URL-safe refresh token. Only its digest is stored."""
    return secrets.token_urlsafe(48)


def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
