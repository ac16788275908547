"""ORM models for persisted login sessions and their refresh tokens."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, func
from sqlalchemy.orm import relationship

from app.models.base import Base, new_id, utcnow


class UserSession(Base):
    """
    Server-side record of a login. The session id is carried in the token's
    jti claim; marking the row inactive revokes the token before it expires.
    expires_at tracks the latest refresh token issued for the session.
    """

    __tablename__ = "user_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    last_activity = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    user = relationship("User", back_populates="sessions")
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class RefreshToken(Base):
    """
    Single-use refresh token. Only the SHA-256 digest is stored; each refresh
    revokes the presented token and issues a new one for the same session.
    """

    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(
        String(36), ForeignKey("user_sessions.id", ondelete="CASCADE"), nullable=True, index=True
    )
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    is_revoked = Column(Boolean, nullable=False, default=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    session = relationship("UserSession", back_populates="refresh_tokens")
