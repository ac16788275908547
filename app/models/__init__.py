"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.session import RefreshToken, UserSession
from app.models.user import Role, User, UserRole

__all__ = ["Base", "RefreshToken", "Role", "User", "UserRole", "UserSession"]
