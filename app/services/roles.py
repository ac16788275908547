"""Role seeding, role management and role assignment."""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import Role, User, UserRole

logger = logging.getLogger(__name__)

DEFAULT_ROLES = {
    "admin": "Full administrative access",
    "investor": "Can invest in projects and track a portfolio",
    "user": "Standard registered user",
}


def seed_default_roles(db: Session) -> int:
    """Create any missing default roles. Returns how many were created."""
    existing = {name for (name,) in db.query(Role.name).all()}
    created = 0
    for name, description in DEFAULT_ROLES.items():
        if name not in existing:
            db.add(Role(name=name, description=description))
            created += 1
    if created:
        db.commit()
        logger.info("Seeded %s default role(s)", created)
    return created


def get_role(db: Session, name: str) -> Role | None:
    return db.query(Role).filter(Role.name == name.strip().lower(), Role.is_active.is_(True)).first()


def find_assignment(user: User, role_name: str) -> UserRole | None:
    for assignment in user.user_roles:
        if assignment.role is not None and assignment.role.name == role_name:
            return assignment
    return None


def assign_role(db: Session, user: User, role: Role, assigned_by: str | None = None) -> UserRole:
    """Attach role to user. Caller checks for an existing assignment and commits."""
    assignment = UserRole(role=role, assigned_by=assigned_by)
    user.user_roles.append(assignment)
    db.flush()
    return assignment


def count_assignments(db: Session, role_id: str) -> int:
    return db.query(func.count(UserRole.id)).filter(UserRole.role_id == role_id).scalar() or 0


def list_roles(db: Session) -> list[tuple[Role, int]]:
    """All roles (active or not) with how many users hold each."""
    rows = (
        db.query(Role, func.count(UserRole.id))
        .outerjoin(UserRole, UserRole.role_id == Role.id)
        .group_by(Role.id)
        .order_by(Role.name)
        .all()
    )
    return [(role, count) for role, count in rows]


def name_taken(db: Session, name: str, exclude_role_id: str | None = None) -> bool:
    query = db.query(Role.id).filter(Role.name == name)
    if exclude_role_id is not None:
        query = query.filter(Role.id != exclude_role_id)
    return query.first() is not None


def create_role(db: Session, name: str, description: str | None = None) -> Role:
    """Add a role. Caller checks name_taken and commits."""
    role = Role(name=name, description=description, is_active=True)
    db.add(role)
    db.flush()
    return role
