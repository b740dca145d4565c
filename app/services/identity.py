# app/services/identity.py
"""Identity and role-grant operations (users + user_roles tables)."""
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.security import hash_password, normalize_email, now_utc
from app.models.auth_models import Role, User, UserRole


def find_user(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_role(db: Session, user_id: UUID) -> Role:
    grant = db.query(UserRole).filter(UserRole.user_id == user_id).first()
    return grant.role if grant else Role.USER


def set_password(db: Session, user: User, password: str) -> None:
    user.password_hash = hash_password(password)
    db.add(user)


def create_identity(db: Session, email: str, password: str) -> User:
    """Create an active, pre-confirmed identity. Flushes so user.id is available.

    The UNIQUE email constraint makes concurrent creation fail with IntegrityError
    instead of producing two identities.
    """
    user = User(
        email=normalize_email(email),
        password_hash=hash_password(password),
        is_active=True,
        email_verified_at=now_utc(),
    )
    db.add(user)
    db.flush()
    return user


def grant_role(db: Session, user_id: UUID, role: Role) -> UserRole:
    """Upsert the role grant keyed by user id; re-running never duplicates."""
    grant = db.query(UserRole).filter(UserRole.user_id == user_id).first()
    if grant:
        grant.role = role
    else:
        grant = UserRole(user_id=user_id, role=role)
        db.add(grant)
    db.flush()
    return grant


def upsert_admin_identity(db: Session, email: str, password: str) -> User:
    """Reset the password of an existing identity or create one, then grant admin. Caller commits."""
    user = find_user(db, email)
    if user:
        set_password(db, user, password)
        if not user.is_active:
            user.is_active = True
        if not user.email_verified_at:
            user.email_verified_at = now_utc()
    else:
        user = create_identity(db, email, password)
    grant_role(db, user.id, Role.ADMIN)
    return user
