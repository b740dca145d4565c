from enum import Enum
from uuid import uuid4
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Integer, Uuid, Enum as SAEnum
from sqlalchemy.orm import relationship

from app.core.security import now_utc
from app.db.base import Base


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


class User(Base):
    """Authentication identity. Role grants live in user_roles, keyed by the durable id."""
    __tablename__ = "users"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String(320), unique=True, index=True, nullable=False)  # store lowercase
    password_hash = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=False, nullable=False)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    role_grant = relationship("UserRole", back_populates="user", uselist=False, cascade="all, delete-orphan")


class UserRole(Base):
    __tablename__ = "user_roles"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    # one grant per identity; upserts go through this constraint
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    role = Column(SAEnum(Role, values_callable=lambda e: [m.value for m in e], name="app_role"),
                  nullable=False, default=Role.USER)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    user = relationship("User", back_populates="role_grant")


class PrivilegedAdmin(Base):
    """Registry of fixed admins: break-glass alerts and invite notifications go here."""
    __tablename__ = "privileged_admins"
    email = Column(String(320), primary_key=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)


class LoginAttempt(Base):
    """Failed password-login counter per normalized email."""
    __tablename__ = "login_attempts"
    email = Column(String(320), primary_key=True)
    failed_count = Column(Integer, default=0, nullable=False)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
