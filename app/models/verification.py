from enum import Enum
from uuid import uuid4
from sqlalchemy import Column, DateTime, String, Boolean, Uuid, Enum as SAEnum

from app.core.security import now_utc
from app.db.base import Base


class SessionKind(str, Enum):
    ADMIN_INVITE = "admin_invite"
    PASSWORD_RESET = "password_reset"
    VERIFICATION = "verification"


class VerificationSession(Base):
    """Pending credential for an email. One row per email; re-issuing overwrites it."""
    __tablename__ = "user_sessions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String(320), unique=True, index=True, nullable=False)  # store lowercase
    code_hash = Column(String(128), nullable=False)
    kind = Column(SAEnum(SessionKind, values_callable=lambda e: [m.value for m in e], name="session_kind"),
                  nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    consumed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
