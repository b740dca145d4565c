# app/services/admin_registry.py
"""Privileged (fixed) admin registry, owned by the service instead of hardcoded lists."""
import logging
from typing import Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import normalize_email
from app.models.auth_models import PrivilegedAdmin

logger = logging.getLogger(__name__)


def list_privileged_emails(db: Session) -> list[str]:
    return [email for (email,) in db.query(PrivilegedAdmin.email).order_by(PrivilegedAdmin.email).all()]


def is_privileged(db: Session, email: str) -> bool:
    return db.get(PrivilegedAdmin, normalize_email(email)) is not None


def seed_privileged_admins(db: Session, emails: Iterable[str]) -> int:
    """Insert any missing registry rows. Safe to run on every startup; returns rows added."""
    added = 0
    for email in {normalize_email(e) for e in emails if e and e.strip()}:
        if db.get(PrivilegedAdmin, email) is not None:
            continue
        try:
            db.add(PrivilegedAdmin(email=email))
            db.commit()
            added += 1
        except IntegrityError:
            # another worker seeded it first
            db.rollback()
    if added:
        logger.info("Seeded %d privileged admin(s)", added)
    return added
