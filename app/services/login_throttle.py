# app/services/login_throttle.py
"""
Server-side failed-login counter.

Keyed by normalized email (not by identity id) so unknown addresses are
throttled the same way as real ones. Once ``failed_count`` reaches the
configured threshold the email is locked until a password reset completes.
"""
import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AccountLocked
from app.core.security import normalize_email, now_utc
from app.models.auth_models import LoginAttempt

logger = logging.getLogger(__name__)


def is_locked(db: Session, email: str) -> bool:
    row = db.get(LoginAttempt, normalize_email(email))
    return bool(row and row.locked_at is not None)


def ensure_not_locked(db: Session, email: str) -> None:
    if is_locked(db, email):
        raise AccountLocked()


def _increment(db: Session, email: str) -> int:
    return db.execute(
        update(LoginAttempt)
        .where(LoginAttempt.email == email)
        .values(failed_count=LoginAttempt.failed_count + 1, updated_at=now_utc())
    ).rowcount


def record_failure(db: Session, email: str) -> int:
    """Atomically bump the counter, lock at the threshold, commit. Returns the new count."""
    email = normalize_email(email)
    if not _increment(db, email):
        try:
            db.add(LoginAttempt(email=email, failed_count=1))
            db.flush()
        except IntegrityError:
            # concurrent first failure inserted the row; fall back to the increment
            db.rollback()
            _increment(db, email)

    row = db.get(LoginAttempt, email)
    db.refresh(row)
    if row.failed_count >= settings.login_lockout_threshold and row.locked_at is None:
        row.locked_at = now_utc()
        logger.warning("Password login locked for %s after %d failed attempts", email, row.failed_count)
    db.commit()
    return row.failed_count


def clear(db: Session, email: str) -> None:
    """Forget failures for email. Caller commits."""
    db.query(LoginAttempt).filter(LoginAttempt.email == normalize_email(email)).delete()
