# app/services/verification.py
"""
Issuance and confirmation of verification sessions.

A session row (one per email) is the only state shared between issuing a
credential and confirming it; every call here re-reads it from the database.

    issued(unverified) --[matching code + kind, inside window]--> verified
    verified (password_reset) --[password changed]--> consumed

Expiry is lazy: rows are never deleted for being old, they simply stop
validating. An admin_invite row is deleted only when the invite is declined.
"""
import logging
from datetime import timedelta
from typing import Optional, Tuple
from urllib.parse import urlencode
from uuid import UUID

import jwt
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    CredentialAlreadyUsed, Expired, IdentityProviderError, InvalidCode,
    InvalidOrExpiredToken, PersistenceError,
)
from app.core.security import (
    RESET_PURPOSE, decode_jwt, ensure_aware, generate_otp, make_reset_token,
    normalize_email, now_utc, random_token, sha256,
)
from app.models.auth_models import User
from app.models.verification import SessionKind, VerificationSession
from app.services import identity, login_throttle, notifications
from app.services.admin_registry import is_privileged

logger = logging.getLogger(__name__)

OTP_KINDS = {SessionKind.PASSWORD_RESET, SessionKind.VERIFICATION}


def _window(kind: SessionKind) -> timedelta:
    if kind == SessionKind.ADMIN_INVITE:
        return timedelta(hours=settings.admin_invite_exp_hours)
    return timedelta(minutes=settings.otp_exp_minutes)


def is_expired(rec: VerificationSession, window: timedelta) -> bool:
    return now_utc() - ensure_aware(rec.created_at) > window


def invite_links(token: str, email: str) -> Tuple[str, str]:
    base = f"{settings.app_base_url.rstrip('/')}/admin-invite"
    accept = f"{base}?{urlencode({'token': token, 'email': email, 'action': 'accept'})}"
    decline = f"{base}?{urlencode({'token': token, 'email': email, 'action': 'decline'})}"
    return accept, decline


# ---------- issuance ----------

def _write_session(db: Session, email: str, kind: SessionKind, code_hash: str) -> VerificationSession:
    rec = db.query(VerificationSession).filter(VerificationSession.email == email).first()
    if rec is None:
        rec = VerificationSession(email=email)
        db.add(rec)
    rec.kind = kind
    rec.code_hash = code_hash
    rec.verified = False
    rec.consumed_at = None
    rec.created_at = now_utc()
    db.flush()
    return rec


def upsert_session(db: Session, email: str, kind: SessionKind, code_hash: str) -> VerificationSession:
    """Replace whatever session exists for email (any kind). Last write wins."""
    try:
        try:
            rec = _write_session(db, email, kind, code_hash)
        except IntegrityError:
            # a concurrent issuance inserted the row first; overwrite it
            db.rollback()
            rec = _write_session(db, email, kind, code_hash)
        db.commit()
        return rec
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not persist %s session for %s", kind.value, email)
        raise PersistenceError()


def issue_credential(
    db: Session, email: str, kind: SessionKind, inviter_name: Optional[str] = None
) -> Tuple[str, VerificationSession]:
    """Create a fresh token/code, store only its hash (upsert by email) and email it.

    Returns the raw credential and the session row. Mail failures are logged by
    the notification helpers and do not undo the stored session.
    """
    email = normalize_email(email)
    kind = SessionKind(kind)
    raw = random_token(32) if kind == SessionKind.ADMIN_INVITE else generate_otp()
    rec = upsert_session(db, email, kind, sha256(raw))
    logger.info("Issued %s credential for %s", kind.value, email)

    if kind == SessionKind.ADMIN_INVITE:
        accept_url, decline_url = invite_links(raw, email)
        delivered = notifications.send_admin_invite(email, accept_url, decline_url, inviter_name)
    else:
        delivered = notifications.send_otp(email, kind.value, raw)
        if kind == SessionKind.PASSWORD_RESET and is_privileged(db, email):
            notifications.send_reset_security_alert(db, email)
    if not delivered:
        logger.warning("Session for %s stored but the %s email was not delivered", email, kind.value)
    return raw, rec


# ---------- confirmation ----------

def _find_session(db: Session, email: str, code: str, kind: SessionKind) -> Optional[VerificationSession]:
    return (
        db.query(VerificationSession)
        .filter(
            VerificationSession.email == normalize_email(email),
            VerificationSession.kind == kind,
            VerificationSession.code_hash == sha256(code),
        )
        .first()
    )


def _claim(db: Session, rec: VerificationSession) -> bool:
    """Compare-and-swap verified false -> true. Only one concurrent caller wins."""
    won = db.execute(
        update(VerificationSession)
        .where(VerificationSession.id == rec.id, VerificationSession.verified.is_(False))
        .values(verified=True)
    ).rowcount == 1
    if won:
        rec.verified = True
    return won


def confirm_admin_invite(db: Session, email: str, token: str, action: str) -> Tuple[str, Optional[str]]:
    """Accept or decline an emailed invite.

    Returns ("declined", None) or ("accepted", default_password).
    """
    email = normalize_email(email)
    rec = _find_session(db, email, token, SessionKind.ADMIN_INVITE)
    if not rec:
        raise InvalidOrExpiredToken()
    if is_expired(rec, _window(SessionKind.ADMIN_INVITE)):
        raise Expired("This invitation has expired.")

    if rec.verified:
        raise CredentialAlreadyUsed("This invitation has already been accepted.")

    if action == "decline":
        try:
            # an accept that wins the race keeps its row
            deleted = (
                db.query(VerificationSession)
                .filter(VerificationSession.id == rec.id, VerificationSession.verified.is_(False))
                .delete(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not delete declined invite for %s", email)
            raise PersistenceError("Could not record the decline.")
        if deleted != 1:
            raise CredentialAlreadyUsed("This invitation has already been accepted.")
        db.expunge(rec)
        logger.info("Admin invite declined by %s", email)
        notifications.notify_invite_declined(db, email)
        return "declined", None

    password = settings.default_admin_password
    try:
        if not _claim(db, rec):
            db.rollback()
            raise CredentialAlreadyUsed("This invitation has already been accepted.")
        identity.upsert_admin_identity(db, email, password)
        db.commit()
    except CredentialAlreadyUsed:
        raise
    except SQLAlchemyError:
        # rollback releases the claim: the token stays usable for a retry
        db.rollback()
        logger.exception("Account update failed while accepting invite for %s", email)
        raise IdentityProviderError("Could not create the admin account.")

    logger.info("Admin invite accepted by %s", email)
    notifications.notify_invite_accepted(db, email)
    return "accepted", password


def verify_otp(db: Session, email: str, otp: str, kind: SessionKind) -> Optional[str]:
    """Check a numeric code and mark the session verified.

    A second verification of the same code is refused (CredentialAlreadyUsed).
    For password_reset returns a reset token to spend on reset_password();
    otherwise None. admin_invite role grants are not performed here.
    """
    email = normalize_email(email)
    kind = SessionKind(kind)
    rec = _find_session(db, email, otp, kind)
    if not rec:
        raise InvalidCode()
    if is_expired(rec, timedelta(minutes=settings.otp_exp_minutes)):
        raise Expired("The code has expired.")
    if rec.verified:
        raise CredentialAlreadyUsed("This code has already been used.")

    try:
        won = _claim(db, rec)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not mark %s session verified for %s", kind.value, email)
        raise PersistenceError("Could not complete the verification.")
    if not won:
        raise CredentialAlreadyUsed("This code has already been used.")

    logger.info("Verified %s code for %s", kind.value, email)
    if kind == SessionKind.PASSWORD_RESET:
        return make_reset_token(str(rec.id), email)
    return None


def reset_password(db: Session, reset_token: str, new_password: str) -> User:
    """Terminal step of the password_reset flow: set the password, consume the session."""
    try:
        payload = decode_jwt(reset_token)
    except jwt.ExpiredSignatureError:
        raise Expired("The reset session has expired. Request a new code.")
    except jwt.PyJWTError:
        raise InvalidOrExpiredToken("Invalid reset token.")
    if payload.get("purpose") != RESET_PURPOSE or not payload.get("sid"):
        raise InvalidOrExpiredToken("Invalid reset token.")

    try:
        sid = UUID(payload["sid"])
    except ValueError:
        raise InvalidOrExpiredToken("Invalid reset token.")
    rec = db.get(VerificationSession, sid)
    if (
        not rec
        or rec.kind != SessionKind.PASSWORD_RESET
        or rec.email != payload.get("email")
        or not rec.verified
    ):
        # overwritten by a newer issuance, or never verified
        raise InvalidOrExpiredToken("Invalid reset token.")
    if rec.consumed_at is not None:
        raise CredentialAlreadyUsed("This reset code has already been used.")

    user = identity.find_user(db, rec.email)
    if not user:
        raise IdentityProviderError("No account exists for this email.")

    try:
        consumed = db.execute(
            update(VerificationSession)
            .where(VerificationSession.id == rec.id, VerificationSession.consumed_at.is_(None))
            .values(consumed_at=now_utc())
        ).rowcount == 1
        if not consumed:
            db.rollback()
            raise CredentialAlreadyUsed("This reset code has already been used.")
        identity.set_password(db, user, new_password)
        login_throttle.clear(db, rec.email)
        db.commit()
    except CredentialAlreadyUsed:
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Password update failed for %s", rec.email)
        raise IdentityProviderError("Could not update the password.")

    logger.info("Password reset completed for %s", rec.email)
    notifications.send_password_changed(rec.email)
    return user
