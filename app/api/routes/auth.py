import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.api.deps_auth import current_user, ensure_admin, optional_user
from app.core.config import settings
from app.core.errors import AccountLocked, Forbidden, NotAuthenticated
from app.core.security import make_access_token, normalize_email, verify_password
from app.models.auth_models import User
from app.models.verification import SessionKind
from app.schemas.auth import (
    IssueBody, MessageResponse, InviteConfirmBody, InviteConfirmResponse,
    OtpVerifyBody, OtpVerifyResponse, PasswordResetBody,
    LoginBody, TokenOut, Me, RoleEnum,
)
from app.services import identity, login_throttle, verification
from app.services.admin_registry import is_privileged

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ---------- ISSUE ----------
@router.post(
    "/issue",
    response_model=MessageResponse,
    summary="Issue an invite link or a one-time code",
    description="""
Creates a fresh credential for `email`, replacing any pending one (any kind), and emails it.

- `admin_invite` → accept/decline links (valid 24 hours). **Requires an admin bearer token.**
- `password_reset` / `verification` → 6-digit code (valid 10 minutes). Public.

Resetting the password of a privileged admin alerts the other privileged admins.
""",
)
def issue(
    body: IssueBody,
    user: Optional[User] = Depends(optional_user),
    db: Session = Depends(get_db),
):
    inviter_name = body.inviter_name
    if body.kind == SessionKind.ADMIN_INVITE.value:
        inviter = ensure_admin(db, user)
        inviter_name = inviter_name or inviter.email
    verification.issue_credential(db, body.email, body.kind.value, inviter_name)
    if body.kind == SessionKind.ADMIN_INVITE.value:
        return MessageResponse(message="Invitation sent.")
    return MessageResponse(message="Verification code sent.")


# ---------- INVITE CONFIRM ----------
@router.post(
    "/invite/confirm",
    response_model=InviteConfirmResponse,
    summary="Accept or decline an emailed admin invitation",
    description="""
Pass the `token`, `email` and `action` from the invitation link.

- `decline` removes the invitation and notifies the privileged admins.
- `accept` creates the admin account (or resets an existing one) with the default password,
  grants the `admin` role and returns the password once.
""",
)
def confirm_invite(body: InviteConfirmBody, db: Session = Depends(get_db)):
    action, password = verification.confirm_admin_invite(db, body.email, body.token, body.action)
    if action == "declined":
        return InviteConfirmResponse(action="declined", message="Invitation declined.")
    return InviteConfirmResponse(action="accepted", message="Admin approved.", defaultPassword=password)


# ---------- OTP VERIFY ----------
@router.post(
    "/otp/verify",
    response_model=OtpVerifyResponse,
    summary="Verify a 6-digit code",
    description="A code can be verified once. For `password_reset` the response carries a `resetToken`.",
)
def verify_otp(body: OtpVerifyBody, db: Session = Depends(get_db)):
    reset_token = verification.verify_otp(db, body.email, body.otp, body.kind.value)
    return OtpVerifyResponse(message="Verification completed.", resetToken=reset_token)


# ---------- PASSWORD RESET ----------
@router.post(
    "/password/reset",
    response_model=MessageResponse,
    summary="Set a new password after a verified password_reset code",
    description="""
Spends the `resetToken` from `/auth/otp/verify`. Also clears any login lockout for the account.
""",
)
def password_reset(body: PasswordResetBody, db: Session = Depends(get_db)):
    verification.reset_password(db, body.reset_token, body.new_password)
    return MessageResponse(message="Password has been reset. Please log in with your new password.")


# ---------- LOGIN ----------
@router.post("/login", response_model=TokenOut, status_code=status.HTTP_200_OK)
def login(body: LoginBody, db: Session = Depends(get_db)):
    email = normalize_email(body.email)
    login_throttle.ensure_not_locked(db, email)

    user = identity.find_user(db, email)
    if not user or not user.password_hash or not verify_password(body.password, user.password_hash):
        failures = login_throttle.record_failure(db, email)
        if failures >= settings.login_lockout_threshold:
            raise AccountLocked()
        raise NotAuthenticated("Invalid credentials")
    if not user.is_active:
        raise Forbidden("Account is not active")

    login_throttle.clear(db, email)
    db.commit()
    role = identity.get_role(db, user.id)
    return TokenOut(
        access_token=make_access_token(str(user.id), user.email, role.value),
        role=RoleEnum(role.value),
    )


@router.get(
    "/me",
    response_model=Me,
    summary="Return the current authenticated user",
)
def me(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return Me(
        id=user.id,
        email=user.email,
        is_active=user.is_active,
        role=RoleEnum(identity.get_role(db, user.id).value),
        is_privileged=is_privileged(db, user.email),
    )
