from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.api.deps_auth import require_admin
from app.models.auth_models import Role, User, UserRole
from app.models.verification import SessionKind
from app.schemas.auth import AdminInviteBody, AdminList, AdminOut, MessageResponse, RoleEnum
from app.services import verification
from app.services.admin_registry import list_privileged_emails

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/admins",
    response_model=AdminList,
    summary="List accounts holding the admin role (Admin)",
)
def list_admins(
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    privileged = set(list_privileged_emails(db))
    rows = (
        db.query(UserRole, User)
        .join(User, User.id == UserRole.user_id)
        .filter(UserRole.role == Role.ADMIN)
        .order_by(User.email)
        .all()
    )
    return AdminList(admins=[
        AdminOut(
            user_id=u.id,
            email=u.email,
            role=RoleEnum(grant.role.value),
            granted_at=grant.created_at,
            is_privileged=u.email in privileged,
        )
        for (grant, u) in rows
    ])


@router.post(
    "/invite",
    response_model=MessageResponse,
    summary="Invite a new admin (Admin)",
    description="Shortcut for `POST /auth/issue` with `kind=admin_invite`.",
)
def invite_admin(
    body: AdminInviteBody,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    verification.issue_credential(db, body.email, SessionKind.ADMIN_INVITE.value, body.inviter_name or user.email)
    return MessageResponse(message="Invitation sent.")
