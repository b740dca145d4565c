from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.errors import Forbidden, NotAuthenticated
from app.core.security import decode_jwt
from app.models.auth_models import Role, User
from app.services.identity import get_role


bearer = HTTPBearer(auto_error=False)


def _user_from_token(token: str, db: Session) -> User:
    try:
        payload = decode_jwt(token)
    except Exception:
        # invalid signature, expired, malformed, etc.
        raise NotAuthenticated("Invalid or expired token")
    try:
        uid = UUID(payload.get("sub") or "")
    except ValueError:
        raise NotAuthenticated("Invalid token payload")

    user = db.get(User, uid)
    if not user:
        raise NotAuthenticated("User not found")
    if not user.is_active:
        raise Forbidden("User is not active")
    return user


def current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """
    Authenticate with Bearer access token and return the User.
    Blocks inactive users.
    """
    if not creds or creds.scheme.lower() != "bearer":
        raise NotAuthenticated("Missing or invalid Authorization header")
    return _user_from_token(creds.credentials, db)


def optional_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Like current_user, but anonymous callers get None instead of a 401."""
    if not creds or creds.scheme.lower() != "bearer":
        return None
    return _user_from_token(creds.credentials, db)


def ensure_admin(db: Session, user: Optional[User]) -> User:
    if user is None:
        raise NotAuthenticated("Admin authentication required")
    if get_role(db, user.id) != Role.ADMIN:
        raise Forbidden("Only admins can do this")
    return user


def require_admin(
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
) -> User:
    return ensure_admin(db, user)
