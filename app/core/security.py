from datetime import datetime, timedelta, timezone
from typing import Optional
import hashlib, os, re, base64, secrets
import jwt
from passlib.context import CryptContext
from app.core.config import settings
from app.core.errors import ValidationError

pwd_ctx = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
ALGO = "HS256"
RESET_PURPOSE = "password_reset"

EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
PASSWORD_RE = re.compile(r"^[A-Za-z0-9]{6,10}$")

def ensure_aware(dt: datetime) -> datetime:
    """Return a timezone-aware UTC datetime. If naive, assume UTC."""
    if dt is None:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)

def hash_password(p: str) -> str:
    return pwd_ctx.hash(p)

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_ctx.verify(plain, hashed)

def now_utc():
    return datetime.now(timezone.utc)

def normalize_email(email: str) -> str:
    return email.lower().strip()

def validate_email(email: Optional[str]) -> str:
    """Shape check used by clients before submitting; returns the normalized address."""
    if not email or not EMAIL_RE.match(email.strip()):
        raise ValidationError("Invalid email address.")
    return normalize_email(email)

def validate_password(password: Optional[str]) -> str:
    if not password or not PASSWORD_RE.match(password):
        raise ValidationError("Password must be 6 to 10 letters or digits.")
    return password

def validate_otp(otp: Optional[str]) -> str:
    otp = (otp or "").strip()
    if len(otp) != settings.otp_length or not otp.isdigit():
        raise ValidationError(f"The code must be {settings.otp_length} digits.")
    return otp

def make_access_token(sub: str, email: str, role: str) -> str:
    payload = {
        "iss": settings.jwt_issuer,
        "sub": sub,
        "email": email,
        "role": role,
        "iat": int(now_utc().timestamp()),
        "exp": int((now_utc() + timedelta(minutes=settings.access_ttl_min)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGO)

def make_reset_token(session_id: str, email: str) -> str:
    """Short-lived JWT handed out after a password_reset OTP is verified.

    Bound to the verification session row so it can only be spent once
    (the row's consumed_at is set when the password changes).
    """
    payload = {
        "iss": settings.jwt_issuer,
        "purpose": RESET_PURPOSE,
        "sid": str(session_id),
        "email": email,
        "iat": int(now_utc().timestamp()),
        "exp": int((now_utc() + timedelta(minutes=settings.otp_exp_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGO)

def decode_jwt(token: str) -> dict:
    return jwt.decode(token, settings.jwt_secret, algorithms=[ALGO], issuer=settings.jwt_issuer)

def random_token(n_bytes: int = 32) -> str:
    return base64.urlsafe_b64encode(os.urandom(n_bytes)).decode("utf-8").rstrip("=")

def generate_otp(length: int | None = None) -> str:
    # uniform over 0 .. 10**length - 1, zero-padded
    length = length or settings.otp_length
    return str(secrets.randbelow(10 ** length)).zfill(length)

def sha256(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()
