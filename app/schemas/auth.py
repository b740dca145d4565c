from typing import Optional, Annotated, Literal, List
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, ConfigDict, StringConstraints
from uuid import UUID
from enum import Enum

class KindEnum(str, Enum):
    ADMIN_INVITE = "admin_invite"
    PASSWORD_RESET = "password_reset"
    VERIFICATION = "verification"

class RoleEnum(str, Enum):
    ADMIN = "admin"
    USER = "user"

NameStr = Annotated[str, StringConstraints(min_length=1, max_length=80, strip_whitespace=True)]
OtpStr = Annotated[str, StringConstraints(pattern=r"^\d{6}$", strip_whitespace=True)]
PasswordStr = Annotated[str, StringConstraints(pattern=r"^[A-Za-z0-9]{6,10}$")]

# --- issuance ---

class IssueBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    kind: KindEnum
    inviter_name: Optional[NameStr] = Field(default=None, alias="inviterName")

class AdminInviteBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    inviter_name: Optional[NameStr] = Field(default=None, alias="inviterName")

class MessageResponse(BaseModel):
    success: bool = True
    message: str

# --- confirmation / verification ---

class InviteConfirmBody(BaseModel):
    token: str = Field(..., min_length=1, description="Raw invite token from the emailed link.")
    email: EmailStr
    action: Literal["accept", "decline"]

class InviteConfirmResponse(BaseModel):
    success: bool = True
    action: Literal["accepted", "declined"]
    message: str
    defaultPassword: Optional[str] = Field(
        default=None, description="Assigned password, returned once on acceptance."
    )

class OtpVerifyBody(BaseModel):
    email: EmailStr
    otp: OtpStr
    kind: KindEnum

class OtpVerifyResponse(BaseModel):
    success: bool = True
    message: str
    resetToken: Optional[str] = Field(
        default=None, description="Present for password_reset; spend it on /auth/password/reset."
    )

class PasswordResetBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reset_token: str = Field(..., alias="resetToken", description="Token returned by /auth/otp/verify.")
    new_password: PasswordStr = Field(..., alias="newPassword", description="6 to 10 letters or digits.")

# --- login ---

class LoginBody(BaseModel):
    email: EmailStr
    password: str

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: RoleEnum

class Me(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    email: EmailStr
    is_active: bool
    role: RoleEnum
    is_privileged: bool = False

class AdminOut(BaseModel):
    user_id: UUID
    email: EmailStr
    role: RoleEnum
    granted_at: datetime
    is_privileged: bool = False

class AdminList(BaseModel):
    admins: List[AdminOut] = []
