from pydantic import BaseModel
import os


from dotenv import load_dotenv
load_dotenv()
class Settings(BaseModel):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./catalog.db")
    app_name: str = os.getenv("APP_NAME", "Catalog Admin")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: str = os.getenv("CORS_ORIGINS", "*")

    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_issuer: str = os.getenv("JWT_ISSUER", "catalog-admin-api")
    access_ttl_min: int = int(os.getenv("ACCESS_TOKEN_TTL_MIN", "60"))

    smtp_server: str = os.getenv("SMTP_SERVER", "")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_user: str = os.getenv("SMTP_USER", "")
    smtp_password: str = os.getenv("SMTP_PASSWORD", "")
    mail_from: str = os.getenv("MAIL_FROM", "")
    mail_from_name: str = os.getenv("MAIL_FROM_NAME", "Catalog Admin")

    # Base URL of the web client; accept/decline links point at {app_base_url}/admin-invite
    app_base_url: str = os.getenv("APP_BASE_URL", "http://localhost:5173")

    otp_length: int = int(os.getenv("OTP_LENGTH", "6"))
    otp_exp_minutes: int = int(os.getenv("OTP_EXP_MINUTES", "10"))
    admin_invite_exp_hours: int = int(os.getenv("ADMIN_INVITE_EXP_HOURS", "24"))
    # Assigned to every accepted invite. Shared across admins; see DESIGN.md.
    default_admin_password: str = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin026")
    # Failed password logins per email before further attempts are refused
    login_lockout_threshold: int = int(os.getenv("LOGIN_LOCKOUT_THRESHOLD", "3"))

    # Comma-separated seed for the privileged admin registry
    fixed_admin_emails: str = os.getenv("FIXED_ADMIN_EMAILS", "")

    @property
    def fixed_admin_email_list(self) -> list[str]:
        return [e.strip().lower() for e in self.fixed_admin_emails.split(",") if e.strip()]

settings = Settings()
