# app/services/notifications.py
"""
Transactional emails for the invitation / OTP workflow.

All senders are best-effort: a DeliveryError is logged and reported through the
boolean return value, never raised, so a persisted session is not rolled back
because the mail provider failed.
"""
import logging
from datetime import datetime
from html import escape

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import DeliveryError
from app.core.security import now_utc
from app.services import mailer
from app.services.admin_registry import list_privileged_emails

logger = logging.getLogger(__name__)


def _layout(title: str, body: str) -> str:
    app_name = escape(settings.app_name)
    return f'''<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>{escape(title)} - {app_name}</title>
    <style>
        body {{ font-family: 'Segoe UI', Roboto, Helvetica, Arial, sans-serif; background-color: #f6f8fb; margin: 0; padding: 0; color: #333; }}
        .container {{ max-width: 600px; margin: 40px auto; background-color: #fff; border-radius: 12px; box-shadow: 0 4px 8px rgba(0,0,0,0.05); overflow: hidden; }}
        .header {{ background-color: #0f172a; color: #fff; text-align: center; padding: 24px; }}
        .content {{ padding: 32px; line-height: 1.6; }}
        .btn {{ display:inline-block; background:#0f172a; color:#ffffff !important; padding:12px 20px; border-radius:8px; text-decoration:none }}
        .btn-muted {{ display:inline-block; background:#e5e7eb; color:#4b5563 !important; padding:12px 20px; border-radius:8px; text-decoration:none }}
        .code {{ font-size: 32px; font-weight: bold; letter-spacing: 8px; text-align: center; background: #f3f4f6; border-radius: 12px; padding: 24px; }}
        .footer {{ text-align: center; color: #999; font-size: 12px; padding: 16px 0; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h2>{app_name}</h2>
        </div>
        <div class="content">
            {body}
        </div>
        <div class="footer">
            &copy; {now_utc().year} {app_name}. All rights reserved.
        </div>
    </div>
</body>
</html>
'''


def _deliver(to_email: str, subject: str, html: str) -> bool:
    try:
        mailer.send_email(to_email, subject, html, from_name=settings.mail_from_name)
        return True
    except DeliveryError as e:
        logger.error("Email %r to %s not delivered: %s", subject, to_email, e)
        return False


def send_admin_invite(to_email: str, accept_url: str, decline_url: str, inviter_name: str | None) -> bool:
    who = f"<strong>{escape(inviter_name)}</strong> has invited you" if inviter_name else "You have been invited"
    hours = settings.admin_invite_exp_hours
    body = f'''
            <h3>Admin invitation</h3>
            <p>{who} to become an <strong>administrator</strong> of {escape(settings.app_name)}.</p>
            <p>Do you accept this invitation?</p>
            <p>
                <a class="btn" href="{escape(accept_url)}" style="color:#ffffff !important; text-decoration:none;">Yes, I accept</a>
                &nbsp;
                <a class="btn-muted" href="{escape(decline_url)}" style="text-decoration:none;">No, decline</a>
            </p>
            <p><strong>Note:</strong> if you accept, your initial password will be
               <code>{escape(settings.default_admin_password)}</code>. Change it after your first login.</p>
            <p>If the buttons don't work, copy these links into your browser:<br>
               Accept: <a href="{escape(accept_url)}">{escape(accept_url)}</a><br>
               Decline: <a href="{escape(decline_url)}">{escape(decline_url)}</a></p>
            <p>This invitation expires in <strong>{hours} hours</strong>. If you did not expect it, ignore this message.</p>
'''
    return _deliver(to_email, f"Admin invitation - {settings.app_name}", _layout("Admin invitation", body))


_OTP_COPY = {
    "password_reset": ("Reset your password", "We received a request to reset your password.",
                       " If you didn't request a reset, ignore this email."),
    "verification": ("Verify your account", "Use this code to verify your account.", ""),
    "admin_invite": ("Admin invitation", "Use this code to complete your admin registration.", ""),
}


def send_otp(to_email: str, kind: str, code: str) -> bool:
    title, intro, outro = _OTP_COPY[kind]
    minutes = settings.otp_exp_minutes
    body = f'''
            <h3>{title}</h3>
            <p>{intro}</p>
            <p>Your verification code:</p>
            <div class="code">{escape(code)}</div>
            <p>This code expires in <strong>{minutes} minutes</strong>.{outro}</p>
'''
    return _deliver(to_email, f"{title} - {settings.app_name}", _layout(title, body))


def send_reset_security_alert(db: Session, target_email: str, at: datetime | None = None) -> int:
    """Warn every other privileged admin that a password reset was requested for target_email."""
    at = at or now_utc()
    recipients = [e for e in list_privileged_emails(db) if e != target_email]
    body = f'''
            <h3>Security alert</h3>
            <p>Someone requested a password reset for the admin account:</p>
            <p><strong>{escape(target_email)}</strong></p>
            <p>If this wasn't expected, contact the other administrators and check the account.</p>
            <p style="color:#999; font-size:12px;">Date and time: {at.strftime("%Y-%m-%d %H:%M:%S %Z")}</p>
'''
    html = _layout("Security alert", body)
    logger.warning("Password reset requested for privileged admin %s, alerting %d admin(s)", target_email, len(recipients))
    return sum(_deliver(r, f"Admin password reset attempt - {settings.app_name}", html) for r in recipients)


def notify_invite_declined(db: Session, email: str) -> int:
    body = f'''
            <h3>Admin not approved</h3>
            <p>The user <strong>{escape(email)}</strong> declined the admin invitation.</p>
'''
    html = _layout("Admin invitation declined", body)
    return sum(_deliver(r, f"Admin invitation declined - {settings.app_name}", html)
               for r in list_privileged_emails(db))


def notify_invite_accepted(db: Session, email: str) -> int:
    body = f'''
            <h3>Admin approved</h3>
            <p>The user <strong>{escape(email)}</strong> accepted the invitation and is now an admin.</p>
'''
    html = _layout("New admin approved", body)
    return sum(_deliver(r, f"New admin approved - {settings.app_name}", html)
               for r in list_privileged_emails(db))


def send_password_changed(to_email: str) -> bool:
    body = f'''
            <h3>Password Changed Successfully</h3>
            <p>Hello {escape(to_email)},</p>
            <p>This is a confirmation that your password for <strong>{escape(settings.app_name)}</strong> was successfully updated.</p>
            <p>If you did not make this change, please <a href="mailto:{escape(settings.mail_from)}" style="color: #0f172a; text-decoration: underline;">contact our support team</a> immediately.</p>
'''
    return _deliver(to_email, "Password Changed Successfully", _layout("Password Changed Successfully", body))
