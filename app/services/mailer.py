import logging
import smtplib
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from app.core.config import settings
from app.core.errors import DeliveryError

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, html: str, from_name: Optional[str] = None):
    """
    Send an email via SMTP.

    Raises:
        DeliveryError: SMTP is not configured, the connection failed or the server refused the message.
    """
    if not settings.smtp_server:
        raise DeliveryError("SMTP_SERVER is not configured")

    msg = MIMEText(html, "html", "utf-8")
    msg["Subject"] = subject
    msg["From"] = formataddr((from_name or settings.mail_from_name, settings.mail_from))
    msg["To"] = to_email

    try:
        # Add timeout to prevent indefinite hangs
        with smtplib.SMTP(settings.smtp_server, settings.smtp_port, timeout=30) as server:
            server.starttls()
            if settings.smtp_user:
                server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.mail_from, [to_email], msg.as_string())
    except smtplib.SMTPException as e:
        raise DeliveryError(f"SMTP error sending email to {to_email}: {e}") from e
    except (ConnectionError, OSError, TimeoutError) as e:
        raise DeliveryError(f"Connection error sending email to {to_email}: {e}") from e
    logger.info("Email %r sent to %s", subject, to_email)
