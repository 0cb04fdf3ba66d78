import smtplib
from email.message import EmailMessage
from typing import Iterable, Optional, Union

import structlog

from storefront.core.config import settings
from storefront.core.exceptions import NotificationError

logger = structlog.get_logger()


def build_email(
    *,
    to: Union[str, Iterable[str]],
    subject: str,
    text: str,
    html: Optional[str] = None,
    from_email: Optional[str] = None,
) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = from_email or f"{settings.EMAILS_FROM_NAME} <{settings.EMAILS_FROM_EMAIL}>"
    msg["To"] = to if isinstance(to, str) else ", ".join(to)
    msg.set_content(text)

    if html:
        msg.add_alternative(html, subtype="html")

    return msg


def send_email_smtp(msg: EmailMessage) -> None:
    """
    Send an email message over SMTP.
    This is intended to be called from Celery workers, not request handlers.
    """
    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("smtp_send_failed", to=msg["To"], subject=msg["Subject"], error=str(exc))
        raise NotificationError(f"SMTP delivery to {msg['To']} failed") from exc
