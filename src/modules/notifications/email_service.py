"""Best-effort SMTP delivery for notification emails."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from jinja2 import ChainableUndefined, Environment

from src.config import settings
from src.modules.notifications.constants import EMAIL_SUBJECTS

logger = logging.getLogger(__name__)


# Subjects are plain text; missing payload keys render as empty strings
_subjects = Environment(undefined=ChainableUndefined, autoescape=False)


def render_subject(notification_type: str, data: dict) -> str:
    template = EMAIL_SUBJECTS.get(notification_type, "ProcureFlow notification")
    return _subjects.from_string(template).render(data)


class EmailService:
    """Sends plain-text emails over SMTP.

    Disabled unless ``notification_email_enabled`` is set. Sending never
    raises: failures are logged and reported as ``False``.
    """

    def __init__(self, smtp_factory=smtplib.SMTP) -> None:
        self.enabled = settings.notification_email_enabled
        self._smtp_factory = smtp_factory

    def send_email_by_type(self, notification_type: str, recipient: str, data: dict) -> bool:
        subject = render_subject(notification_type, data)
        body = data.get("message") or subject
        return self.send_email(recipient, subject, body)

    def send_email(self, recipient: str, subject: str, body: str) -> bool:
        if not self.enabled:
            logger.debug("Email disabled; skipping '%s' to %s", subject, recipient)
            return False
        if not recipient:
            logger.warning("No recipient for email '%s'", subject)
            return False

        message = EmailMessage()
        message["From"] = settings.email_sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)

        try:
            with self._smtp_factory(settings.smtp_host, settings.smtp_port, timeout=10) as smtp:
                if settings.smtp_use_tls:
                    smtp.starttls()
                if settings.smtp_username:
                    smtp.login(settings.smtp_username, settings.smtp_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send email '%s' to %s", subject, recipient)
            return False

        logger.info("Sent email '%s' to %s", subject, recipient)
        return True
