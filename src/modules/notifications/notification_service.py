"""NotificationService: in-app notification rows written by outbox workers."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.models.notification import Notification
from src.models.user import User
from src.modules.notifications.constants import IN_APP_ONLY_TYPES
from src.modules.notifications.email_service import EmailService

logger = logging.getLogger(__name__)


def _as_uuid(value) -> uuid.UUID | None:
    if value is None or value == "":
        return None
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


class NotificationService:
    """Runs inside a Celery worker with a sync session owned by the caller."""

    def __init__(self, session: Session, email_service: EmailService | None = None) -> None:
        self.session = session
        self.email = email_service or EmailService()

    def create_notification(
        self,
        type: str,
        title: str,
        message: str,
        user_id,
        related_user_id=None,
        related_entity_id=None,
        related_entity_type: str | None = None,
        data: dict | None = None,
        send_email: bool = True,
    ) -> Notification:
        notification = Notification(
            user_id=_as_uuid(user_id),
            type=type,
            title=title,
            message=message,
            related_user_id=_as_uuid(related_user_id),
            related_entity_id=_as_uuid(related_entity_id),
            related_entity_type=related_entity_type,
            data=data or {},
            is_read=False,
            is_email_sent=False,
        )
        self.session.add(notification)
        self.session.flush()

        if send_email and type not in IN_APP_ONLY_TYPES:
            self._send_email(notification)
        return notification

    def notify_company(
        self,
        company_id,
        type: str,
        title: str,
        message: str,
        exclude_user_id=None,
        **kwargs,
    ) -> list[Notification]:
        """One notification per active user of ``company_id``."""
        excluded = _as_uuid(exclude_user_id)
        return [
            self.create_notification(type, title, message, user_id, **kwargs)
            for user_id in self.company_user_ids(company_id)
            if user_id != excluded
        ]

    def company_user_ids(self, company_id) -> list[uuid.UUID]:
        company_id = _as_uuid(company_id)
        if company_id is None:
            return []
        return list(
            self.session.execute(
                select(User.id)
                .where(User.company_id == company_id, User.is_active.is_(True))
                .order_by(User.created_at.asc())
            ).scalars()
        )

    def _send_email(self, notification: Notification) -> None:
        user = self.session.get(User, notification.user_id)
        if user is None:
            logger.warning("Notification %s has no recipient user", notification.id)
            return
        sent = self.email.send_email_by_type(
            notification.type,
            user.email,
            {**notification.data, "title": notification.title, "message": notification.message},
        )
        if sent:
            notification.is_email_sent = True
            notification.email_sent_at = datetime.now(UTC)
