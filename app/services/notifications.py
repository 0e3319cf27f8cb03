"""Notification listing and read tracking."""
from typing import List

from app.core.errors import NotFound
from app.core.logging import get_logger
from app.domain.notification import Notification, NotificationList
from app.infrastructure.backend import BackendClient
from app.infrastructure.redis import NOTIFICATIONS, QueryCache

logger = get_logger(__name__, {"service": "notifications"})


class NotificationService:
    def __init__(self, backend: BackendClient, cache: QueryCache):
        self.backend = backend
        self.cache = cache

    def list_notifications(self, recipient_id: str) -> List[Notification]:
        """Notifications addressed to a user, newest first."""
        if not recipient_id:
            return []

        rows = self.cache.get(NOTIFICATIONS, recipient_id)
        if rows is None:
            rows = self.backend.fetch_notifications(recipient_id)
            self.cache.set(NOTIFICATIONS, recipient_id, None, rows)
        return [Notification.model_validate(row) for row in rows]

    def unread_count(self, recipient_id: str) -> int:
        return sum(1 for n in self.list_notifications(recipient_id) if not n.is_read)

    def inbox(self, recipient_id: str) -> NotificationList:
        notifications = self.list_notifications(recipient_id)
        return NotificationList(
            notifications=notifications,
            unread_count=sum(1 for n in notifications if not n.is_read),
        )

    def mark_as_read(self, recipient_id: str, notification_id: str) -> None:
        """Mark one of the recipient's notifications as read.

        Raises:
            NotFound: the recipient has no notification with that id
        """
        updated = self.backend.mark_notification_read(recipient_id, notification_id)
        if not updated:
            raise NotFound(f"Notification '{notification_id}' not found for user '{recipient_id}'")

        logger.info(f"Notification {notification_id} marked as read", extra={"user_id": recipient_id})
        self.cache.invalidate(recipient_id, None, kinds=(NOTIFICATIONS,))
