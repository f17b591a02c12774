"""
Repository for in-app user notifications.
"""

from datetime import datetime

from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from repositories.db_models import UserNotification


class NotificationRepository(BaseRepository[UserNotification]):
    """Repository for UserNotification data access."""

    def __init__(self, db: Session):
        super().__init__(UserNotification, db)

    def get_for_user(
        self,
        user_id: int,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[UserNotification], int]:
        """
        Get a user's notifications, newest first.

        Returns:
            Tuple of (notifications, unread_count)
        """
        query = self.db.query(UserNotification).filter(
            UserNotification.user_id == user_id
        )
        unread = query.filter(UserNotification.is_read == False).count()  # noqa: E712

        if unread_only:
            query = query.filter(UserNotification.is_read == False)  # noqa: E712

        items = (
            query.order_by(UserNotification.created_at.desc(), UserNotification.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return items, unread

    def get_for_owner(self, notification_id: int, user_id: int) -> UserNotification | None:
        """Get a notification only if it belongs to the user."""
        return (
            self.db.query(UserNotification)
            .filter(
                UserNotification.id == notification_id,
                UserNotification.user_id == user_id,
            )
            .first()
        )

    def mark_read(self, notification: UserNotification, now: datetime) -> UserNotification:
        """Mark a notification read and commit."""
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = now
        return self.update(notification)
