"""
Notification dispatch for moderation actions.

Two channels:

* In-app inbox rows for the user a moderation action affects (suspension,
  warning, report outcome).
* Push alerts to staff devices through a self-hosted ntfy server.

Both are best-effort. A failed notification is logged and reported back to
the caller, never raised, because the action it describes already happened.
"""

import asyncio
import json
import threading
from typing import Any, Optional

import httpx
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import helpers.time_utils as time_utils
from models.config import settings
from models.exceptions import NotificationNotFoundException
from models.notification_types import NotificationType
from repositories.db_models import UserNotification, UserNotificationType
from repositories.notification_repository import NotificationRepository


class NotificationService:
    """
    Inbox notifications for users and ntfy push alerts for staff.

    Sending methods log failures and return a flag; they never raise.
    """

    # =========================================================================
    # User inbox
    # =========================================================================

    @staticmethod
    def notify_user(
        db: Session,
        user_id: int,
        notification_type: UserNotificationType,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> bool:
        """
        Store a notification in a user's inbox.

        Args:
            db: Database session
            user_id: Recipient
            notification_type: suspension, warning, report_update or system
            title: Short headline
            message: Body text
            data: Extra structured payload (stored as JSON)

        Returns:
            True if stored, False if the write failed
        """
        repo = NotificationRepository(db)
        notification = UserNotification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            data=json.dumps(data) if data else None,
            is_read=False,
            created_at=time_utils.utc_now(),
        )
        try:
            repo.create(notification)
            return True
        except SQLAlchemyError as e:
            repo.rollback()
            logger.error(
                f"Failed to store {notification_type.value} notification "
                f"for user {user_id}: {e!r}"
            )
            return False

    @staticmethod
    def list_for_user(
        db: Session,
        user_id: int,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[UserNotification], int]:
        """Get a user's inbox and unread count."""
        return NotificationRepository(db).get_for_user(
            user_id, unread_only=unread_only, skip=skip, limit=limit
        )

    @staticmethod
    def mark_read(db: Session, notification_id: int, user_id: int) -> UserNotification:
        """
        Mark one of the user's notifications as read.

        Raises:
            NotificationNotFoundException: If it doesn't exist or isn't theirs
        """
        repo = NotificationRepository(db)
        notification = repo.get_for_owner(notification_id, user_id)
        if not notification:
            raise NotificationNotFoundException(notification_id)
        return repo.mark_read(notification, time_utils.utc_now())

    # =========================================================================
    # Staff push alerts (ntfy)
    # =========================================================================

    @classmethod
    def _get_topic(cls, notification_type: NotificationType) -> str:
        """Build full topic name from type."""
        prefix = settings.NTFY_TOPIC_PREFIX or "moderation-staff"
        return f"{prefix}-{notification_type.topic_suffix}"

    @classmethod
    async def _send_async(
        cls,
        notification_type: NotificationType,
        title: str,
        message: str,
        click_url: str | None = None,
        priority_override: str | None = None,
    ) -> bool:
        """
        Post one alert to ntfy.

        Args:
            notification_type: Determines topic and default priority
            title: Alert title (shown prominently)
            message: Alert body
            click_url: URL to open when the alert is tapped
            priority_override: Override default priority (min/low/default/high/max)

        Returns:
            True if sent successfully, False otherwise
        """
        ntfy_url = settings.NTFY_URL
        if not ntfy_url or not settings.NTFY_ENABLED:
            logger.debug("Ntfy not configured or disabled, skipping staff alert")
            return False

        topic = cls._get_topic(notification_type)
        headers: dict[str, str] = {
            "Title": title,
            "Priority": priority_override or notification_type.default_priority,
            "Tags": notification_type.tags,
        }
        if settings.NTFY_AUTH_TOKEN:
            headers["Authorization"] = f"Bearer {settings.NTFY_AUTH_TOKEN}"
        if click_url:
            headers["Click"] = click_url
            headers["Actions"] = f"view, Open, {click_url}"

        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.post(
                    f"{ntfy_url}/{topic}",
                    headers=headers,
                    content=message,
                )
                response.raise_for_status()
                logger.info(f"Staff alert sent to {topic}: {title}")
                return True
        except httpx.TimeoutException:
            logger.warning(f"Ntfy timeout sending to {topic}: {title}")
            return False
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Ntfy HTTP error {e.response.status_code} for {topic}: {title}"
            )
            return False
        except httpx.HTTPError as e:
            logger.warning(f"Ntfy error sending to {topic}: {e!r}")
            return False

    @classmethod
    def send_fire_and_forget(
        cls,
        notification_type: NotificationType,
        title: str,
        message: str,
        click_url: str | None = None,
        priority_override: str | None = None,
    ) -> None:
        """
        Send a staff alert without blocking the caller.

        Inside an event loop the send is scheduled as a task. Sync code (FastAPI
        runs sync endpoints in a worker thread) has no loop, so the send runs
        on its own daemon thread.
        """
        coro = cls._send_async(
            notification_type, title, message, click_url, priority_override
        )
        try:
            loop = asyncio.get_running_loop()
            loop.create_task(coro)
        except RuntimeError:
            logger.debug("No event loop, sending staff alert on a background thread")
            threading.Thread(
                target=asyncio.run, args=(coro,), name="ntfy-alert", daemon=True
            ).start()

    # =========================================================================
    # Convenience Methods
    # =========================================================================

    @classmethod
    def notify_new_report(
        cls,
        report_id: int,
        target_type: str,
        category: str,
        reason: str,
        reporter_display_name: str,
    ) -> None:
        """
        Alert staff that a report entered the queue.

        Args:
            report_id: Database ID of the report
            target_type: "post", "thread" or "user"
            category: Report category (spam, harassment, ...)
            reason: Reporter's reason
            reporter_display_name: Display name of reporter
        """
        # Keep alerts short on lock screens
        reason_preview = reason[:200] + "..." if len(reason) > 200 else reason
        cls.send_fire_and_forget(
            NotificationType.REPORT,
            f"New Report: {target_type.title()}",
            f"Category: {category}\nBy: {reporter_display_name}\nID: {report_id}"
            f"\n\nReason: {reason_preview}",
            f"{settings.APP_URL}/admin/reports?id={report_id}",
        )

    @classmethod
    def notify_trust_state_stale(cls, user_id: int) -> None:
        """Alert staff that a user's suspension state could not be synchronized."""
        cls.send_fire_and_forget(
            NotificationType.TRUST_STATE,
            "Trust state pending",
            f"User {user_id} is blocked until their suspension state is recomputed.",
            f"{settings.APP_URL}/admin/users/{user_id}",
        )
