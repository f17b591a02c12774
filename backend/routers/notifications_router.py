"""
User notification inbox router.

Suspension, warning and report outcome notices land here. Staff push alerts
go to ntfy and are not served by this API.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import authentication.auth as auth
import models.schemas as schemas
import repositories.db_models as db_models
from helpers.pagination import PaginationLimit, PaginationSkip
from repositories.database import get_db
from services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=schemas.UserNotificationListResponse)
def get_my_notifications(
    unread_only: bool = False,
    skip: PaginationSkip = 0,
    limit: PaginationLimit = 50,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_current_user),
) -> dict:
    """
    Get the current user's notifications, newest first.

    Suspended users can still read their inbox, so this only needs a valid
    token and not an unblocked account.
    """
    items, unread_count = NotificationService.list_for_user(
        db, current_user.id, unread_only=unread_only, skip=skip, limit=limit
    )
    return {"items": items, "unread_count": unread_count}


@router.post("/{notification_id}/read", response_model=schemas.UserNotificationResponse)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_current_user),
) -> db_models.UserNotification:
    return NotificationService.mark_read(db, notification_id, current_user.id)
