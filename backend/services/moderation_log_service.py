"""Audit logging for moderation actions."""

import json
from typing import Any, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import helpers.time_utils as time_utils
from repositories import db_models
from repositories.moderation_log_repository import ModerationLogRepository


class ModerationAction:
    """Action names written to the moderation log."""

    SUSPEND = "suspend"
    BAN = "ban"
    UNSUSPEND = "unsuspend"
    EDIT_SUSPENSION = "edit_suspension"
    DELETE_SUSPENSION = "delete_suspension"
    WARN = "warn"
    EDIT_WARNING = "edit_warning"
    REVOKE_WARNING = "revoke_warning"
    DELETE_WARNING = "delete_warning"
    ASSIGN_REPORT = "assign_report"
    RESOLVE_REPORT = "resolve_report"
    DISMISS_REPORT = "dismiss_report"
    ADD_FILTER = "add_filter"
    UPDATE_FILTER = "update_filter"
    REMOVE_FILTER = "remove_filter"
    RECOMPUTE_TRUST = "recompute_trust"


class ModerationLogService:
    """Append-only moderation audit trail."""

    @staticmethod
    def record(
        db: Session,
        moderator_id: int,
        action: str,
        target_user_id: Optional[int] = None,
        target_post_id: Optional[int] = None,
        target_thread_id: Optional[int] = None,
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> Optional[db_models.ModerationLog]:
        """
        Append one entry to the moderation log.

        The entry is also written to the application log as an ``AUDIT`` line,
        so a store outage still leaves a trace an operator can replay.

        Args:
            db: Database session
            moderator_id: Staff member who acted
            action: One of the ModerationAction names
            target_user_id: User affected, if any
            target_post_id: Post affected, if any
            target_thread_id: Thread affected, if any
            reason: Free-text reason given by the moderator
            details: Action-specific extras (stored as JSON)

        Returns:
            The stored entry, or None if the store rejected it
        """
        now = time_utils.utc_now()
        log_entry = {
            "timestamp": now.isoformat(),
            "moderator_id": moderator_id,
            "action": action,
            "target_user_id": target_user_id,
            "target_post_id": target_post_id,
            "target_thread_id": target_thread_id,
            "reason": reason,
            "details": details,
        }
        logger.info("AUDIT: {}", json.dumps(log_entry, default=str))

        repo = ModerationLogRepository(db)
        entry = db_models.ModerationLog(
            moderator_id=moderator_id,
            action=action,
            target_user_id=target_user_id,
            target_post_id=target_post_id,
            target_thread_id=target_thread_id,
            reason=reason,
            details=json.dumps(details, default=str) if details else None,
            created_at=now,
        )
        try:
            return repo.create(entry)
        except SQLAlchemyError as e:
            repo.rollback()
            logger.error(f"Failed to store moderation log entry '{action}': {e!r}")
            return None

    @staticmethod
    def list_logs(
        db: Session,
        moderator_id: Optional[int] = None,
        action: Optional[str] = None,
        target_user_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[db_models.ModerationLog], int]:
        """Get audit entries newest first with optional filters."""
        return ModerationLogRepository(db).get_logs(
            moderator_id=moderator_id,
            action=action,
            target_user_id=target_user_id,
            skip=skip,
            limit=limit,
        )
