"""
Service for warning business logic.

Warnings carry points but never block a user on their own; point totals
are informational for the staff deciding on a suspension.
"""

from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

import helpers.time_utils as time_utils
from authentication.permissions import ensure_can_moderate, ensure_permission
from models.config import settings
from models.exceptions import (
    InsufficientPermissionsException,
    UserNotFoundException,
    ValidationException,
    WarningNotFoundException,
)
from repositories.db_models import (
    ModerationWarning,
    User,
    UserNotificationType,
    UserRole,
)
from repositories.user_repository import UserRepository
from repositories.warning_repository import WarningRepository
from services.action_outcome import ActionOutcome, primary_write
from services.moderation_log_service import ModerationAction, ModerationLogService
from services.notification_service import NotificationService


def _require_user(repo: UserRepository, user_id: int) -> User:
    user = repo.get_by_id(user_id)
    if not user:
        raise UserNotFoundException(user_id)
    return user


class WarningService:
    """Service for warning operations."""

    @staticmethod
    def warn(
        db: Session,
        user_id: int,
        issuer_id: int,
        reason: str,
        points: int = 1,
        expires_in_days: Optional[int] = None,
        description: Optional[str] = None,
    ) -> ActionOutcome[ModerationWarning]:
        """
        Issue a warning to a user.

        Args:
            db: Database session
            user_id: User being warned
            issuer_id: Staff member issuing the warning
            reason: Why (required)
            points: Weight of the warning (at least 1)
            expires_in_days: Lifetime in days (defaults to WARNING_DEFAULT_EXPIRY_DAYS)
            description: Optional longer explanation

        Returns:
            ActionOutcome wrapping the new warning

        Raises:
            ValidationException: Blank reason, points < 1 or expiry < 1 day
            UserNotFoundException: Target or issuer doesn't exist
            InsufficientPermissionsException: Issuer can't warn the target
        """
        if reason is None or not reason.strip():
            raise ValidationException("A reason is required")
        if points < 1:
            raise ValidationException("Warning points must be at least 1")
        if expires_in_days is None:
            expires_in_days = settings.WARNING_DEFAULT_EXPIRY_DAYS
        if expires_in_days < 1:
            raise ValidationException("Warnings must last at least one day")

        user_repo = UserRepository(db)
        target = _require_user(user_repo, user_id)
        issuer = _require_user(user_repo, issuer_id)
        ensure_permission(issuer, "can_send_warnings")
        ensure_can_moderate(issuer, target)

        now = time_utils.utc_now()
        repo = WarningRepository(db)
        with primary_write(db, "warn"):
            warning = repo.create(
                ModerationWarning(
                    user_id=user_id,
                    issued_by=issuer_id,
                    reason=reason.strip(),
                    description=description,
                    points=points,
                    expires_at=now + timedelta(days=expires_in_days),
                    is_active=True,
                    created_at=now,
                )
            )

        audit_entry = ModerationLogService.record(
            db,
            moderator_id=issuer_id,
            action=ModerationAction.WARN,
            target_user_id=user_id,
            reason=warning.reason,
            details={
                "warning_id": warning.id,
                "points": points,
                "expires_in_days": expires_in_days,
                "description": description,
            },
        )

        notified = NotificationService.notify_user(
            db,
            user_id=user_id,
            notification_type=UserNotificationType.WARNING,
            title="You received a warning",
            message=f"{warning.reason} ({points} point{'s' if points != 1 else ''})",
            data={"warning_id": warning.id, "points": points},
        )

        return ActionOutcome(
            result=warning,
            audit_logged=audit_entry is not None,
            notified=notified,
        )

    @staticmethod
    def get_warning(db: Session, warning_id: int) -> ModerationWarning:
        """
        Get a warning by ID.

        Raises:
            WarningNotFoundException: If it doesn't exist
        """
        warning = WarningRepository(db).get_by_id(warning_id)
        if not warning:
            raise WarningNotFoundException(warning_id)
        return warning

    @staticmethod
    def _load_for_staff_action(
        db: Session, warning_id: int, actor_id: int
    ) -> ModerationWarning:
        warning = WarningService.get_warning(db, warning_id)
        user_repo = UserRepository(db)
        actor = _require_user(user_repo, actor_id)
        target = _require_user(user_repo, warning.user_id)
        ensure_can_moderate(actor, target)
        return warning

    @staticmethod
    def edit_warning(
        db: Session,
        warning_id: int,
        editor_id: int,
        reason: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ActionOutcome[ModerationWarning]:
        """
        Edit the wording of a warning. Points and expiry are fixed.

        Raises:
            WarningNotFoundException: If it doesn't exist
            ValidationException: Blank reason or nothing to change
        """
        warning = WarningService._load_for_staff_action(db, warning_id, editor_id)

        changes: dict[str, Optional[str]] = {}
        if reason is not None:
            if not reason.strip():
                raise ValidationException("A reason is required")
            changes["reason"] = reason.strip()
        if description is not None:
            changes["description"] = description
        if not changes:
            raise ValidationException("Nothing to update")

        repo = WarningRepository(db)
        with primary_write(db, "edit_warning"):
            for field_name, value in changes.items():
                setattr(warning, field_name, value)
            warning.updated_at = time_utils.utc_now()
            warning = repo.update(warning)

        audit_entry = ModerationLogService.record(
            db,
            moderator_id=editor_id,
            action=ModerationAction.EDIT_WARNING,
            target_user_id=warning.user_id,
            reason=warning.reason,
            details={"warning_id": warning_id, "fields": sorted(changes)},
        )
        return ActionOutcome(result=warning, audit_logged=audit_entry is not None)

    @staticmethod
    def revoke_warning(
        db: Session, warning_id: int, actor_id: int
    ) -> ActionOutcome[ModerationWarning]:
        """
        Deactivate a warning so it no longer counts towards the user's points.

        Revoking an already inactive warning is a no-op and writes no audit
        entry.
        """
        warning = WarningService._load_for_staff_action(db, warning_id, actor_id)
        if not warning.is_active:
            return ActionOutcome(result=warning)

        repo = WarningRepository(db)
        with primary_write(db, "revoke_warning"):
            warning.is_active = False
            warning.updated_at = time_utils.utc_now()
            warning = repo.update(warning)

        audit_entry = ModerationLogService.record(
            db,
            moderator_id=actor_id,
            action=ModerationAction.REVOKE_WARNING,
            target_user_id=warning.user_id,
            details={"warning_id": warning_id, "points": warning.points},
        )
        return ActionOutcome(result=warning, audit_logged=audit_entry is not None)

    @staticmethod
    def delete_warning(db: Session, warning_id: int, actor_id: int) -> ActionOutcome[int]:
        """
        Permanently remove a warning (admin only).

        Raises:
            WarningNotFoundException: If it doesn't exist
            InsufficientPermissionsException: If the actor isn't an admin
        """
        actor = _require_user(UserRepository(db), actor_id)
        if actor.role != UserRole.ADMIN:
            raise InsufficientPermissionsException(
                "Only administrators can delete warnings"
            )

        warning = WarningService.get_warning(db, warning_id)
        user_id = warning.user_id
        points = warning.points

        repo = WarningRepository(db)
        with primary_write(db, "delete_warning"):
            repo.delete(warning)

        audit_entry = ModerationLogService.record(
            db,
            moderator_id=actor_id,
            action=ModerationAction.DELETE_WARNING,
            target_user_id=user_id,
            details={"warning_id": warning_id, "points": points},
        )
        return ActionOutcome(result=warning_id, audit_logged=audit_entry is not None)

    @staticmethod
    def list_warnings(
        db: Session,
        user_id: Optional[int] = None,
        active_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list, int]:
        """List warnings newest first; `active_only` applies the expiry test."""
        return WarningRepository(db).list_warnings(
            now=time_utils.utc_now(),
            user_id=user_id,
            active_only=active_only,
            skip=skip,
            limit=limit,
        )

    @staticmethod
    def get_active_points(db: Session, user_id: int) -> dict[str, int]:
        """
        Summarize a user's warning points.

        Returns:
            Dict with active_points, active_warnings and total_warnings_received

        Raises:
            UserNotFoundException: If the user doesn't exist
        """
        _require_user(UserRepository(db), user_id)
        active_points, active_warnings, total = WarningRepository(
            db
        ).get_point_totals(user_id, time_utils.utc_now())
        return {
            "active_points": active_points,
            "active_warnings": active_warnings,
            "total_warnings_received": total,
        }
