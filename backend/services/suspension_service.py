"""
Service for suspension lifecycle business logic.

Every mutation follows the same sequence: authoritative write, trust state
recompute, audit entry, user notification. Only the first step can fail the
call; the others degrade the returned ActionOutcome.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

import helpers.time_utils as time_utils
from authentication.permissions import (
    ensure_can_moderate,
    ensure_permission,
    required_permission_for,
)
from models.exceptions import (
    InsufficientPermissionsException,
    SuspensionNotActiveException,
    SuspensionNotFoundException,
    UserNotFoundException,
    ValidationException,
)
from repositories.db_models import (
    Suspension,
    SuspensionKind,
    User,
    UserNotificationType,
    UserRole,
)
from repositories.suspension_repository import SuspensionRepository
from repositories.user_repository import UserRepository
from services.action_outcome import ActionOutcome, primary_write
from services.moderation_log_service import ModerationAction, ModerationLogService
from services.notification_service import NotificationService
from services.trust_state_service import TrustStateService


class SuspensionStatus(str, Enum):
    ACTIVE = "active"
    LIFTED = "lifted"
    EXPIRED = "expired"


def _require_user(repo: UserRepository, user_id: int) -> User:
    user = repo.get_by_id(user_id)
    if not user:
        raise UserNotFoundException(user_id)
    return user


def _require_reason(reason: Optional[str]) -> str:
    if reason is None or not reason.strip():
        raise ValidationException("A reason is required")
    return reason.strip()


def _suspension_message(kind: SuspensionKind, expires_at: Optional[datetime]) -> str:
    if kind == SuspensionKind.TEMPORARY and expires_at:
        return (
            "Your account has been suspended until "
            f"{time_utils.format_iso8601(expires_at)}."
        )
    return "Your account has been permanently suspended."


class SuspensionService:
    """Service for suspension operations."""

    @staticmethod
    def suspend(
        db: Session,
        user_id: int,
        issuer_id: int,
        reason: str,
        kind: SuspensionKind,
        duration_days: Optional[int] = None,
        description: Optional[str] = None,
    ) -> ActionOutcome[Suspension]:
        """
        Suspend a user.

        Permanent suspensions and super-bans never expire; a duration passed
        with them is ignored.

        Args:
            db: Database session
            user_id: User to suspend
            issuer_id: Staff member issuing the suspension
            reason: Why the user is suspended (required)
            kind: temporary, permanent or super_ban
            duration_days: Length of a temporary suspension
            description: Optional longer explanation

        Returns:
            ActionOutcome wrapping the new suspension

        Raises:
            ValidationException: Blank reason or bad temporary duration
            UserNotFoundException: Target or issuer doesn't exist
            InsufficientPermissionsException: Issuer can't act on target or
                can't issue this kind of suspension
            DependencyException: The suspension could not be stored
        """
        reason = _require_reason(reason)
        if kind == SuspensionKind.TEMPORARY:
            if duration_days is None or duration_days <= 0:
                raise ValidationException(
                    "Temporary suspensions need a positive duration in days"
                )

        user_repo = UserRepository(db)
        target = _require_user(user_repo, user_id)
        issuer = _require_user(user_repo, issuer_id)
        ensure_permission(issuer, required_permission_for(kind))
        ensure_can_moderate(issuer, target)

        now = time_utils.utc_now()
        expires_at = (
            now + timedelta(days=duration_days)
            if kind == SuspensionKind.TEMPORARY and duration_days
            else None
        )

        repo = SuspensionRepository(db)
        with primary_write(db, "suspend"):
            suspension = repo.create(
                Suspension(
                    user_id=user_id,
                    issued_by=issuer_id,
                    reason=reason,
                    description=description,
                    kind=kind,
                    starts_at=now,
                    expires_at=expires_at,
                    is_active=True,
                    created_at=now,
                )
            )

        trust_synced = TrustStateService.recompute_with_retry(db, user_id)

        action = (
            ModerationAction.SUSPEND
            if kind == SuspensionKind.TEMPORARY
            else ModerationAction.BAN
        )
        audit_entry = ModerationLogService.record(
            db,
            moderator_id=issuer_id,
            action=action,
            target_user_id=user_id,
            reason=reason,
            details={
                "suspension_id": suspension.id,
                "kind": kind.value,
                "duration_days": duration_days if expires_at else None,
                "expires_at": expires_at.isoformat() if expires_at else None,
            },
        )

        notified = NotificationService.notify_user(
            db,
            user_id=user_id,
            notification_type=UserNotificationType.SUSPENSION,
            title="Account suspended",
            message=f"{_suspension_message(kind, expires_at)} Reason: {reason}",
            data={"suspension_id": suspension.id, "kind": kind.value},
        )

        return ActionOutcome(
            result=suspension,
            trust_synced=trust_synced,
            audit_logged=audit_entry is not None,
            notified=notified,
        )

    @staticmethod
    def get_suspension(db: Session, suspension_id: int) -> Suspension:
        """
        Get a suspension by ID.

        Raises:
            SuspensionNotFoundException: If it doesn't exist
        """
        suspension = SuspensionRepository(db).get_by_id(suspension_id)
        if not suspension:
            raise SuspensionNotFoundException(suspension_id)
        return suspension

    @staticmethod
    def lift_suspension(
        db: Session, suspension_id: int, lifted_by: int
    ) -> ActionOutcome[Suspension]:
        """
        Lift an active suspension.

        The user's trust state is rebuilt from every remaining suspension, so
        lifting one of two overlapping suspensions keeps the user blocked.

        Args:
            db: Database session
            suspension_id: Suspension to lift
            lifted_by: Staff member lifting it

        Returns:
            ActionOutcome wrapping the lifted suspension

        Raises:
            SuspensionNotFoundException: If it doesn't exist
            SuspensionNotActiveException: If it was already lifted, including
                by a concurrent request
            InsufficientPermissionsException: If the actor can't act on the user
        """
        repo = SuspensionRepository(db)
        suspension = SuspensionService.get_suspension(db, suspension_id)
        if not suspension.is_active:
            raise SuspensionNotActiveException(suspension_id)

        user_repo = UserRepository(db)
        actor = _require_user(user_repo, lifted_by)
        target = _require_user(user_repo, suspension.user_id)
        ensure_can_moderate(actor, target)

        user_id = suspension.user_id
        now = time_utils.utc_now()
        with primary_write(db, "lift_suspension"):
            if repo.lift_if_active(suspension_id, lifted_by, now) == 0:
                repo.rollback()
                raise SuspensionNotActiveException(suspension_id)
            repo.commit()

        trust_synced = TrustStateService.recompute_with_retry(db, user_id)

        audit_entry = ModerationLogService.record(
            db,
            moderator_id=lifted_by,
            action=ModerationAction.UNSUSPEND,
            target_user_id=user_id,
            details={"suspension_id": suspension_id},
        )

        notified = NotificationService.notify_user(
            db,
            user_id=user_id,
            notification_type=UserNotificationType.SUSPENSION,
            title="Suspension lifted",
            message="A suspension on your account has been lifted.",
            data={"suspension_id": suspension_id},
        )

        repo.refresh(suspension)
        return ActionOutcome(
            result=suspension,
            trust_synced=trust_synced,
            audit_logged=audit_entry is not None,
            notified=notified,
        )

    @staticmethod
    def edit_suspension(
        db: Session,
        suspension_id: int,
        editor_id: int,
        reason: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ActionOutcome[Suspension]:
        """
        Edit the wording of a suspension.

        Kind, duration and activity can't be changed here; lift and re-issue
        instead. No trust state change is needed.

        Raises:
            SuspensionNotFoundException: If it doesn't exist
            ValidationException: If a blank reason is given
            InsufficientPermissionsException: If the editor can't act on the user
        """
        suspension = SuspensionService.get_suspension(db, suspension_id)
        user_repo = UserRepository(db)
        editor = _require_user(user_repo, editor_id)
        target = _require_user(user_repo, suspension.user_id)
        ensure_can_moderate(editor, target)

        changes: dict[str, Optional[str]] = {}
        if reason is not None:
            changes["reason"] = _require_reason(reason)
        if description is not None:
            changes["description"] = description
        if not changes:
            raise ValidationException("Nothing to update")

        repo = SuspensionRepository(db)
        with primary_write(db, "edit_suspension"):
            for field_name, value in changes.items():
                setattr(suspension, field_name, value)
            suspension.updated_at = time_utils.utc_now()
            suspension = repo.update(suspension)

        audit_entry = ModerationLogService.record(
            db,
            moderator_id=editor_id,
            action=ModerationAction.EDIT_SUSPENSION,
            target_user_id=suspension.user_id,
            reason=suspension.reason,
            details={"suspension_id": suspension_id, "fields": sorted(changes)},
        )
        return ActionOutcome(result=suspension, audit_logged=audit_entry is not None)

    @staticmethod
    def delete_suspension(
        db: Session, suspension_id: int, actor_id: int
    ) -> ActionOutcome[int]:
        """
        Permanently remove a suspension record (admin only).

        Returns:
            ActionOutcome wrapping the deleted suspension's ID

        Raises:
            SuspensionNotFoundException: If it doesn't exist
            InsufficientPermissionsException: If the actor isn't an admin
        """
        user_repo = UserRepository(db)
        actor = _require_user(user_repo, actor_id)
        if actor.role != UserRole.ADMIN:
            raise InsufficientPermissionsException(
                "Only administrators can delete suspensions"
            )

        suspension = SuspensionService.get_suspension(db, suspension_id)
        user_id = suspension.user_id
        details = {
            "suspension_id": suspension_id,
            "kind": suspension.kind.value,
            "was_active": suspension.is_active,
        }

        repo = SuspensionRepository(db)
        with primary_write(db, "delete_suspension"):
            repo.delete(suspension)

        trust_synced = TrustStateService.recompute_with_retry(db, user_id)
        audit_entry = ModerationLogService.record(
            db,
            moderator_id=actor_id,
            action=ModerationAction.DELETE_SUSPENSION,
            target_user_id=user_id,
            details=details,
        )
        return ActionOutcome(
            result=suspension_id,
            trust_synced=trust_synced,
            audit_logged=audit_entry is not None,
        )

    @staticmethod
    def list_suspensions(
        db: Session,
        user_id: Optional[int] = None,
        active_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list, int]:
        """
        List suspensions newest first.

        `active_only` hides lifted suspensions and ones whose expiry has
        passed, even though the latter are still stored as active.
        """
        return SuspensionRepository(db).list_suspensions(
            now=time_utils.utc_now(),
            user_id=user_id,
            active_only=active_only,
            skip=skip,
            limit=limit,
        )

    @staticmethod
    def get_suspension_status(
        suspension: Suspension, now: Optional[datetime] = None
    ) -> SuspensionStatus:
        """
        Classify a suspension for display.

        A lifted suspension reports as lifted even if its expiry has also
        passed, so manual lifts stay distinguishable from lapses.
        """
        if not suspension.is_active:
            return SuspensionStatus.LIFTED
        expires_at = time_utils.ensure_utc(suspension.expires_at)
        if expires_at is not None and expires_at <= (now or time_utils.utc_now()):
            return SuspensionStatus.EXPIRED
        return SuspensionStatus.ACTIVE
