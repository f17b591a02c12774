"""
Service for the synchronized "may this user act" state.

The state lives on the user row (`is_suspended`, `suspended_until`) and is
derived from the user's suspensions. Every suspension change calls
`recompute_with_retry`; request-path checks only ever read the row.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import helpers.time_utils as time_utils
from models.config import settings
from models.exceptions import DependencyException, UserNotFoundException
from repositories.db_models import Suspension, User
from repositories.suspension_repository import SuspensionRepository
from repositories.user_repository import UserRepository
from services.action_outcome import ActionOutcome
from services.moderation_log_service import ModerationAction, ModerationLogService
from services.notification_service import NotificationService


@dataclass(frozen=True)
class TrustState:
    """Synchronized suspension state of one user."""

    user_id: int
    is_suspended: bool
    suspended_until: Optional[datetime]
    stale: bool = False
    updated_at: Optional[datetime] = None


def is_effective(suspension: Suspension, now: datetime) -> bool:
    """True if the suspension is active and not past its expiry at `now`."""
    if not suspension.is_active:
        return False
    expires_at = time_utils.ensure_utc(suspension.expires_at)
    return expires_at is None or now < expires_at


def derive_state(
    suspensions: Iterable[Suspension], now: datetime
) -> tuple[bool, Optional[datetime]]:
    """
    Fold a user's suspensions into (is_suspended, suspended_until).

    Any effective suspension without an expiry (permanent or super-ban)
    makes the block open-ended; otherwise the latest temporary expiry wins.
    """
    effective = [s for s in suspensions if is_effective(s, now)]
    if not effective:
        return False, None

    expiries = [time_utils.ensure_utc(s.expires_at) for s in effective]
    if any(expiry is None for expiry in expiries):
        return True, None
    return True, max(expiries)  # type: ignore[type-var]


def user_is_blocked(user: User, now: Optional[datetime] = None) -> bool:
    """
    Blocked check against an already-loaded user row.

    A stale trust state counts as blocked until a recompute confirms it.
    """
    if user.trust_state_stale:
        return True
    if not user.is_suspended:
        return False
    until = time_utils.ensure_utc(user.suspended_until)
    return until is None or (now or time_utils.utc_now()) < until


class TrustStateService:
    """Service for trust state recompute and lookups."""

    @staticmethod
    def recompute(db: Session, user_id: int) -> TrustState:
        """
        Rebuild a user's trust state from all of their suspensions and store it.

        Reads through the caller's session, so a suspension written earlier
        in the same unit of work is included. Safe to call any number of
        times.

        Args:
            db: Database session
            user_id: ID of the user

        Returns:
            The state that was written

        Raises:
            UserNotFoundException: If the user doesn't exist
            SQLAlchemyError: If the store rejects the read or write
        """
        user_repo = UserRepository(db)
        if not user_repo.get_by_id(user_id):
            raise UserNotFoundException(user_id)

        now = time_utils.utc_now()
        suspensions = SuspensionRepository(db).get_for_user(user_id)
        is_suspended, suspended_until = derive_state(suspensions, now)

        user_repo.write_trust_state(user_id, is_suspended, suspended_until, now)
        user_repo.commit()

        return TrustState(
            user_id=user_id,
            is_suspended=is_suspended,
            suspended_until=suspended_until,
            stale=False,
            updated_at=now,
        )

    @staticmethod
    def recompute_with_retry(
        db: Session, user_id: int, attempts: Optional[int] = None
    ) -> bool:
        """
        Recompute a user's trust state, retrying store failures.

        If every attempt fails, the user is flagged stale, which keeps them
        blocked until a later recompute succeeds. `is_suspended` is never
        cleared on this path.

        Args:
            db: Database session
            user_id: ID of the user
            attempts: Number of tries (defaults to TRUST_RECOMPUTE_ATTEMPTS)

        Returns:
            True if the state was written, False if it was left stale
        """
        attempts = attempts or settings.TRUST_RECOMPUTE_ATTEMPTS

        for attempt in range(1, attempts + 1):
            try:
                TrustStateService.recompute(db, user_id)
                return True
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning(
                    f"Trust state recompute for user {user_id} failed "
                    f"(attempt {attempt}/{attempts}): {e!r}"
                )

        user_repo = UserRepository(db)
        try:
            user_repo.mark_trust_state_stale(user_id)
            user_repo.commit()
        except SQLAlchemyError as e:
            user_repo.rollback()
            logger.error(f"Could not mark trust state stale for user {user_id}: {e!r}")

        logger.error(
            f"Trust state for user {user_id} left stale after {attempts} attempts"
        )
        NotificationService.notify_trust_state_stale(user_id)
        return False

    @staticmethod
    def is_blocked(db: Session, user_id: int) -> bool:
        """
        Whether a user is currently barred from acting.

        Reads only the synchronized columns on the user row. Unknown users
        are not blocked.
        """
        user = UserRepository(db).get_by_id(user_id)
        if not user:
            return False
        return user_is_blocked(user, time_utils.utc_now())

    @staticmethod
    def get_state(db: Session, user_id: int) -> TrustState:
        """
        Read a user's stored trust state.

        Raises:
            UserNotFoundException: If the user doesn't exist
        """
        user = UserRepository(db).get_by_id(user_id)
        if not user:
            raise UserNotFoundException(user_id)
        return TrustState(
            user_id=user.id,
            is_suspended=user.is_suspended,
            suspended_until=time_utils.ensure_utc(user.suspended_until),
            stale=user.trust_state_stale,
            updated_at=time_utils.ensure_utc(user.trust_state_updated_at),
        )

    @staticmethod
    def reconcile_stale(db: Session) -> int:
        """
        Retry every user whose trust state is flagged stale.

        Returns:
            Number of users brought back in sync
        """
        user_ids = UserRepository(db).get_stale_user_ids()
        if not user_ids:
            return 0

        repaired = 0
        for user_id in user_ids:
            try:
                if TrustStateService.recompute_with_retry(db, user_id, attempts=1):
                    repaired += 1
            except UserNotFoundException:
                logger.warning(f"Stale trust state for missing user {user_id}")

        logger.info(f"Trust state reconcile: {repaired}/{len(user_ids)} users repaired")
        return repaired

    @staticmethod
    def force_recompute(
        db: Session, user_id: int, actor_id: int
    ) -> ActionOutcome[TrustState]:
        """
        Staff-triggered recompute of one user's trust state.

        Args:
            db: Database session
            user_id: User whose state is rebuilt
            actor_id: Admin requesting it

        Returns:
            ActionOutcome wrapping the stored state

        Raises:
            UserNotFoundException: If the user doesn't exist
            DependencyException: If every attempt failed; the user is left
                stale and the request may be retried
        """
        if not UserRepository(db).get_by_id(user_id):
            raise UserNotFoundException(user_id)

        if not TrustStateService.recompute_with_retry(db, user_id):
            raise DependencyException("recompute_trust")

        audit_entry = ModerationLogService.record(
            db,
            moderator_id=actor_id,
            action=ModerationAction.RECOMPUTE_TRUST,
            target_user_id=user_id,
        )
        return ActionOutcome(
            result=TrustStateService.get_state(db, user_id),
            audit_logged=audit_entry is not None,
        )
