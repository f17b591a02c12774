"""
Repository for suspension operations.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from repositories.db_models import Suspension, User


class SuspensionRepository(BaseRepository[Suspension]):
    """Repository for suspension data access."""

    def __init__(self, db: Session):
        super().__init__(Suspension, db)

    def get_for_user(self, user_id: int) -> list[Suspension]:
        """
        Get every suspension ever issued to a user, active or not.

        Trust state recompute derives from this full history, so the query
        goes through the caller's session and sees its uncommitted writes.

        Args:
            user_id: ID of the user

        Returns:
            List of suspensions, oldest first
        """
        return (
            self.db.query(Suspension)
            .filter(Suspension.user_id == user_id)
            .order_by(Suspension.created_at.asc(), Suspension.id.asc())
            .all()
        )

    def list_suspensions(
        self,
        now: datetime,
        user_id: Optional[int] = None,
        active_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list, int]:
        """
        List suspensions with the suspended user's name, newest first.

        Args:
            now: Reference time for expiry
            user_id: Restrict to one user
            active_only: Only suspensions still in effect at `now`
            skip: Pagination offset
            limit: Pagination limit

        Returns:
            Tuple of (list of (suspension, username, display_name), total_count)
        """
        query = self.db.query(Suspension, User.username, User.display_name).join(
            User, Suspension.user_id == User.id
        )

        if user_id is not None:
            query = query.filter(Suspension.user_id == user_id)

        if active_only:
            query = query.filter(
                Suspension.is_active == True,  # noqa: E712
                or_(
                    Suspension.expires_at.is_(None),
                    Suspension.expires_at > now,
                ),
            )

        total = query.count()
        results = (
            query.order_by(Suspension.created_at.desc(), Suspension.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return results, total

    def lift_if_active(self, suspension_id: int, lifted_by: int, now: datetime) -> int:
        """
        Lift a suspension only if it is still active.

        Two moderators lifting the same suspension race on this UPDATE; only
        one of them sees a changed row. Does not commit.

        Returns:
            1 if this call lifted the suspension, 0 otherwise
        """
        return self.update_where(
            {
                "is_active": False,
                "lifted_at": now,
                "lifted_by": lifted_by,
                "updated_at": now,
            },
            Suspension.id == suspension_id,
            Suspension.is_active == True,  # noqa: E712
        )
