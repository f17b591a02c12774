"""
Repository for warning operations.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from repositories.db_models import ModerationWarning, User


class WarningRepository(BaseRepository[ModerationWarning]):
    """Repository for warning data access."""

    def __init__(self, db: Session):
        super().__init__(ModerationWarning, db)

    def _active_filter(self, now: datetime) -> tuple:
        return (
            ModerationWarning.is_active == True,  # noqa: E712
            ModerationWarning.expires_at > now,
        )

    def list_warnings(
        self,
        now: datetime,
        user_id: Optional[int] = None,
        active_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list, int]:
        """
        List warnings with the warned user's name, newest first.

        Args:
            now: Reference time for expiry
            user_id: Restrict to one user
            active_only: Only warnings that are neither revoked nor expired
            skip: Pagination offset
            limit: Pagination limit

        Returns:
            Tuple of (list of (warning, username, display_name), total_count)
        """
        query = self.db.query(
            ModerationWarning, User.username, User.display_name
        ).join(User, ModerationWarning.user_id == User.id)

        if user_id is not None:
            query = query.filter(ModerationWarning.user_id == user_id)
        if active_only:
            query = query.filter(*self._active_filter(now))

        total = query.count()
        results = (
            query.order_by(
                ModerationWarning.created_at.desc(), ModerationWarning.id.desc()
            )
            .offset(skip)
            .limit(limit)
            .all()
        )
        return results, total

    def get_point_totals(self, user_id: int, now: datetime) -> tuple[int, int, int]:
        """
        Get warning point totals for a user.

        Returns:
            Tuple of (active_points, active_warnings, total_warnings_received)
        """
        active_points, active_count = (
            self.db.query(
                func.coalesce(func.sum(ModerationWarning.points), 0),
                func.count(ModerationWarning.id),
            )
            .filter(ModerationWarning.user_id == user_id, *self._active_filter(now))
            .one()
        )
        total = (
            self.db.query(func.count(ModerationWarning.id))
            .filter(ModerationWarning.user_id == user_id)
            .scalar()
            or 0
        )
        return int(active_points), int(active_count), int(total)
