"""
Moderation log repository.

The log is append-only: entries are inserted and read, never changed.
"""

from typing import Optional

from sqlalchemy.orm import Session

from models.exceptions import ModerationLogImmutableException
from repositories import db_models
from repositories.base import BaseRepository


class ModerationLogRepository(BaseRepository[db_models.ModerationLog]):
    """Repository for moderation log operations."""

    def __init__(self, db: Session):
        """Initialize repository."""
        super().__init__(db_models.ModerationLog, db)

    def update(self, entity: db_models.ModerationLog) -> db_models.ModerationLog:
        raise ModerationLogImmutableException()

    def delete(self, entity: db_models.ModerationLog) -> None:
        raise ModerationLogImmutableException()

    def update_where(self, values, *criteria) -> int:  # type: ignore[no-untyped-def]
        raise ModerationLogImmutableException()

    def _build_query(
        self,
        moderator_id: Optional[int] = None,
        action: Optional[str] = None,
        target_user_id: Optional[int] = None,
    ):
        """Build filtered query for log entries."""
        query = self.db.query(self.model)

        if moderator_id:
            query = query.filter(self.model.moderator_id == moderator_id)
        if action:
            query = query.filter(self.model.action == action)
        if target_user_id:
            query = query.filter(self.model.target_user_id == target_user_id)

        return query

    def get_logs(
        self,
        moderator_id: Optional[int] = None,
        action: Optional[str] = None,
        target_user_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[db_models.ModerationLog], int]:
        """
        Get log entries newest first.

        Args:
            moderator_id: Filter by acting moderator
            action: Filter by action name (e.g. "suspend")
            target_user_id: Filter by affected user
            skip: Number of records to skip
            limit: Maximum records to return

        Returns:
            Tuple of (entries, total_count)
        """
        query = self._build_query(
            moderator_id=moderator_id,
            action=action,
            target_user_id=target_user_id,
        )
        total = query.count()
        entries = (
            query.order_by(self.model.created_at.desc(), self.model.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return entries, total
