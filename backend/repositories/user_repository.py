"""
User repository for database operations.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

import repositories.db_models as db_models
from .base import BaseRepository


class UserRepository(BaseRepository[db_models.User]):
    """Repository for User entity database operations."""

    def __init__(self, db: Session):
        """
        Initialize user repository.

        Args:
            db: Database session
        """
        super().__init__(db_models.User, db)

    def get_by_username(self, username: str) -> Optional[db_models.User]:
        """
        Get user by username.

        Args:
            username: Username

        Returns:
            User if found, None otherwise
        """
        return (
            self.db.query(db_models.User)
            .filter(db_models.User.username == username)
            .first()
        )

    def write_trust_state(
        self,
        user_id: int,
        is_suspended: bool,
        suspended_until: Optional[datetime],
        updated_at: datetime,
    ) -> int:
        """
        Overwrite a user's synchronized trust state and clear the stale mark.

        Does not commit.

        Args:
            user_id: ID of the user
            is_suspended: Whether any effective suspension exists
            suspended_until: Latest temporary expiry, or None
            updated_at: When the state was computed

        Returns:
            Number of rows updated (0 when the user is gone)
        """
        return self.update_where(
            {
                "is_suspended": is_suspended,
                "suspended_until": suspended_until,
                "trust_state_stale": False,
                "trust_state_updated_at": updated_at,
            },
            db_models.User.id == user_id,
        )

    def mark_trust_state_stale(self, user_id: int) -> int:
        """
        Flag a user's trust state as unconfirmed. Does not commit.

        Leaves `is_suspended` untouched, so a failed recompute can only ever
        make the user more restricted.
        """
        return self.update_where(
            {"trust_state_stale": True},
            db_models.User.id == user_id,
        )

    def get_stale_user_ids(self, limit: int = 500) -> List[int]:
        """
        Get IDs of users whose trust state needs recomputing.

        Args:
            limit: Maximum number of IDs to return

        Returns:
            List of user IDs, oldest first
        """
        rows = (
            self.db.query(db_models.User.id)
            .filter(db_models.User.trust_state_stale == True)  # noqa: E712
            .order_by(db_models.User.id)
            .limit(limit)
            .all()
        )
        return [row[0] for row in rows]

    def get_staff(self) -> List[db_models.User]:
        """Get all active moderators and admins."""
        return (
            self.db.query(db_models.User)
            .filter(
                db_models.User.role.in_([db_models.UserRole.MOD, db_models.UserRole.ADMIN]),
                db_models.User.is_active == True,  # noqa: E712
            )
            .order_by(db_models.User.id)
            .all()
        )
