"""
Repository for content filter rule operations.
"""

from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from repositories.db_models import ContentFilterRule


class ContentFilterRepository(BaseRepository[ContentFilterRule]):
    """Repository for ContentFilterRule entity database operations."""

    def __init__(self, db: Session):
        """
        Initialize content filter repository.

        Args:
            db: Database session
        """
        super().__init__(ContentFilterRule, db)

    def get_active_rules(self) -> list[ContentFilterRule]:
        """
        Get all active rules in application order.

        Returns:
            Active rules ordered by (created_at, id)
        """
        return (
            self.db.query(ContentFilterRule)
            .filter(ContentFilterRule.is_active == True)  # noqa: E712
            .order_by(ContentFilterRule.created_at.asc(), ContentFilterRule.id.asc())
            .all()
        )

    def get_all_filtered(
        self,
        active_only: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[ContentFilterRule], int]:
        """
        Get rules for the admin listing, newest first.

        Args:
            active_only: Only return active rules
            skip: Pagination offset
            limit: Pagination limit

        Returns:
            Tuple of (rules, total_count)
        """
        query = self.db.query(ContentFilterRule)

        if active_only:
            query = query.filter(ContentFilterRule.is_active == True)  # noqa: E712

        total = query.count()
        rules = (
            query.order_by(
                ContentFilterRule.created_at.desc(), ContentFilterRule.id.desc()
            )
            .offset(skip)
            .limit(limit)
            .all()
        )
        return rules, total

    def increment_match_counts(self, rule_ids: list[int]) -> int:
        """
        Bump match_count for rules that altered a submission. Does not commit.

        Args:
            rule_ids: IDs of the matched rules

        Returns:
            Number of rows updated
        """
        if not rule_ids:
            return 0
        return self.update_where(
            {"match_count": ContentFilterRule.match_count + 1},
            ContentFilterRule.id.in_(rule_ids),
        )
