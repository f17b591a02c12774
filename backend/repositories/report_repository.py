"""
Repository for report operations.

Every state change is a conditional UPDATE keyed on what the caller last
read, so two moderators working the same report can't silently overwrite
each other.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from repositories.db_models import (
    Report,
    ReportPriority,
    ReportStatus,
    ReportTargetType,
)

OPEN_STATUSES = (ReportStatus.PENDING, ReportStatus.REVIEWING)


def _assignee_matches(assigned_to: Optional[int]):
    if assigned_to is None:
        return Report.assigned_to.is_(None)
    return Report.assigned_to == assigned_to


class ReportRepository(BaseRepository[Report]):
    """Repository for report data access."""

    def __init__(self, db: Session):
        """
        Initialize report repository.

        Args:
            db: Database session
        """
        super().__init__(Report, db)

    def get_open_duplicate(
        self,
        reporter_id: int,
        reported_user_id: int,
        target_type: ReportTargetType,
        target_id: Optional[int],
    ) -> Report | None:
        """
        Find an open report by the same reporter on the same target.

        Args:
            reporter_id: ID of the reporting user
            reported_user_id: ID of the reported user
            target_type: Kind of target
            target_id: ID of the post/thread (None for user reports)

        Returns:
            The open report if one exists, None otherwise
        """
        query = self.db.query(Report).filter(
            Report.reporter_id == reporter_id,
            Report.target_type == target_type,
            Report.status.in_(OPEN_STATUSES),
        )
        if target_type == ReportTargetType.USER:
            query = query.filter(Report.reported_user_id == reported_user_id)
        else:
            query = query.filter(Report.target_id == target_id)
        return query.first()

    def claim(
        self,
        report_id: int,
        moderator_id: int,
        expected_status: ReportStatus,
        expected_assignee: Optional[int],
    ) -> int:
        """
        Assign a report to a moderator if nobody changed it since it was read.

        Does not commit.

        Args:
            report_id: ID of the report
            moderator_id: Moderator taking the report
            expected_status: Status the caller observed
            expected_assignee: Assignee the caller observed

        Returns:
            1 if the assignment was applied, 0 if the report had moved on
        """
        return self.update_where(
            {"status": ReportStatus.REVIEWING, "assigned_to": moderator_id},
            Report.id == report_id,
            Report.status == expected_status,
            _assignee_matches(expected_assignee),
        )

    def close(
        self,
        report_id: int,
        status: ReportStatus,
        resolver_id: int,
        notes: Optional[str],
        now: datetime,
    ) -> int:
        """
        Move an open report to a terminal status. Does not commit.

        Returns:
            1 if the report was closed by this call, 0 if it was already closed
        """
        return self.update_where(
            {
                "status": status,
                "resolved_by": resolver_id,
                "resolved_at": now,
                "resolution_notes": notes,
            },
            Report.id == report_id,
            Report.status.in_(OPEN_STATUSES),
        )

    def set_priority_if_open(self, report_id: int, priority: ReportPriority) -> int:
        """Change priority of an open report. Does not commit."""
        return self.update_where(
            {"priority": priority},
            Report.id == report_id,
            Report.status.in_(OPEN_STATUSES),
        )

    def list_reports(
        self,
        status: Optional[ReportStatus] = None,
        priority: Optional[ReportPriority] = None,
        assigned_to: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Report], int]:
        """
        List reports newest first.

        Args:
            status: Filter by status
            priority: Filter by priority
            assigned_to: Filter by assignee
            skip: Pagination offset
            limit: Pagination limit

        Returns:
            Tuple of (reports, total_count)
        """
        query = self.db.query(Report)
        if status is not None:
            query = query.filter(Report.status == status)
        if priority is not None:
            query = query.filter(Report.priority == priority)
        if assigned_to is not None:
            query = query.filter(Report.assigned_to == assigned_to)

        total = query.count()
        reports = (
            query.order_by(Report.created_at.desc(), Report.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return reports, total

    def count_by_status(self) -> dict[ReportStatus, int]:
        """Get number of reports in each status (zero-filled)."""
        counts = {status: 0 for status in ReportStatus}
        rows = (
            self.db.query(Report.status, func.count(Report.id))
            .group_by(Report.status)
            .all()
        )
        for status, count in rows:
            counts[ReportStatus(status)] = count
        return counts
