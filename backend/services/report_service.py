"""
Service for report triage business logic.

State machine:

    pending --assign--> reviewing --resolve/dismiss--> resolved | dismissed
    pending --resolve/dismiss--> resolved | dismissed

Terminal states are final. Each transition is a conditional UPDATE on the
state the moderator last saw, so concurrent triage fails loudly instead of
overwriting.
"""

from typing import Optional

from loguru import logger
from sqlalchemy.orm import Session

import helpers.time_utils as time_utils
from authentication.permissions import ensure_permission
from models.exceptions import (
    CannotReportSelfException,
    DuplicateReportException,
    ReportAlreadyClosedException,
    ReportAssignmentConflictException,
    ReportNotFoundException,
    UserNotFoundException,
    ValidationException,
)
from repositories.db_models import (
    Report,
    ReportPriority,
    ReportStatus,
    ReportTargetType,
    User,
    UserNotificationType,
)
from repositories.report_repository import ReportRepository
from repositories.user_repository import UserRepository
from services.action_outcome import ActionOutcome, primary_write
from services.moderation_log_service import ModerationAction, ModerationLogService
from services.notification_service import NotificationService


def _require_user(repo: UserRepository, user_id: int) -> User:
    user = repo.get_by_id(user_id)
    if not user:
        raise UserNotFoundException(user_id)
    return user


def _target_kwargs(report: Report) -> dict[str, Optional[int]]:
    """Map a report's target onto moderation log target columns."""
    kwargs: dict[str, Optional[int]] = {"target_user_id": report.reported_user_id}
    if report.target_type == ReportTargetType.POST:
        kwargs["target_post_id"] = report.target_id
    elif report.target_type == ReportTargetType.THREAD:
        kwargs["target_thread_id"] = report.target_id
    return kwargs


class ReportService:
    """Service for report operations."""

    @staticmethod
    def submit(
        db: Session,
        reporter_id: int,
        reported_user_id: int,
        target_type: ReportTargetType,
        target_id: Optional[int],
        reason: str,
        category: str,
        description: Optional[str] = None,
    ) -> Report:
        """
        File a new report.

        Args:
            db: Database session
            reporter_id: User filing the report
            reported_user_id: Author of the reported content (or the reported user)
            target_type: post, thread or user
            target_id: ID of the post/thread (ignored for user reports)
            reason: Reporter's explanation (required)
            category: Report category such as spam or harassment (required)
            description: Optional extra detail

        Returns:
            The stored report, pending with normal priority

        Raises:
            ValidationException: Missing reason, category or target ID
            CannotReportSelfException: If the reporter is the reported user
            UserNotFoundException: Reporter or reported user doesn't exist
            DuplicateReportException: Reporter already has an open report on
                this target
        """
        if reason is None or not reason.strip():
            raise ValidationException("A reason is required")
        if category is None or not category.strip():
            raise ValidationException("A category is required")
        if target_type == ReportTargetType.USER:
            target_id = None
        elif target_id is None:
            raise ValidationException(
                f"Reports on a {target_type.value} need the {target_type.value} ID"
            )

        if reporter_id == reported_user_id:
            raise CannotReportSelfException()

        user_repo = UserRepository(db)
        reporter = _require_user(user_repo, reporter_id)
        _require_user(user_repo, reported_user_id)

        repo = ReportRepository(db)
        if repo.get_open_duplicate(reporter_id, reported_user_id, target_type, target_id):
            raise DuplicateReportException()

        with primary_write(db, "submit_report"):
            report = repo.create(
                Report(
                    reporter_id=reporter_id,
                    reported_user_id=reported_user_id,
                    target_type=target_type,
                    target_id=target_id,
                    reason=reason.strip(),
                    category=category.strip(),
                    description=description,
                    status=ReportStatus.PENDING,
                    priority=ReportPriority.NORMAL,
                    created_at=time_utils.utc_now(),
                )
            )

        logger.info(
            f"Report {report.id} filed by user {reporter_id} "
            f"on {target_type.value} {target_id or reported_user_id}"
        )
        NotificationService.notify_new_report(
            report_id=report.id,
            target_type=target_type.value,
            category=report.category,
            reason=report.reason,
            reporter_display_name=reporter.display_name,
        )
        return report

    @staticmethod
    def get_report(db: Session, report_id: int) -> Report:
        """
        Get a report by ID.

        Raises:
            ReportNotFoundException: If it doesn't exist
        """
        report = ReportRepository(db).get_by_id(report_id)
        if not report:
            raise ReportNotFoundException(report_id)
        return report

    @staticmethod
    def assign_to_self(
        db: Session, report_id: int, moderator_id: int
    ) -> ActionOutcome[Report]:
        """
        Take a report into review.

        The write only lands if the report still has the status and assignee
        this call read; if another moderator got there first the caller gets
        a conflict and should reload.

        Args:
            db: Database session
            report_id: Report to take
            moderator_id: Moderator taking it

        Returns:
            ActionOutcome wrapping the report, now reviewing and assigned

        Raises:
            ReportNotFoundException: If it doesn't exist
            ReportAlreadyClosedException: If it is resolved or dismissed
            ReportAssignmentConflictException: If it changed since it was read
            InsufficientPermissionsException: If the moderator can't manage reports
        """
        moderator = _require_user(UserRepository(db), moderator_id)
        ensure_permission(moderator, "can_manage_reports")

        repo = ReportRepository(db)
        report = ReportService.get_report(db, report_id)
        observed_status = report.status
        observed_assignee = report.assigned_to

        if observed_status.is_terminal:
            raise ReportAlreadyClosedException(report_id)
        if (
            observed_status == ReportStatus.REVIEWING
            and observed_assignee == moderator_id
        ):
            return ActionOutcome(result=report)

        with primary_write(db, "assign_report"):
            claimed = repo.claim(
                report_id, moderator_id, observed_status, observed_assignee
            )
            if claimed == 0:
                repo.rollback()
                current = repo.get_by_id(report_id)
                if current is not None and current.status.is_terminal:
                    raise ReportAlreadyClosedException(report_id)
                raise ReportAssignmentConflictException(report_id)
            repo.commit()

        report = ReportService.get_report(db, report_id)
        audit_entry = ModerationLogService.record(
            db,
            moderator_id=moderator_id,
            action=ModerationAction.ASSIGN_REPORT,
            details={
                "report_id": report_id,
                "previous_assignee": observed_assignee,
            },
            **_target_kwargs(report),
        )
        return ActionOutcome(result=report, audit_logged=audit_entry is not None)

    @staticmethod
    def set_priority(
        db: Session, report_id: int, priority: ReportPriority
    ) -> Report:
        """
        Change an open report's priority. Not audited.

        Raises:
            ReportNotFoundException: If it doesn't exist
            ReportAlreadyClosedException: If it is resolved or dismissed
        """
        report = ReportService.get_report(db, report_id)
        if report.status.is_terminal:
            raise ReportAlreadyClosedException(report_id)

        repo = ReportRepository(db)
        with primary_write(db, "set_report_priority"):
            if repo.set_priority_if_open(report_id, priority) == 0:
                repo.rollback()
                raise ReportAlreadyClosedException(report_id)
            repo.commit()

        return ReportService.get_report(db, report_id)

    @staticmethod
    def _close(
        db: Session,
        report_id: int,
        resolver_id: int,
        status: ReportStatus,
        notes: Optional[str],
    ) -> ActionOutcome[Report]:
        resolver = _require_user(UserRepository(db), resolver_id)
        ensure_permission(resolver, "can_manage_reports")

        report = ReportService.get_report(db, report_id)
        if report.status.is_terminal:
            raise ReportAlreadyClosedException(report_id)

        repo = ReportRepository(db)
        operation = "resolve_report" if status == ReportStatus.RESOLVED else "dismiss_report"
        with primary_write(db, operation):
            closed = repo.close(report_id, status, resolver_id, notes, time_utils.utc_now())
            if closed == 0:
                repo.rollback()
                raise ReportAlreadyClosedException(report_id)
            repo.commit()

        report = ReportService.get_report(db, report_id)

        action = (
            ModerationAction.RESOLVE_REPORT
            if status == ReportStatus.RESOLVED
            else ModerationAction.DISMISS_REPORT
        )
        audit_entry = ModerationLogService.record(
            db,
            moderator_id=resolver_id,
            action=action,
            reason=notes,
            details={"report_id": report_id, "category": report.category},
            **_target_kwargs(report),
        )

        outcome_text = "resolved" if status == ReportStatus.RESOLVED else "dismissed"
        notified = NotificationService.notify_user(
            db,
            user_id=report.reporter_id,
            notification_type=UserNotificationType.REPORT_UPDATE,
            title=f"Your report was {outcome_text}",
            message=(
                f"Thanks for your report. A moderator has {outcome_text} it."
            ),
            data={"report_id": report_id, "status": status.value},
        )

        return ActionOutcome(
            result=report,
            audit_logged=audit_entry is not None,
            notified=notified,
        )

    @staticmethod
    def resolve(
        db: Session, report_id: int, resolver_id: int, notes: Optional[str] = None
    ) -> ActionOutcome[Report]:
        """
        Close a report as actioned.

        Raises:
            ReportNotFoundException: If it doesn't exist
            ReportAlreadyClosedException: If it is already closed
        """
        return ReportService._close(
            db, report_id, resolver_id, ReportStatus.RESOLVED, notes
        )

    @staticmethod
    def dismiss(
        db: Session, report_id: int, resolver_id: int, notes: Optional[str] = None
    ) -> ActionOutcome[Report]:
        """Close a report without action. Same errors as resolve()."""
        return ReportService._close(
            db, report_id, resolver_id, ReportStatus.DISMISSED, notes
        )

    @staticmethod
    def list_reports(
        db: Session,
        status: Optional[ReportStatus] = None,
        priority: Optional[ReportPriority] = None,
        assigned_to: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Report], int]:
        """List reports newest first with optional filters."""
        return ReportRepository(db).list_reports(
            status=status,
            priority=priority,
            assigned_to=assigned_to,
            skip=skip,
            limit=limit,
        )

    @staticmethod
    def count_by_status(db: Session) -> dict[str, int]:
        """Number of reports per status, for queue tabs."""
        counts = ReportRepository(db).count_by_status()
        return {status.value: count for status, count in counts.items()}
