"""
Custom domain exceptions for the moderation engine.

Services raise these and the centralized handlers in main.py translate them
into HTTP responses, so nothing below the router layer depends on FastAPI.
The authentication module uses them as well, which keeps token checks usable
from background jobs and scripts.

Each exception carries a correlation ID for Sentry and user error reports.
"""

from datetime import datetime

from core.correlation import generate_correlation_id, get_correlation_id


class DomainException(Exception):
    """
    Base class for all domain exceptions.

    Attributes:
        message: Human-readable error message.
        correlation_id: Unique ID for error tracking (auto-generated if not provided).
    """

    def __init__(self, message: str, correlation_id: str | None = None):
        self.message = message
        # Use request correlation ID if available, otherwise generate new one
        self.correlation_id = (
            correlation_id or get_correlation_id() or generate_correlation_id()
        )
        super().__init__(self.message)


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    pass


class PermissionDeniedException(DomainException):
    """Raised when user lacks required permissions."""

    pass


class ValidationException(DomainException):
    """Raised when input validation fails."""

    pass


class ConflictException(DomainException):
    """Raised when an operation conflicts with the current state of a record."""

    pass


class AuthenticationException(DomainException):
    """Raised when authentication fails."""

    pass


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    pass


class DependencyException(DomainException):
    """
    Raised when the store rejects a primary write.

    The caller's request had no effect and may be retried.
    """

    def __init__(self, operation: str, correlation_id: str | None = None):
        super().__init__(
            f"Could not complete '{operation}', please retry", correlation_id
        )
        self.operation = operation


# Users and authorization


class UserNotFoundException(NotFoundException):
    """User not found."""

    def __init__(self, user_id: int | None = None):
        if user_id is None:
            super().__init__("User not found")
        else:
            super().__init__(f"User with ID {user_id} not found")
        self.user_id = user_id


class InactiveUserException(PermissionDeniedException):
    """User account is inactive."""

    pass


class InsufficientPermissionsException(PermissionDeniedException):
    """User doesn't have sufficient permissions."""

    pass


class UserBannedException(PermissionDeniedException):
    """Raised when a suspended user tries to perform a restricted action."""

    def __init__(self, expires_at: datetime | None = None, pending: bool = False):
        if pending:
            message = "Your account is restricted while a moderation update is applied"
        elif expires_at:
            message = f"Your account is suspended until {expires_at.isoformat()}"
        else:
            message = "Your account has been permanently suspended"
        super().__init__(message)
        self.expires_at = expires_at
        self.pending = pending


# Suspensions and warnings


class SuspensionNotFoundException(NotFoundException):
    """Raised when a suspension does not exist."""

    def __init__(self, suspension_id: int):
        super().__init__(f"Suspension with ID {suspension_id} not found")
        self.suspension_id = suspension_id


class SuspensionNotActiveException(ConflictException):
    """Raised when lifting a suspension that was already lifted."""

    def __init__(self, suspension_id: int):
        super().__init__(f"Suspension {suspension_id} is no longer active")
        self.suspension_id = suspension_id


class WarningNotFoundException(NotFoundException):
    """Raised when a warning does not exist."""

    def __init__(self, warning_id: int):
        super().__init__(f"Warning with ID {warning_id} not found")
        self.warning_id = warning_id


# Reports


class ReportNotFoundException(NotFoundException):
    """Raised when a report does not exist."""

    def __init__(self, report_id: int):
        super().__init__(f"Report with ID {report_id} not found")
        self.report_id = report_id


class ReportAlreadyClosedException(ConflictException):
    """Raised when acting on a resolved or dismissed report."""

    def __init__(self, report_id: int):
        super().__init__(f"Report {report_id} has already been closed")
        self.report_id = report_id


class ReportAssignmentConflictException(ConflictException):
    """Raised when another moderator changed the report first."""

    def __init__(self, report_id: int):
        super().__init__(
            f"Report {report_id} was updated by another moderator, reload and retry"
        )
        self.report_id = report_id


class DuplicateReportException(ConflictException):
    """Raised when the reporter already has an open report on the target."""

    def __init__(self, message: str = "You have already reported this content"):
        super().__init__(message)


class CannotReportSelfException(BusinessRuleException):
    """Raised when a user reports themself."""

    def __init__(self, message: str = "You cannot report yourself"):
        super().__init__(message)


# Content filter


class FilterRuleNotFoundException(NotFoundException):
    """Raised when a content filter rule does not exist."""

    def __init__(self, rule_id: int):
        super().__init__(f"Filter rule with ID {rule_id} not found")
        self.rule_id = rule_id


class InvalidRegexException(ValidationException):
    """Raised when a regex pattern cannot be used as a filter rule."""

    def __init__(self, pattern: str, error: str):
        super().__init__(f"Invalid regex pattern '{pattern}': {error}")
        self.pattern = pattern
        self.error = error


# Audit log


class ModerationLogImmutableException(BusinessRuleException):
    """Raised on any attempt to change or remove an audit entry."""

    def __init__(self, message: str = "Moderation log entries cannot be modified"):
        super().__init__(message)


class NotificationNotFoundException(NotFoundException):
    """Raised when an inbox notification does not exist for the user."""

    def __init__(self, notification_id: int):
        super().__init__(f"Notification with ID {notification_id} not found")
        self.notification_id = notification_id
