"""
Services layer for business logic.

This package contains service modules that encapsulate moderation business
logic separate from the API routes.
"""

from .content_filter_service import ContentFilterService
from .moderation_log_service import ModerationLogService
from .notification_service import NotificationService
from .report_service import ReportService
from .suspension_service import SuspensionService
from .trust_state_service import TrustStateService
from .warning_service import WarningService

__all__ = [
    "ContentFilterService",
    "ModerationLogService",
    "NotificationService",
    "ReportService",
    "SuspensionService",
    "TrustStateService",
    "WarningService",
]
