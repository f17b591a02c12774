"""
Repository pattern implementation for data access layer.
"""

from .base import BaseRepository
from .content_filter_repository import ContentFilterRepository
from .moderation_log_repository import ModerationLogRepository
from .notification_repository import NotificationRepository
from .report_repository import ReportRepository
from .suspension_repository import SuspensionRepository
from .user_repository import UserRepository
from .warning_repository import WarningRepository

__all__ = [
    "BaseRepository",
    "ContentFilterRepository",
    "ModerationLogRepository",
    "NotificationRepository",
    "ReportRepository",
    "SuspensionRepository",
    "UserRepository",
    "WarningRepository",
]
