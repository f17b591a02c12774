"""
Database models using SQLAlchemy 2.0 style with Mapped type hints.

Timestamps are stored as UTC. SQLite drops the offset on read, so services
pass every stored datetime through helpers.time_utils.ensure_utc before
comparing it with the clock.
"""

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repositories.database import Base


class UserRole(str, enum.Enum):
    USER = "user"
    MOD = "mod"
    ADMIN = "admin"


class ModeratorType(str, enum.Enum):
    """Scope of a moderator's powers (only meaningful for role=mod)."""

    SUPER = "super"
    BASIC = "basic"
    COUNTRY = "country"


class SuspensionKind(str, enum.Enum):
    TEMPORARY = "temporary"
    PERMANENT = "permanent"
    SUPER_BAN = "super_ban"


class ReportTargetType(str, enum.Enum):
    POST = "post"
    THREAD = "thread"
    USER = "user"


class ReportStatus(str, enum.Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"

    @property
    def is_terminal(self) -> bool:
        return self in (ReportStatus.RESOLVED, ReportStatus.DISMISSED)


class ReportPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class FilterRuleType(str, enum.Enum):
    WORD = "word"
    URL = "url"
    PHRASE = "phrase"


class UserNotificationType(str, enum.Enum):
    SUSPENSION = "suspension"
    WARNING = "warning"
    REPORT_UPDATE = "report_update"
    SYSTEM = "system"


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class User(Base):
    """
    Profile record the moderation engine acts on.

    `is_suspended`/`suspended_until` are the synchronized trust state, a
    cache of the user's suspensions rewritten on every suspension change.
    `trust_state_stale` is raised when that rewrite failed; the user is
    treated as blocked until a later recompute succeeds.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    username: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    display_name: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), default=UserRole.USER, nullable=False
    )
    moderator_type: Mapped[Optional[ModeratorType]] = mapped_column(
        Enum(ModeratorType), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )

    # Synchronized trust state
    is_suspended: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    suspended_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    trust_state_stale: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True
    )
    trust_state_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class Suspension(Base):
    """
    A staff-issued suspension.

    Rows are never removed by expiry: an expired suspension stays active in
    storage and is simply ignored once `expires_at` has passed. Only
    temporary suspensions carry an expiry.
    """

    __tablename__ = "suspensions"
    __table_args__ = (
        Index("ix_suspensions_user_active", "user_id", "is_active"),
        Index("ix_suspensions_created", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    issued_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    kind: Mapped[SuspensionKind] = mapped_column(Enum(SuspensionKind), nullable=False)
    starts_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, nullable=False
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )  # NULL = no expiry
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    lifted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    lifted_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    issuer: Mapped["User"] = relationship("User", foreign_keys=[issued_by])


class ModerationWarning(Base):
    """A warning with a point weight that lapses at `expires_at`."""

    __tablename__ = "warnings"
    __table_args__ = (
        Index("ix_warnings_user_active", "user_id", "is_active"),
        Index("ix_warnings_expires", "expires_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    issued_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    points: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    issuer: Mapped["User"] = relationship("User", foreign_keys=[issued_by])


class Report(Base):
    """
    A user report on a post, thread or user.

    Status only moves forward: pending -> reviewing -> resolved|dismissed,
    or straight from pending to a terminal state.
    """

    __tablename__ = "reports"
    __table_args__ = (
        Index("ix_reports_status_priority", "status", "priority"),
        Index("ix_reports_target", "target_type", "target_id"),
        Index("ix_reports_reporter", "reporter_id"),
        Index("ix_reports_assigned", "assigned_to"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    reporter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    reported_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    target_type: Mapped[ReportTargetType] = mapped_column(
        Enum(ReportTargetType), nullable=False
    )
    target_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[ReportStatus] = mapped_column(
        Enum(ReportStatus), default=ReportStatus.PENDING, nullable=False
    )
    priority: Mapped[ReportPriority] = mapped_column(
        Enum(ReportPriority), default=ReportPriority.NORMAL, nullable=False
    )
    assigned_to: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    resolved_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )

    reporter: Mapped["User"] = relationship("User", foreign_keys=[reporter_id])
    reported_user: Mapped["User"] = relationship(
        "User", foreign_keys=[reported_user_id]
    )


class ContentFilterRule(Base):
    """
    A literal or regex pattern rewritten out of submitted posts and threads.

    Rules are applied in (created_at, id) order; earlier rules win when two
    matches overlap.
    """

    __tablename__ = "content_filters"
    __table_args__ = (Index("ix_content_filters_active", "is_active"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    type: Mapped[FilterRuleType] = mapped_column(
        Enum(FilterRuleType), default=FilterRuleType.WORD, nullable=False
    )
    pattern: Mapped[str] = mapped_column(String(500), nullable=False)
    replacement: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    is_regex: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    match_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    creator: Mapped["User"] = relationship("User", foreign_keys=[created_by])


class ModerationLog(Base):
    """Append-only record of a moderation action. Never updated or deleted."""

    __tablename__ = "moderation_logs"
    __table_args__ = (
        Index("ix_moderation_logs_moderator", "moderator_id"),
        Index("ix_moderation_logs_action", "action"),
        Index("ix_moderation_logs_target_user", "target_user_id"),
        Index("ix_moderation_logs_created", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    moderator_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    target_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_post_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_thread_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class UserNotification(Base):
    """In-app notification shown in the affected user's inbox."""

    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    type: Mapped[UserNotificationType] = mapped_column(
        Enum(UserNotificationType), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
