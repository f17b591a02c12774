"""Moderation and trust schema

Revision ID: 0001_moderation_schema
Revises:
Create Date: 2026-10-19

Creates the tables for the moderation engine:
- users (with synchronized trust state columns)
- suspensions, warnings
- reports
- content_filters
- moderation_logs (append-only)
- notifications
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_moderation_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# SQLAlchemy Enum columns store member names
user_role = sa.Enum("USER", "MOD", "ADMIN", name="userrole")
moderator_type = sa.Enum("SUPER", "BASIC", "COUNTRY", name="moderatortype")
suspension_kind = sa.Enum("TEMPORARY", "PERMANENT", "SUPER_BAN", name="suspensionkind")
report_target_type = sa.Enum("POST", "THREAD", "USER", name="reporttargettype")
report_status = sa.Enum(
    "PENDING", "REVIEWING", "RESOLVED", "DISMISSED", name="reportstatus"
)
report_priority = sa.Enum("LOW", "NORMAL", "HIGH", "URGENT", name="reportpriority")
filter_rule_type = sa.Enum("WORD", "URL", "PHRASE", name="filterruletype")
notification_type = sa.Enum(
    "SUSPENSION", "WARNING", "REPORT_UPDATE", "SYSTEM", name="usernotificationtype"
)


def upgrade() -> None:
    """Create moderation schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("moderator_type", moderator_type, nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_suspended", sa.Boolean(), nullable=False),
        sa.Column("suspended_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trust_state_stale", sa.Boolean(), nullable=False),
        sa.Column("trust_state_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_trust_state_stale", "users", ["trust_state_stale"])

    op.create_table(
        "suspensions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("issued_by", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("kind", suspension_kind, nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("lifted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lifted_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["issued_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["lifted_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_suspensions_id", "suspensions", ["id"])
    op.create_index(
        "ix_suspensions_user_active", "suspensions", ["user_id", "is_active"]
    )
    op.create_index("ix_suspensions_created", "suspensions", ["created_at"])

    op.create_table(
        "warnings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("issued_by", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["issued_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_warnings_id", "warnings", ["id"])
    op.create_index("ix_warnings_user_active", "warnings", ["user_id", "is_active"])
    op.create_index("ix_warnings_expires", "warnings", ["expires_at"])

    op.create_table(
        "reports",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("reporter_id", sa.Integer(), nullable=False),
        sa.Column("reported_user_id", sa.Integer(), nullable=False),
        sa.Column("target_type", report_target_type, nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", report_status, nullable=False),
        sa.Column("priority", report_priority, nullable=False),
        sa.Column("assigned_to", sa.Integer(), nullable=True),
        sa.Column("resolved_by", sa.Integer(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["reporter_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["reported_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["assigned_to"], ["users.id"]),
        sa.ForeignKeyConstraint(["resolved_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_reports_id", "reports", ["id"])
    op.create_index("ix_reports_status_priority", "reports", ["status", "priority"])
    op.create_index("ix_reports_target", "reports", ["target_type", "target_id"])
    op.create_index("ix_reports_reporter", "reports", ["reporter_id"])
    op.create_index("ix_reports_assigned", "reports", ["assigned_to"])

    op.create_table(
        "content_filters",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("type", filter_rule_type, nullable=False),
        sa.Column("pattern", sa.String(500), nullable=False),
        sa.Column("replacement", sa.String(255), nullable=False),
        sa.Column("is_regex", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("match_count", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_content_filters_id", "content_filters", ["id"])
    op.create_index("ix_content_filters_active", "content_filters", ["is_active"])

    op.create_table(
        "moderation_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("moderator_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("target_user_id", sa.Integer(), nullable=True),
        sa.Column("target_post_id", sa.Integer(), nullable=True),
        sa.Column("target_thread_id", sa.Integer(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["moderator_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_moderation_logs_id", "moderation_logs", ["id"])
    op.create_index("ix_moderation_logs_moderator", "moderation_logs", ["moderator_id"])
    op.create_index("ix_moderation_logs_action", "moderation_logs", ["action"])
    op.create_index(
        "ix_moderation_logs_target_user", "moderation_logs", ["target_user_id"]
    )
    op.create_index("ix_moderation_logs_created", "moderation_logs", ["created_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.Text(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index(
        "ix_notifications_user_read", "notifications", ["user_id", "is_read"]
    )


def downgrade() -> None:
    """Drop moderation schema."""
    op.drop_table("notifications")
    op.drop_table("moderation_logs")
    op.drop_table("content_filters")
    op.drop_table("reports")
    op.drop_table("warnings")
    op.drop_table("suspensions")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (
        notification_type,
        filter_rule_type,
        report_priority,
        report_status,
        report_target_type,
        suspension_kind,
        moderator_type,
        user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
