"""Notifications, admin sessions, platform API keys, audit log and segments.

Revision ID: 002_admin_tools
Revises: 001_initial
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "002_admin_tools"
down_revision: Union[str, Sequence[str], None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.Uuid(), primary_key=True)


def _owner() -> sa.Column:
    return sa.Column(
        "user_id", sa.Uuid(), sa.ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def _has_table(bind, name: str) -> bool:
    return sa.inspect(bind).has_table(name)


def upgrade() -> None:
    bind = op.get_bind()

    if not _has_table(bind, "notification"):
        op.create_table(
            "notification",
            _id(),
            _owner(),
            sa.Column("title", sa.String(200), nullable=False),
            sa.Column("message", sa.Text, nullable=False),
            sa.Column("type", sa.String(20), nullable=False, server_default="info"),
            sa.Column("category", sa.String(50), nullable=False, server_default="general"),
            sa.Column("priority", sa.String(20), nullable=False, server_default="normal"),
            sa.Column("status", sa.String(20), nullable=False, server_default="unread"),
            sa.Column("action_url", sa.String(500)),
            sa.Column("metadata_json", sa.JSON),
            sa.Column("read_at", sa.DateTime(timezone=True)),
            sa.Column("expires_at", sa.DateTime(timezone=True)),
            *_timestamps(),
        )
        op.create_index("ix_notification_user_id", "notification", ["user_id"])
        op.create_index("ix_notification_category", "notification", ["category"])
        op.create_index("ix_notification_status", "notification", ["status"])

    if not _has_table(bind, "admin_session"):
        op.create_table(
            "admin_session",
            _id(),
            _owner(),
            sa.Column("session_token", sa.String(64), nullable=False, unique=True),
            sa.Column("ip_address", sa.String(64)),
            sa.Column("user_agent", sa.String(500)),
            sa.Column("location", sa.JSON),
            sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
            sa.Column("last_activity", sa.DateTime(timezone=True)),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            *_timestamps(),
        )
        op.create_index("ix_admin_session_user_id", "admin_session", ["user_id"])
        op.create_index("ix_admin_session_is_active", "admin_session", ["is_active"])

    if not _has_table(bind, "admin_api_key"):
        op.create_table(
            "admin_api_key",
            _id(),
            _owner(),
            sa.Column("key_name", sa.String(100), nullable=False),
            sa.Column("api_key_hash", sa.String(64), nullable=False, unique=True),
            sa.Column("api_key_preview", sa.String(20), nullable=False),
            sa.Column("permissions", sa.JSON),
            sa.Column("status", sa.String(20), nullable=False, server_default="active"),
            sa.Column("last_used", sa.DateTime(timezone=True)),
            sa.Column("expires_at", sa.DateTime(timezone=True)),
            *_timestamps(),
        )
        op.create_index("ix_admin_api_key_user_id", "admin_api_key", ["user_id"])

    if not _has_table(bind, "audit_log"):
        op.create_table(
            "audit_log",
            _id(),
            sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user_profile.id", ondelete="SET NULL")),
            sa.Column("action", sa.String(50), nullable=False),
            sa.Column("resource", sa.String(200)),
            sa.Column("data", sa.JSON),
            *_timestamps(),
        )
        op.create_index("ix_audit_log_user_id", "audit_log", ["user_id"])
        op.create_index("ix_audit_log_action", "audit_log", ["action"])

    # Segments
    if not _has_table(bind, "user_segment"):
        op.create_table(
            "user_segment",
            _id(),
            sa.Column("name", sa.String(100), nullable=False, unique=True),
            sa.Column("description", sa.Text),
            sa.Column("criteria", sa.JSON),
            sa.Column("user_count", sa.Integer, nullable=False, server_default="0"),
            sa.Column("last_updated", sa.DateTime(timezone=True)),
            sa.Column("created_by", sa.Uuid(), sa.ForeignKey("user_profile.id", ondelete="SET NULL")),
            *_timestamps(),
        )

    if not _has_table(bind, "user_segment_member"):
        op.create_table(
            "user_segment_member",
            _id(),
            sa.Column(
                "segment_id", sa.Uuid(),
                sa.ForeignKey("user_segment.id", ondelete="CASCADE"), nullable=False,
            ),
            _owner(),
            sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
            sa.UniqueConstraint("segment_id", "user_id", name="uq_user_segment_member"),
        )
        op.create_index("ix_user_segment_member_segment_id", "user_segment_member", ["segment_id"])
        op.create_index("ix_user_segment_member_user_id", "user_segment_member", ["user_id"])


def downgrade() -> None:
    for table in (
        "user_segment_member",
        "user_segment",
        "audit_log",
        "admin_api_key",
        "admin_session",
        "notification",
    ):
        op.drop_table(table)
