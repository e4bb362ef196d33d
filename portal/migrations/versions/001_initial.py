"""Initial portal schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, Sequence[str], None] = None
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

    if not _has_table(bind, "user_profile"):
        op.create_table(
            "user_profile",
            _id(),
            sa.Column("email", sa.String(255), nullable=False),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("first_name", sa.String(100)),
            sa.Column("last_name", sa.String(100)),
            sa.Column("phone", sa.String(20)),
            sa.Column("company_name", sa.String(200)),
            sa.Column("avatar_url", sa.String(500)),
            sa.Column("role", sa.String(20), nullable=False, server_default="user"),
            sa.Column("user_type", sa.String(20), nullable=False, server_default="client"),
            sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
            sa.Column("failed_login_attempts", sa.Integer, nullable=False, server_default="0"),
            sa.Column("locked_until", sa.DateTime(timezone=True)),
            sa.Column("last_login_at", sa.DateTime(timezone=True)),
            *_timestamps(),
        )
        op.create_index("ix_user_profile_email", "user_profile", ["email"], unique=True)
        op.create_index("ix_user_profile_role", "user_profile", ["role"])

    if not _has_table(bind, "admin_security_setting"):
        op.create_table(
            "admin_security_setting",
            _id(),
            _owner(),
            sa.Column("two_factor_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column("session_timeout", sa.Integer, nullable=False, server_default="30"),
            sa.Column("ip_whitelist", sa.JSON),
            sa.Column("password_change_required", sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column("password_last_changed", sa.DateTime(timezone=True)),
            sa.Column("login_attempts", sa.Integer, nullable=False, server_default="0"),
            sa.Column("last_login", sa.DateTime(timezone=True)),
            *_timestamps(),
            sa.UniqueConstraint("user_id", name="uq_admin_security_setting_user"),
        )
        op.create_index("ix_admin_security_setting_user_id", "admin_security_setting", ["user_id"])

    if not _has_table(bind, "api_credential"):
        op.create_table(
            "api_credential",
            _id(),
            _owner(),
            sa.Column("service_name", sa.String(50), nullable=False),
            sa.Column("username", sa.String(100), nullable=False),
            sa.Column("api_key_encrypted", sa.String(255), nullable=False),
            sa.Column("sender_id", sa.String(20)),
            sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.UniqueConstraint("user_id", "service_name", name="uq_api_credential_user_service"),
        )
        op.create_index("ix_api_credential_user_id", "api_credential", ["user_id"])
        op.create_index("ix_api_credential_service_name", "api_credential", ["service_name"])

    # Contacts and groups
    if not _has_table(bind, "contact"):
        op.create_table(
            "contact",
            _id(),
            _owner(),
            sa.Column("first_name", sa.String(100)),
            sa.Column("last_name", sa.String(100)),
            sa.Column("phone", sa.String(20)),
            sa.Column("email", sa.String(255)),
            sa.Column("tags", sa.JSON),
            sa.Column("metadata_json", sa.JSON),
            sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
            *_timestamps(),
        )
        op.create_index("ix_contact_user_id", "contact", ["user_id"])
        op.create_index("ix_contact_email", "contact", ["email"])
        op.create_index("ix_contact_user_phone", "contact", ["user_id", "phone"])

    if not _has_table(bind, "contact_group"):
        op.create_table(
            "contact_group",
            _id(),
            _owner(),
            sa.Column("name", sa.String(200), nullable=False),
            sa.Column("description", sa.Text),
            sa.Column("contact_count", sa.Integer, nullable=False, server_default="0"),
            *_timestamps(),
            sa.UniqueConstraint("user_id", "name", name="uq_contact_group_user_name"),
        )
        op.create_index("ix_contact_group_user_id", "contact_group", ["user_id"])

    if not _has_table(bind, "contact_group_member"):
        op.create_table(
            "contact_group_member",
            _id(),
            sa.Column("group_id", sa.Uuid(), sa.ForeignKey("contact_group.id", ondelete="CASCADE"), nullable=False),
            sa.Column("contact_id", sa.Uuid(), sa.ForeignKey("contact.id", ondelete="CASCADE"), nullable=False),
            sa.Column("added_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.UniqueConstraint("group_id", "contact_id", name="uq_contact_group_member"),
        )
        op.create_index("ix_contact_group_member_group_id", "contact_group_member", ["group_id"])
        op.create_index("ix_contact_group_member_contact_id", "contact_group_member", ["contact_id"])

    # Campaigns and message history
    if not _has_table(bind, "campaign"):
        op.create_table(
            "campaign",
            _id(),
            _owner(),
            sa.Column("name", sa.String(200), nullable=False),
            sa.Column("type", sa.String(20), nullable=False, server_default="sms"),
            sa.Column("message", sa.Text, nullable=False),
            sa.Column("sender_id", sa.String(20)),
            sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
            sa.Column("recipient_count", sa.Integer, nullable=False, server_default="0"),
            sa.Column("sent_count", sa.Integer, nullable=False, server_default="0"),
            sa.Column("delivered_count", sa.Integer, nullable=False, server_default="0"),
            sa.Column("failed_count", sa.Integer, nullable=False, server_default="0"),
            sa.Column("cost", sa.Float, nullable=False, server_default="0"),
            sa.Column("target_criteria", sa.JSON),
            sa.Column("scheduled_at", sa.DateTime(timezone=True)),
            sa.Column("sent_at", sa.DateTime(timezone=True)),
            sa.Column("completed_at", sa.DateTime(timezone=True)),
            *_timestamps(),
        )
        op.create_index("ix_campaign_user_id", "campaign", ["user_id"])
        op.create_index("ix_campaign_status", "campaign", ["status"])

    if not _has_table(bind, "message_history"):
        op.create_table(
            "message_history",
            _id(),
            _owner(),
            sa.Column("campaign_id", sa.Uuid(), sa.ForeignKey("campaign.id", ondelete="SET NULL")),
            sa.Column("type", sa.String(20), nullable=False, server_default="sms"),
            sa.Column("sender", sa.String(50)),
            sa.Column("recipient", sa.String(50), nullable=False),
            sa.Column("content", sa.Text, nullable=False),
            sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
            sa.Column("provider", sa.String(50)),
            sa.Column("provider_message_id", sa.String(100)),
            sa.Column("cost", sa.Float, nullable=False, server_default="0"),
            sa.Column("error_message", sa.Text),
            sa.Column("retry_count", sa.Integer, nullable=False, server_default="0"),
            sa.Column("sent_at", sa.DateTime(timezone=True)),
            sa.Column("delivered_at", sa.DateTime(timezone=True)),
            sa.Column("failed_at", sa.DateTime(timezone=True)),
            *_timestamps(),
        )
        op.create_index("ix_message_history_user_id", "message_history", ["user_id"])
        op.create_index("ix_message_history_campaign_id", "message_history", ["campaign_id"])
        op.create_index("ix_message_history_recipient", "message_history", ["recipient"])
        op.create_index("ix_message_history_status", "message_history", ["status"])

    # Credits
    if not _has_table(bind, "user_credits"):
        op.create_table(
            "user_credits",
            _id(),
            _owner(),
            sa.Column("credits_remaining", sa.Integer, nullable=False, server_default="0"),
            sa.Column("credits_purchased", sa.Integer, nullable=False, server_default="0"),
            *_timestamps(),
            sa.UniqueConstraint("user_id", name="uq_user_credits_user"),
        )
        op.create_index("ix_user_credits_user_id", "user_credits", ["user_id"])

    if not _has_table(bind, "credit_transaction"):
        op.create_table(
            "credit_transaction",
            _id(),
            _owner(),
            sa.Column("type", sa.String(20), nullable=False),
            sa.Column("amount", sa.Integer, nullable=False),
            sa.Column("description", sa.Text),
            sa.Column("reference", sa.String(100)),
            sa.Column("status", sa.String(20), nullable=False, server_default="completed"),
            *_timestamps(),
        )
        op.create_index("ix_credit_transaction_user_id", "credit_transaction", ["user_id"])
        op.create_index("ix_credit_transaction_type", "credit_transaction", ["type"])

    # Services
    if not _has_table(bind, "service_catalog"):
        op.create_table(
            "service_catalog",
            _id(),
            sa.Column("service_name", sa.String(100), nullable=False, unique=True),
            sa.Column("service_type", sa.String(20), nullable=False),
            sa.Column("description", sa.Text),
            sa.Column("provider", sa.String(50)),
            sa.Column("setup_fee", sa.Float, nullable=False, server_default="0"),
            sa.Column("monthly_fee", sa.Float, nullable=False, server_default="0"),
            sa.Column("transaction_fee_type", sa.String(20), nullable=False, server_default="fixed"),
            sa.Column("transaction_fee_amount", sa.Float, nullable=False, server_default="0"),
            sa.Column("is_premium", sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
            sa.Column("configuration", sa.JSON),
            *_timestamps(),
        )
        op.create_index("ix_service_catalog_service_type", "service_catalog", ["service_type"])

    if not _has_table(bind, "service_subscription"):
        op.create_table(
            "service_subscription",
            _id(),
            _owner(),
            sa.Column("service_id", sa.Uuid(), sa.ForeignKey("service_catalog.id", ondelete="CASCADE"), nullable=False),
            sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
            sa.Column("setup_fee_paid", sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column("monthly_billing_active", sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column("activated_at", sa.DateTime(timezone=True)),
            sa.Column("expires_at", sa.DateTime(timezone=True)),
            sa.Column("configuration", sa.JSON),
            *_timestamps(),
            sa.UniqueConstraint("user_id", "service_id", name="uq_service_subscription_user_service"),
        )
        op.create_index("ix_service_subscription_user_id", "service_subscription", ["user_id"])
        op.create_index("ix_service_subscription_service_id", "service_subscription", ["service_id"])

    if not _has_table(bind, "service_activation_request"):
        op.create_table(
            "service_activation_request",
            _id(),
            _owner(),
            sa.Column("service_id", sa.Uuid(), sa.ForeignKey("service_catalog.id", ondelete="CASCADE"), nullable=False),
            sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
            sa.Column("business_justification", sa.Text),
            sa.Column("admin_id", sa.Uuid(), sa.ForeignKey("user_profile.id", ondelete="SET NULL")),
            sa.Column("approved_at", sa.DateTime(timezone=True)),
            sa.Column("rejection_reason", sa.Text),
            *_timestamps(),
        )
        op.create_index("ix_service_activation_request_user_id", "service_activation_request", ["user_id"])
        op.create_index("ix_service_activation_request_service_id", "service_activation_request", ["service_id"])
        op.create_index("ix_service_activation_request_status", "service_activation_request", ["status"])

    # Data hub
    if not _has_table(bind, "data_model"):
        op.create_table(
            "data_model",
            _id(),
            _owner(),
            sa.Column("name", sa.String(200), nullable=False),
            sa.Column("description", sa.Text),
            sa.Column("fields", sa.JSON, nullable=False),
            *_timestamps(),
        )
        op.create_index("ix_data_model_user_id", "data_model", ["user_id"])

    if not _has_table(bind, "data_record"):
        op.create_table(
            "data_record",
            _id(),
            _owner(),
            sa.Column("model_id", sa.Uuid(), sa.ForeignKey("data_model.id", ondelete="CASCADE"), nullable=False),
            sa.Column("data", sa.JSON, nullable=False),
            *_timestamps(),
        )
        op.create_index("ix_data_record_user_id", "data_record", ["user_id"])
        op.create_index("ix_data_record_model_id", "data_record", ["model_id"])

    if not _has_table(bind, "import_job"):
        op.create_table(
            "import_job",
            _id(),
            _owner(),
            sa.Column("model_id", sa.Uuid(), sa.ForeignKey("data_model.id", ondelete="CASCADE"), nullable=False),
            sa.Column("filename", sa.String(255)),
            sa.Column("file_url", sa.String(1000), nullable=False),
            sa.Column("file_type", sa.String(10), nullable=False),
            sa.Column("file_size", sa.Integer),
            sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
            sa.Column("total_records", sa.Integer, nullable=False, server_default="0"),
            sa.Column("processed_records", sa.Integer, nullable=False, server_default="0"),
            sa.Column("invalid_records", sa.Integer, nullable=False, server_default="0"),
            sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
            sa.Column("error_message", sa.Text),
            sa.Column("started_at", sa.DateTime(timezone=True)),
            sa.Column("completed_at", sa.DateTime(timezone=True)),
            *_timestamps(),
        )
        op.create_index("ix_import_job_user_id", "import_job", ["user_id"])
        op.create_index("ix_import_job_model_id", "import_job", ["model_id"])
        op.create_index("ix_import_job_status", "import_job", ["status"])

    # Analytics
    if not _has_table(bind, "analytics_event"):
        op.create_table(
            "analytics_event",
            _id(),
            sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user_profile.id", ondelete="SET NULL")),
            sa.Column("event_type", sa.String(50), nullable=False),
            sa.Column("service_type", sa.String(20)),
            sa.Column("metadata_json", sa.JSON),
            sa.Column("revenue", sa.Float, nullable=False, server_default="0"),
            *_timestamps(),
        )
        op.create_index("ix_analytics_event_user_id", "analytics_event", ["user_id"])
        op.create_index("ix_analytics_event_event_type", "analytics_event", ["event_type"])


def downgrade() -> None:
    for table in (
        "analytics_event",
        "import_job",
        "data_record",
        "data_model",
        "service_activation_request",
        "service_subscription",
        "service_catalog",
        "credit_transaction",
        "user_credits",
        "message_history",
        "campaign",
        "contact_group_member",
        "contact_group",
        "contact",
        "api_credential",
        "admin_security_setting",
        "user_profile",
    ):
        op.drop_table(table)
