"""
Инициальная миграция.

Создаёт таблицы:
- users
- tasks
- subscriptions, subscriptions_publications, subscriptions_templates
- notifications, outbox_messages
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

task_result = postgresql.ENUM(
    "TaskSuccess",
    "TaskWarning",
    "TaskFailure",
    "TaskException",
    "InvalidNamedTask",
    "InvalidParameters",
    "InvalidTaskId",
    name="taskresult",
    create_type=False,
)
subscription_type = postgresql.ENUM(
    "Application", "Registration", "Help", "Test", name="subscriptiontype", create_type=False
)
channel = postgresql.ENUM("email", "notification", "sms", "whatsapp", name="channel", create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    task_result.create(bind, checkfirst=True)
    subscription_type.create(bind, checkfirst=True)
    channel.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("privileges", sa.Integer(), nullable=False, server_default="1"),
    )

    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("task_name", sa.String(length=128), nullable=False),
        sa.Column("task_params", sa.Text(), nullable=False),
        sa.Column("parent_task_id", sa.Integer(), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("scheduled_date", sa.DateTime(), nullable=False),
        sa.Column("scheduled_interval_ms", sa.Integer(), nullable=True),
        sa.Column("claimed_by", sa.String(length=128), nullable=True),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        sa.Column("invocation_result", task_result, nullable=True),
        sa.Column("invocation_logs", sa.Text(), nullable=True),
        sa.Column("invocation_time_ms", sa.Float(), nullable=True),
    )
    op.create_index("ix_tasks_scheduled_date", "tasks", ["scheduled_date"], unique=False)

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("subscription_type", subscription_type, nullable=False),
        sa.Column("subscription_type_id", sa.Integer(), nullable=True),
        sa.Column("channel_email", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("channel_notification", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("channel_sms", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("channel_whatsapp", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("user_id", "subscription_type", "subscription_type_id"),
    )
    op.create_index(
        "uq_subscriptions_unscoped",
        "subscriptions",
        ["user_id", "subscription_type"],
        unique=True,
        postgresql_where=sa.text("subscription_type_id IS NULL"),
        sqlite_where=sa.text("subscription_type_id IS NULL"),
    )

    op.create_table(
        "subscriptions_publications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("source_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("subscription_type", subscription_type, nullable=False),
        sa.Column("subscription_type_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "subscriptions_templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("subscription_type", subscription_type, nullable=False),
        sa.Column("channel", channel, nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.UniqueConstraint("subscription_type", "channel"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "publication_id",
            sa.Integer(),
            sa.ForeignKey("subscriptions_publications.id"),
            nullable=True,
        ),
        sa.Column("subject", sa.String(length=255), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("read_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)

    op.create_table(
        "outbox_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("channel", channel, nullable=False),
        sa.Column("recipient", sa.String(length=255), nullable=False),
        sa.Column("source_user_id", sa.Integer(), nullable=True),
        sa.Column("target_user_id", sa.Integer(), nullable=True),
        sa.Column("publication_id", sa.Integer(), nullable=True),
        sa.Column("task_id", sa.Integer(), nullable=True),
        sa.Column("subject", sa.String(length=255), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("ok", sa.Boolean(), nullable=False),
        sa.Column("message_id", sa.String(length=255), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("outbox_messages")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("subscriptions_templates")
    op.drop_table("subscriptions_publications")
    op.drop_index("uq_subscriptions_unscoped", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_tasks_scheduled_date", table_name="tasks")
    op.drop_table("tasks")
    op.drop_table("users")

    bind = op.get_bind()
    channel.drop(bind, checkfirst=True)
    subscription_type.drop(bind, checkfirst=True)
    task_result.drop(bind, checkfirst=True)
