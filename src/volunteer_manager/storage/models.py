"""
ORM-модели базы данных.

Назначение:
- Журнал задач планировщика (append-only история запусков)
- Подписки, публикации, шаблоны сообщений
- Outbox: каждая попытка доставки email/SMS/WhatsApp
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from volunteer_manager.common.time import db_now
from volunteer_manager.domain.enums import Channel, SubscriptionType, TaskResult


# =============================================================================
# BASE
# =============================================================================
class Base(DeclarativeBase):
    pass


# =============================================================================
# USERS
# =============================================================================
class User(Base):
    """
    Минимальная запись пользователя, нужная для рассылки.
    privileges == 0 — доступ отозван, такие пользователи не получают сообщений.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)  # e-mail
    first_name: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    privileges: Mapped[int] = mapped_column(Integer, default=1, nullable=False)


# =============================================================================
# TASKS
# =============================================================================
class Task(Base):
    """
    Задача планировщика. Меняется ровно один раз — при выполнении;
    повторный запуск создаёт новую строку с parent_task_id.
    """

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_name: Mapped[str] = mapped_column(String(128), nullable=False)
    task_params: Mapped[str] = mapped_column(Text, default="{}", nullable=False)
    parent_task_id: Mapped[int | None] = mapped_column(ForeignKey("tasks.id"), nullable=True)

    scheduled_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    scheduled_interval_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    claimed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    invocation_result: Mapped[TaskResult | None] = mapped_column(
        Enum(TaskResult), nullable=True
    )
    invocation_logs: Mapped[str | None] = mapped_column(Text, nullable=True)
    invocation_time_ms: Mapped[float | None] = mapped_column(Float, nullable=True)


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================
class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", "subscription_type", "subscription_type_id"),
        # NULL в subscription_type_id не участвует в UNIQUE; для неадресных типов отдельный индекс
        Index(
            "uq_subscriptions_unscoped",
            "user_id",
            "subscription_type",
            unique=True,
            postgresql_where=text("subscription_type_id IS NULL"),
            sqlite_where=text("subscription_type_id IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    subscription_type: Mapped[SubscriptionType] = mapped_column(
        Enum(SubscriptionType), nullable=False
    )
    subscription_type_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    channel_email: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    channel_notification: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    channel_sms: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    channel_whatsapp: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Publication(Base):
    """
    Одно событие рассылки. Не изменяется после создания.
    """

    __tablename__ = "subscriptions_publications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    subscription_type: Mapped[SubscriptionType] = mapped_column(
        Enum(SubscriptionType), nullable=False
    )
    subscription_type_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=db_now, nullable=False)


class MessageTemplate(Base):
    """
    Переопределение встроенного шаблона для (тип подписки, канал).
    """

    __tablename__ = "subscriptions_templates"
    __table_args__ = (UniqueConstraint("subscription_type", "channel"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subscription_type: Mapped[SubscriptionType] = mapped_column(
        Enum(SubscriptionType), nullable=False
    )
    channel: Mapped[Channel] = mapped_column(Enum(Channel), nullable=False)
    subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)


# =============================================================================
# DELIVERY
# =============================================================================
class Notification(Base):
    """
    Уведомление внутри приложения (канал notification).
    """

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    publication_id: Mapped[int | None] = mapped_column(
        ForeignKey("subscriptions_publications.id"), nullable=True
    )
    subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=db_now, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class OutboxMessage(Base):
    """
    Попытка доставки сообщения внешним провайдером (email/SMS/WhatsApp).
    """

    __tablename__ = "outbox_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=db_now, nullable=False)
    channel: Mapped[Channel] = mapped_column(Enum(Channel), nullable=False)
    recipient: Mapped[str] = mapped_column(String(255), nullable=False)

    source_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    target_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    publication_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    task_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    body: Mapped[str] = mapped_column(Text, default="", nullable=False)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    ok: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
