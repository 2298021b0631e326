"""
Репозитории (DAO слой).

Правила:
- Никакой бизнес-логики
- Только CRUD и запросы
- commit делает вызывающий (db_session)
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import desc, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from volunteer_manager.domain.enums import Channel, SubscriptionType, TaskResult

from .models import (
    MessageTemplate,
    Notification,
    OutboxMessage,
    Publication,
    Subscription,
    Task,
    User,
)


def _clamp_limit(limit: int) -> int:
    return max(1, min(limit, 500))


# =============================================================================
# TASK REPOSITORY
# =============================================================================
class TaskRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, task: Task) -> Task:
        self.session.add(task)
        self.session.flush()
        return task

    def get(self, task_id: int) -> Task | None:
        return self.session.get(Task, task_id)

    def get_pending(self, task_id: int) -> Task | None:
        """
        Задача, которая ещё не выполнялась (invocation_result IS NULL).
        """
        return (
            self.session.query(Task)
            .filter(Task.id == task_id, Task.invocation_result.is_(None))
            .one_or_none()
        )

    def list_due_ids(
        self, *, now: datetime, claim_expired_before: datetime, limit: int = 50
    ) -> list[int]:
        rows = self.session.execute(
            select(Task.id)
            .where(
                Task.scheduled_date <= now,
                Task.invocation_result.is_(None),
                or_(Task.claimed_by.is_(None), Task.claimed_at < claim_expired_before),
            )
            .order_by(Task.scheduled_date, Task.id)
            .limit(_clamp_limit(limit))
        )
        return [int(r[0]) for r in rows]

    def claim(
        self, *, task_id: int, owner: str, now: datetime, claim_expired_before: datetime
    ) -> bool:
        """
        Атомарный захват задачи. True только у того, чей UPDATE затронул строку.
        """
        result = self.session.execute(
            update(Task)
            .where(
                Task.id == task_id,
                Task.invocation_result.is_(None),
                or_(Task.claimed_by.is_(None), Task.claimed_at < claim_expired_before),
            )
            .values(claimed_by=owner, claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def mark_executed(
        self, *, task_id: int, result: TaskResult, logs: str, time_ms: float
    ) -> bool:
        """
        Записывает результат. Повторная запись невозможна (guard по result IS NULL).
        """
        res = self.session.execute(
            update(Task)
            .where(Task.id == task_id, Task.invocation_result.is_(None))
            .values(
                invocation_result=result,
                invocation_logs=logs,
                invocation_time_ms=time_ms,
            )
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def list_page(self, *, offset: int = 0, limit: int = 50) -> tuple[list[Task], int]:
        total = int(self.session.scalar(select(func.count()).select_from(Task)) or 0)
        rows = (
            self.session.query(Task)
            .order_by(desc(Task.scheduled_date), desc(Task.id))
            .offset(max(0, offset))
            .limit(_clamp_limit(limit))
            .all()
        )
        return rows, total


# =============================================================================
# SUBSCRIPTION REPOSITORY
# =============================================================================
class SubscriptionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def subscribers_for(
        self,
        *,
        subscription_type: SubscriptionType,
        type_id: int | None,
        min_privileges: int = 1,
    ) -> list[tuple[Subscription, User]]:
        query = (
            self.session.query(Subscription, User)
            .join(User, User.id == Subscription.user_id)
            .filter(
                Subscription.subscription_type == subscription_type,
                User.privileges >= min_privileges,
            )
        )
        if type_id is not None:
            query = query.filter(Subscription.subscription_type_id == type_id)
        return [(s, u) for s, u in query.order_by(Subscription.id).all()]

    def find(
        self, *, user_id: int, subscription_type: SubscriptionType, type_id: int | None
    ) -> Subscription | None:
        query = self.session.query(Subscription).filter(
            Subscription.user_id == user_id,
            Subscription.subscription_type == subscription_type,
        )
        if type_id is None:
            query = query.filter(Subscription.subscription_type_id.is_(None))
        else:
            query = query.filter(Subscription.subscription_type_id == type_id)
        return query.one_or_none()

    def upsert(
        self,
        *,
        user_id: int,
        subscription_type: SubscriptionType,
        type_id: int | None,
        channels: dict[Channel, bool],
    ) -> Subscription:
        """
        Идемпотентная запись подписки по (user_id, type, type_id).

        Параллельная вставка той же подписки упирается в уникальный индекс;
        в этом случае откатываем savepoint и обновляем уже вставленную строку.
        """
        existing = self.find(user_id=user_id, subscription_type=subscription_type, type_id=type_id)
        if existing is None:
            candidate = Subscription(
                user_id=user_id,
                subscription_type=subscription_type,
                subscription_type_id=type_id,
            )
            try:
                with self.session.begin_nested():
                    self.session.add(candidate)
                    self.session.flush()
                existing = candidate
            except IntegrityError:
                existing = self.find(
                    user_id=user_id, subscription_type=subscription_type, type_id=type_id
                )
                if existing is None:
                    raise

        existing.channel_email = bool(channels.get(Channel.email, False))
        existing.channel_notification = bool(channels.get(Channel.notification, False))
        existing.channel_sms = bool(channels.get(Channel.sms, False))
        existing.channel_whatsapp = bool(channels.get(Channel.whatsapp, False))
        self.session.flush()
        return existing

    def list_all(
        self, *, subscription_type: SubscriptionType | None = None, limit: int = 200
    ) -> list[Subscription]:
        query = self.session.query(Subscription)
        if subscription_type is not None:
            query = query.filter(Subscription.subscription_type == subscription_type)
        return query.order_by(Subscription.id).limit(_clamp_limit(limit)).all()


# =============================================================================
# PUBLICATION REPOSITORY
# =============================================================================
class PublicationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, publication: Publication) -> Publication:
        self.session.add(publication)
        self.session.flush()
        return publication

    def get(self, publication_id: int) -> Publication | None:
        return self.session.get(Publication, publication_id)

    def list_recent(self, *, limit: int = 50) -> list[Publication]:
        return (
            self.session.query(Publication)
            .order_by(desc(Publication.created_at), desc(Publication.id))
            .limit(_clamp_limit(limit))
            .all()
        )


class TemplateRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_type(self, subscription_type: SubscriptionType) -> list[MessageTemplate]:
        return (
            self.session.query(MessageTemplate)
            .filter(MessageTemplate.subscription_type == subscription_type)
            .all()
        )


# =============================================================================
# DELIVERY REPOSITORIES
# =============================================================================
class NotificationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, notification: Notification) -> Notification:
        self.session.add(notification)
        self.session.flush()
        return notification


class OutboxRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, message: OutboxMessage) -> OutboxMessage:
        self.session.add(message)
        self.session.flush()
        return message

    def list_recent(self, *, channel: Channel | None = None, limit: int = 100) -> list[OutboxMessage]:
        query = self.session.query(OutboxMessage)
        if channel is not None:
            query = query.filter(OutboxMessage.channel == channel)
        return (
            query.order_by(desc(OutboxMessage.created_at), desc(OutboxMessage.id))
            .limit(_clamp_limit(limit))
            .all()
        )
