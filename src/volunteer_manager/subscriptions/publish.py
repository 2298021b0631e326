"""
Точка публикации событий подписчикам.

Алгоритм:
1) запись публикации -> id
2) выбор подписчиков
3) нет подписчиков -> вернуть id
4) драйвер типа + загрузка шаблонов
5) для каждого подписчика — каналы в порядке email, notification, sms, whatsapp

Изменения фиксируются после каждого подписчика. Ошибка на шагах 4–5
логируется и учитывается в метрике: оставшаяся рассылка прекращается,
уже поставленные задачи остаются; id возвращается всегда.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from volunteer_manager.common.errors import ValidationError
from volunteer_manager.common.logging import get_project_logger
from volunteer_manager.common.metrics import (
    PUBLICATION_FANOUT_TOTAL,
    PUBLICATIONS_TOTAL,
    record_delivery,
)
from volunteer_manager.domain.enums import SCOPED_SUBSCRIPTION_TYPES, SubscriptionType
from volunteer_manager.storage.db import SessionFactory, db_session
from volunteer_manager.storage.models import Publication
from volunteer_manager.storage.repositories import PublicationRepository
from volunteer_manager.subscriptions.drivers.registry import (
    allowed_type_ids_for,
    create_driver,
    message_model_for,
)
from volunteer_manager.subscriptions.store import subscribers_for

log = get_project_logger()


def publish(
    subscription_type: SubscriptionType,
    message: Any,
    *,
    type_id: int | None = None,
    source_user_id: int | None = None,
    session_factory: SessionFactory = db_session,
) -> int:
    subscription_type = SubscriptionType(subscription_type)
    if subscription_type in SCOPED_SUBSCRIPTION_TYPES and type_id is None:
        raise ValidationError(
            "Для этого типа публикации нужен type_id", {"type": subscription_type.value}
        )
    allowed = allowed_type_ids_for(subscription_type)
    if allowed is not None and type_id not in allowed:
        raise ValidationError(
            "Неизвестный type_id для этого типа публикации",
            {"type": subscription_type.value, "type_id": type_id},
        )
    try:
        message = message_model_for(subscription_type).model_validate(message)
    except PydanticValidationError as e:
        raise ValidationError(
            "Некорректное сообщение публикации",
            {"type": subscription_type.value, "errors": e.errors(include_url=False)},
        ) from e

    with session_factory() as session:
        publication = PublicationRepository(session).add(
            Publication(
                source_user_id=source_user_id,
                subscription_type=subscription_type,
                subscription_type_id=type_id,
            )
        )
        publication_id = int(publication.id)
        subscribers = subscribers_for(session, subscription_type, type_id)

    PUBLICATIONS_TOTAL.labels(type=subscription_type.value).inc()
    if not subscribers:
        PUBLICATION_FANOUT_TOTAL.labels(type=subscription_type.value, result="empty").inc()
        log.info(
            "publication_no_subscribers",
            extra={"payload": {"publication_id": publication_id, "type": subscription_type.value}},
        )
        return publication_id

    try:
        with session_factory() as session:
            driver = create_driver(
                subscription_type, session=session, source_user_id=source_user_id
            )
            driver.initialise()

            for subscriber in subscribers:
                for channel in subscriber.channels:
                    delivered = driver.publish(
                        channel, publication_id, subscriber.recipient, message
                    )
                    record_delivery(
                        subscription_type=subscription_type.value,
                        channel=channel.value,
                        scheduled=delivered,
                    )
                session.commit()
    except Exception as e:
        PUBLICATION_FANOUT_TOTAL.labels(type=subscription_type.value, result="error").inc()
        log.error(
            "publication_fanout_failed",
            extra={
                "payload": {
                    "publication_id": publication_id,
                    "type": subscription_type.value,
                    "err": str(e)[:200],
                }
            },
            exc_info=True,
        )
        return publication_id

    PUBLICATION_FANOUT_TOTAL.labels(type=subscription_type.value, result="ok").inc()
    log.info(
        "publication_fanout_done",
        extra={
            "payload": {
                "publication_id": publication_id,
                "type": subscription_type.value,
                "subscribers": len(subscribers),
            }
        },
    )
    return publication_id
