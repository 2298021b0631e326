"""
Outbox: журнал попыток доставки.

Каждая попытка отправки (успешная или нет) пишется строкой outbox_messages.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from volunteer_manager.common.metrics import OUTBOX_MESSAGES_TOTAL
from volunteer_manager.delivery.base import DeliveryResult
from volunteer_manager.domain.enums import Channel
from volunteer_manager.storage.models import OutboxMessage
from volunteer_manager.storage.repositories import OutboxRepository


def record_attempt(
    session: Session,
    *,
    channel: Channel,
    recipient: str,
    result: DeliveryResult,
    body: str,
    subject: str | None = None,
    source_user_id: int | None = None,
    target_user_id: int | None = None,
    publication_id: int | None = None,
    task_id: int | None = None,
) -> OutboxMessage:
    row = OutboxRepository(session).add(
        OutboxMessage(
            channel=channel,
            recipient=recipient,
            source_user_id=source_user_id,
            target_user_id=target_user_id,
            publication_id=publication_id,
            task_id=task_id,
            subject=subject,
            body=body,
            meta=result.meta,
            provider=result.provider,
            ok=result.ok,
            message_id=result.message_id,
            error=result.error,
        )
    )
    OUTBOX_MESSAGES_TOTAL.labels(
        channel=channel.value, result="ok" if result.ok else "failed"
    ).inc()
    return row
