"""
Админка outbox: последние попытки доставки по каналам.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from apps.api_gateway.deps import service_auth_dep, session_factory_dep
from volunteer_manager.common.time import to_iso
from volunteer_manager.domain.enums import Channel
from volunteer_manager.storage.db import SessionFactory
from volunteer_manager.storage.repositories import OutboxRepository

router = APIRouter(prefix="/admin/outbox", dependencies=[Depends(service_auth_dep)])


class OutboxItem(BaseModel):
    id: int
    created_at: str
    channel: Channel
    recipient: str
    source_user_id: int | None = None
    target_user_id: int | None = None
    publication_id: int | None = None
    task_id: int | None = None
    subject: str | None = None
    provider: str
    ok: bool
    message_id: str | None = None
    error: str | None = None
    meta: dict[str, Any] | None = None


class OutboxListResponse(BaseModel):
    messages: list[OutboxItem]


@router.get("", response_model=OutboxListResponse)
def list_outbox(
    channel: Channel | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    session_factory: SessionFactory = Depends(session_factory_dep),
) -> OutboxListResponse:
    with session_factory() as session:
        rows = OutboxRepository(session).list_recent(channel=channel, limit=limit)
        items = [
            OutboxItem(
                id=m.id,
                created_at=to_iso(m.created_at),
                channel=m.channel,
                recipient=m.recipient,
                source_user_id=m.source_user_id,
                target_user_id=m.target_user_id,
                publication_id=m.publication_id,
                task_id=m.task_id,
                subject=m.subject,
                provider=m.provider,
                ok=m.ok,
                message_id=m.message_id,
                error=m.error,
                meta=m.meta,
            )
            for m in rows
        ]
    return OutboxListResponse(messages=items)
