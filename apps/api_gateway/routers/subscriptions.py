"""
Админка подписок: просмотр и изменение каналов пользователя.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from apps.api_gateway.deps import service_auth_dep, session_factory_dep
from volunteer_manager.domain.enums import Channel, SubscriptionType
from volunteer_manager.storage.db import SessionFactory
from volunteer_manager.storage.models import Subscription
from volunteer_manager.subscriptions.store import list_subscriptions, upsert_subscription

router = APIRouter(prefix="/admin/subscriptions", dependencies=[Depends(service_auth_dep)])


class SubscriptionItem(BaseModel):
    id: int
    user_id: int
    subscription_type: SubscriptionType
    subscription_type_id: int | None = None
    email: bool
    notification: bool
    sms: bool
    whatsapp: bool


class SubscriptionListResponse(BaseModel):
    subscriptions: list[SubscriptionItem]


class SubscriptionUpdateRequest(BaseModel):
    user_id: int
    subscription_type: SubscriptionType
    subscription_type_id: int | None = None
    email: bool = False
    notification: bool = False
    sms: bool = False
    whatsapp: bool = False


def _as_item(s: Subscription) -> SubscriptionItem:
    return SubscriptionItem(
        id=s.id,
        user_id=s.user_id,
        subscription_type=s.subscription_type,
        subscription_type_id=s.subscription_type_id,
        email=s.channel_email,
        notification=s.channel_notification,
        sms=s.channel_sms,
        whatsapp=s.channel_whatsapp,
    )


@router.get("", response_model=SubscriptionListResponse)
def get_subscriptions(
    subscription_type: SubscriptionType | None = Query(default=None, alias="type"),
    limit: int = Query(default=200, ge=1, le=500),
    session_factory: SessionFactory = Depends(session_factory_dep),
) -> SubscriptionListResponse:
    with session_factory() as session:
        rows = list_subscriptions(session, subscription_type=subscription_type, limit=limit)
        return SubscriptionListResponse(subscriptions=[_as_item(s) for s in rows])


@router.put("", response_model=SubscriptionItem)
def put_subscription(
    req: SubscriptionUpdateRequest,
    session_factory: SessionFactory = Depends(session_factory_dep),
) -> SubscriptionItem:
    with session_factory() as session:
        row = upsert_subscription(
            session,
            user_id=req.user_id,
            subscription_type=req.subscription_type,
            type_id=req.subscription_type_id,
            channels={
                Channel.email: req.email,
                Channel.notification: req.notification,
                Channel.sms: req.sms,
                Channel.whatsapp: req.whatsapp,
            },
        )
        return _as_item(row)
