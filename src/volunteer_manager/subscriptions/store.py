"""
Хранилище подписок.

Назначение:
- Выбор подписчиков публикации (только пользователи с privileges >= 1)
- Управление подписками из админки
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from volunteer_manager.domain.enums import SCOPED_SUBSCRIPTION_TYPES, Channel, SubscriptionType
from volunteer_manager.storage.models import Subscription, User
from volunteer_manager.storage.repositories import SubscriptionRepository


@dataclass(frozen=True)
class Recipient:
    user_id: int
    full_name: str
    short_name: str
    email: str | None = None
    phone_number: str | None = None


@dataclass(frozen=True)
class Subscriber:
    recipient: Recipient
    channels: tuple[Channel, ...]


def recipient_from_user(user: User) -> Recipient:
    full_name = user.display_name or f"{user.first_name} {user.last_name}".strip()
    short_name = user.display_name or user.first_name
    return Recipient(
        user_id=int(user.id),
        full_name=full_name,
        short_name=short_name,
        email=user.username or None,
        phone_number=user.phone_number or None,
    )


def enabled_channels(subscription: Subscription) -> tuple[Channel, ...]:
    flags = {
        Channel.email: subscription.channel_email,
        Channel.notification: subscription.channel_notification,
        Channel.sms: subscription.channel_sms,
        Channel.whatsapp: subscription.channel_whatsapp,
    }
    return tuple(c for c in Channel if flags[c])


def subscribers_for(
    session: Session, subscription_type: SubscriptionType, type_id: int | None = None
) -> list[Subscriber]:
    """
    type_id учитывается только для типов, привязанных к конкретному объекту (Application).
    """
    scoped_id = type_id if subscription_type in SCOPED_SUBSCRIPTION_TYPES else None
    rows = SubscriptionRepository(session).subscribers_for(
        subscription_type=subscription_type, type_id=scoped_id
    )
    return [
        Subscriber(recipient=recipient_from_user(user), channels=enabled_channels(subscription))
        for subscription, user in rows
    ]


def upsert_subscription(
    session: Session,
    *,
    user_id: int,
    subscription_type: SubscriptionType,
    type_id: int | None,
    channels: dict[Channel, bool],
) -> Subscription:
    if subscription_type not in SCOPED_SUBSCRIPTION_TYPES:
        type_id = None
    return SubscriptionRepository(session).upsert(
        user_id=user_id, subscription_type=subscription_type, type_id=type_id, channels=channels
    )


def list_subscriptions(
    session: Session, *, subscription_type: SubscriptionType | None = None, limit: int = 200
) -> list[Subscription]:
    return SubscriptionRepository(session).list_all(subscription_type=subscription_type, limit=limit)
