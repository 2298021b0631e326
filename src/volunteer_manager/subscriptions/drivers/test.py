"""
Тестовый драйвер: проверка доставки по всем каналам из админки.
"""

from __future__ import annotations

from pydantic import BaseModel

from volunteer_manager.domain.enums import Channel, SubscriptionType
from volunteer_manager.subscriptions.drivers.base import Driver
from volunteer_manager.subscriptions.store import Recipient
from volunteer_manager.subscriptions.templates import ChannelTemplate


class TestMessage(BaseModel):
    message: str


class TestDriver(Driver):
    subscription_type = SubscriptionType.Test
    message_model = TestMessage
    placeholders = frozenset({"message"})
    default_templates = {
        Channel.email: ChannelTemplate(
            subject="Test message",
            body="Hi {fullName},\n\n{message}",
        ),
        Channel.notification: ChannelTemplate(subject="Test message", body="{message}"),
        Channel.sms: ChannelTemplate(body="AnimeCon test message: {message}"),
        Channel.whatsapp: ChannelTemplate(body="{message}"),
    }

    def template_values(self, recipient: Recipient, message: TestMessage) -> dict[str, object]:
        return {"message": message.message}
