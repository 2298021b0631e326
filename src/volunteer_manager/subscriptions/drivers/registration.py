"""
Драйвер регистрации новых пользователей.
"""

from __future__ import annotations

from pydantic import BaseModel

from volunteer_manager.domain.enums import Channel, SubscriptionType
from volunteer_manager.subscriptions.drivers.base import Driver
from volunteer_manager.subscriptions.store import Recipient
from volunteer_manager.subscriptions.templates import ChannelTemplate


class RegistrationMessage(BaseModel):
    user_id: int
    name: str
    email_address: str
    ip: str = "unknown"


class RegistrationDriver(Driver):
    subscription_type = SubscriptionType.Registration
    message_model = RegistrationMessage
    placeholders = frozenset({"user", "email", "ip"})
    default_templates = {
        Channel.email: ChannelTemplate(
            subject="New account: {user}",
            body=(
                "Hi {name},\n\n"
                "{user} ({email}) has just created an account in the Volunteer Manager "
                "from {ip}."
            ),
        ),
        Channel.notification: ChannelTemplate(
            subject="New account",
            body="{user} has created an account",
        ),
    }

    def template_values(self, recipient: Recipient, message: RegistrationMessage) -> dict[str, object]:
        return {
            "user": message.name,
            "email": message.email_address,
            "ip": message.ip,
            "link": self.build_link(f"admin/volunteers/{message.user_id}"),
        }
