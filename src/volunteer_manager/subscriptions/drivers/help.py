"""
Драйвер запросов помощи с информационных дисплеев.

type_id — адресат запроса (команда, которая должна откликнуться).
Запросы срочные, поэтому есть шаблоны для SMS и WhatsApp.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel

from volunteer_manager.domain.enums import Channel, SubscriptionType
from volunteer_manager.subscriptions.drivers.base import Driver
from volunteer_manager.subscriptions.store import Recipient
from volunteer_manager.subscriptions.templates import ChannelTemplate


class HelpTarget(str, enum.Enum):
    Crew = "Crew"
    Nardo = "Nardo"
    Stewards = "Stewards"


HELP_TARGET_TYPE_ID: dict[HelpTarget, int] = {
    HelpTarget.Crew: 1,
    HelpTarget.Nardo: 2,
    HelpTarget.Stewards: 3,
}


class HelpMessage(BaseModel):
    request_id: int
    location: str
    subject: str


class HelpDriver(Driver):
    subscription_type = SubscriptionType.Help
    message_model = HelpMessage
    allowed_type_ids = frozenset(HELP_TARGET_TYPE_ID.values())
    placeholders = frozenset({"location", "subject"})
    default_templates = {
        Channel.email: ChannelTemplate(
            subject="Help requested at {location}",
            body="Hi {name},\n\nHelp has been requested at {location} for {subject}.",
        ),
        Channel.notification: ChannelTemplate(
            subject="Help requested",
            body="Help has been requested at {location} for {subject}",
        ),
        Channel.sms: ChannelTemplate(
            body="AnimeCon: help has been requested at {location} for {subject}. {link}",
        ),
        Channel.whatsapp: ChannelTemplate(
            body="Help has been requested at {location} for {subject}.",
        ),
    }

    def template_values(self, recipient: Recipient, message: HelpMessage) -> dict[str, object]:
        return {
            "location": message.location,
            "subject": message.subject,
            "link": self.build_link(f"admin/displays/requests/{message.request_id}"),
        }
