"""
Драйвер заявок волонтёров в команду. type_id — id команды.
"""

from __future__ import annotations

from pydantic import BaseModel

from volunteer_manager.domain.enums import Channel, SubscriptionType
from volunteer_manager.subscriptions.drivers.base import Driver
from volunteer_manager.subscriptions.store import Recipient
from volunteer_manager.subscriptions.templates import ChannelTemplate


class ApplicationMessage(BaseModel):
    user_id: int
    name: str
    event: str
    event_slug: str
    team_name: str
    team_slug: str
    team_title: str | None = None


class ApplicationDriver(Driver):
    subscription_type = SubscriptionType.Application
    message_model = ApplicationMessage
    placeholders = frozenset({"applicant", "event", "team"})
    default_templates = {
        Channel.email: ChannelTemplate(
            subject="New {team} application for {event}",
            body=(
                "Hi {name},\n\n"
                "{applicant} has just applied to join the {team} for {event}. "
                "Please review their application in the Volunteer Manager."
            ),
        ),
        Channel.notification: ChannelTemplate(
            subject="New application",
            body="{applicant} applied to join the {team} for {event}",
        ),
    }

    def template_values(self, recipient: Recipient, message: ApplicationMessage) -> dict[str, object]:
        return {
            "applicant": message.name,
            "event": message.event,
            "team": message.team_title or message.team_name,
            "link": self.build_link(
                f"admin/events/{message.event_slug}/{message.team_slug}/applications"
            ),
        }
