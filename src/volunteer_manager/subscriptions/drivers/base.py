"""
Базовый драйвер публикаций.

Драйвер отвечает за один тип подписки:
- знает модель сообщения и значения для шаблонов
- рендерит шаблон канала и ставит задачу отправки (или пишет уведомление)

Контракт publish_*: False — доставка не начата (нет контакта или шаблона),
True — задача отправки поставлена (а не сообщение доставлено).
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel
from sqlalchemy.orm import Session

from volunteer_manager.common.config import get_settings
from volunteer_manager.common.errors import TemplateError
from volunteer_manager.common.logging import get_project_logger
from volunteer_manager.domain.enums import Channel, SubscriptionType
from volunteer_manager.scheduler.executor import schedule_task
from volunteer_manager.scheduler.registry import TaskName
from volunteer_manager.storage.models import Notification
from volunteer_manager.storage.repositories import NotificationRepository, TemplateRepository
from volunteer_manager.subscriptions.store import Recipient
from volunteer_manager.subscriptions.templates import ChannelTemplate, render_template

log = get_project_logger()

# Значения, доступные в шаблонах любого типа
COMMON_PLACEHOLDERS = frozenset({"name", "fullName", "link"})


class Driver:
    subscription_type: ClassVar[SubscriptionType]
    message_model: ClassVar[type[BaseModel]]
    placeholders: ClassVar[frozenset[str]] = frozenset()
    default_templates: ClassVar[dict[Channel, ChannelTemplate]] = {}
    # допустимые type_id публикации; None: любой
    allowed_type_ids: ClassVar[frozenset[int] | None] = None

    def __init__(self, *, session: Session, source_user_id: int | None = None) -> None:
        self.session = session
        self.source_user_id = source_user_id
        self.templates: dict[Channel, ChannelTemplate] = dict(self.default_templates)

    # -------------------------------------------------------------------------
    # Шаблоны
    # -------------------------------------------------------------------------
    @classmethod
    def allowed_placeholders(cls) -> frozenset[str]:
        return COMMON_PLACEHOLDERS | cls.placeholders

    def initialise(self) -> None:
        """
        Загружает переопределения шаблонов из БД. Шаблон с неизвестными
        плейсхолдерами отбрасывается, остаётся встроенный.
        """
        allowed = self.allowed_placeholders()
        for row in TemplateRepository(self.session).list_for_type(self.subscription_type):
            template = ChannelTemplate(body=row.body, subject=row.subject)
            try:
                unknown = template.placeholders() - allowed
            except TemplateError as e:
                unknown = {e.message}
            if unknown:
                log.warning(
                    "subscription_template_discarded",
                    extra={
                        "payload": {
                            "type": self.subscription_type.value,
                            "channel": row.channel.value,
                            "unknown": sorted(unknown),
                        }
                    },
                )
                continue
            self.templates[row.channel] = template

    def parse_message(self, message: Any) -> BaseModel:
        if isinstance(message, self.message_model):
            return message
        return self.message_model.model_validate(message)

    def template_values(self, recipient: Recipient, message: Any) -> dict[str, object]:
        raise NotImplementedError

    def _values(self, recipient: Recipient, message: Any) -> dict[str, object]:
        values: dict[str, object] = {
            "name": recipient.short_name,
            "fullName": recipient.full_name,
            "link": get_settings().public_base_url.rstrip("/"),
        }
        values.update(self.template_values(recipient, self.parse_message(message)))
        return values

    @staticmethod
    def build_link(path: str) -> str:
        return f"{get_settings().public_base_url.rstrip('/')}/{path.lstrip('/')}"

    def _render(
        self, channel: Channel, recipient: Recipient, message: Any
    ) -> tuple[str | None, str, dict[str, object]] | None:
        template = self.templates.get(channel)
        if template is None:
            return None
        values = self._values(recipient, message)
        subject = render_template(template.subject, values) if template.subject else None
        return subject, render_template(template.body, values), values

    def _attribution(self, publication_id: int, recipient: Recipient) -> dict[str, int | None]:
        return {
            "source_user_id": self.source_user_id,
            "target_user_id": recipient.user_id,
            "publication_id": publication_id,
        }

    # -------------------------------------------------------------------------
    # Каналы
    # -------------------------------------------------------------------------
    def publish_email(self, publication_id: int, recipient: Recipient, message: Any) -> bool:
        if not recipient.email:
            return False
        rendered = self._render(Channel.email, recipient, message)
        if rendered is None:
            return False
        subject, body, values = rendered

        schedule_task(
            self.session,
            task_name=TaskName.SendEmailTask,
            params={
                "to": recipient.email,
                "subject": subject or "AnimeCon Volunteer Manager",
                "body": body,
                "link": values.get("link"),
                **self._attribution(publication_id, recipient),
            },
        )
        return True

    def publish_notification(self, publication_id: int, recipient: Recipient, message: Any) -> bool:
        rendered = self._render(Channel.notification, recipient, message)
        if rendered is None:
            return False
        subject, body, values = rendered

        link = values.get("link")
        NotificationRepository(self.session).add(
            Notification(
                user_id=recipient.user_id,
                publication_id=publication_id,
                subject=subject,
                body=body,
                link=str(link) if link else None,
            )
        )
        return True

    def publish_sms(self, publication_id: int, recipient: Recipient, message: Any) -> bool:
        if not recipient.phone_number:
            return False
        rendered = self._render(Channel.sms, recipient, message)
        if rendered is None:
            return False
        _, body, _ = rendered

        schedule_task(
            self.session,
            task_name=TaskName.SendSmsTask,
            params={
                "to": recipient.phone_number,
                "message": body,
                **self._attribution(publication_id, recipient),
            },
        )
        return True

    def publish_whatsapp(self, publication_id: int, recipient: Recipient, message: Any) -> bool:
        if not recipient.phone_number:
            return False
        rendered = self._render(Channel.whatsapp, recipient, message)
        if rendered is None:
            return False
        _, body, _ = rendered

        schedule_task(
            self.session,
            task_name=TaskName.SendWhatsappTask,
            params={
                "to": recipient.phone_number,
                "message": body,
                "parameters": [recipient.short_name, body],
                **self._attribution(publication_id, recipient),
            },
        )
        return True

    def publish(self, channel: Channel, publication_id: int, recipient: Recipient, message: Any) -> bool:
        methods = {
            Channel.email: self.publish_email,
            Channel.notification: self.publish_notification,
            Channel.sms: self.publish_sms,
            Channel.whatsapp: self.publish_whatsapp,
        }
        return methods[channel](publication_id, recipient, message)
