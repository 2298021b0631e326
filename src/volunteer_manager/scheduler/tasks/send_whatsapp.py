"""
Задача отправки WhatsApp-сообщения (шаблон Cloud API) подписчику.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from volunteer_manager.common.config import get_settings
from volunteer_manager.delivery.outbox import record_attempt
from volunteer_manager.delivery.whatsapp.sender import CloudApiWhatsappProvider
from volunteer_manager.domain.enums import Channel
from volunteer_manager.scheduler.context import TaskContext
from volunteer_manager.scheduler.tasks.base import SendTaskParams, TaskHandler, describe_target


class SendWhatsappParams(SendTaskParams):
    message: str
    template_name: str | None = None
    parameters: list[str] = Field(default_factory=list)


class SendWhatsappTask(TaskHandler):
    params_model = SendWhatsappParams

    def execute(self, ctx: TaskContext, params: SendWhatsappParams) -> bool:
        template_name = params.template_name or get_settings().whatsapp_template_name
        parameters = params.parameters or [params.message]
        result = CloudApiWhatsappProvider().send_template(
            to=params.to, template_name=template_name, parameters=parameters
        )

        if ctx.session is not None:
            record_attempt(
                ctx.session,
                channel=Channel.whatsapp,
                recipient=params.to,
                result=result,
                body=params.message,
                source_user_id=params.source_user_id,
                target_user_id=params.target_user_id,
                publication_id=params.publication_id,
                task_id=ctx.task_id,
            )

        if not result.ok:
            ctx.log.error(
                "Unable to send the WhatsApp message",
                {"provider": result.provider, "error": result.error},
            )
            return False

        ctx.log.info(
            "WhatsApp message sent",
            {"template": template_name, "message_id": result.message_id},
        )
        return True

    def describe(self, params: Any) -> str | None:
        return describe_target("SendWhatsappTask", params)
