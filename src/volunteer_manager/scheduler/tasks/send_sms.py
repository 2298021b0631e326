"""
Задача отправки SMS подписчику.
"""

from __future__ import annotations

from typing import Any

from volunteer_manager.delivery.outbox import record_attempt
from volunteer_manager.delivery.sms.sender import HttpSmsProvider
from volunteer_manager.domain.enums import Channel
from volunteer_manager.scheduler.context import TaskContext
from volunteer_manager.scheduler.tasks.base import SendTaskParams, TaskHandler, describe_target


class SendSmsParams(SendTaskParams):
    message: str


class SendSmsTask(TaskHandler):
    params_model = SendSmsParams

    def execute(self, ctx: TaskContext, params: SendSmsParams) -> bool:
        result = HttpSmsProvider().send_sms(to=params.to, message=params.message)

        if ctx.session is not None:
            record_attempt(
                ctx.session,
                channel=Channel.sms,
                recipient=params.to,
                result=result,
                body=params.message,
                source_user_id=params.source_user_id,
                target_user_id=params.target_user_id,
                publication_id=params.publication_id,
                task_id=ctx.task_id,
            )

        if not result.ok:
            ctx.log.error("Unable to send the SMS", {"provider": result.provider, "error": result.error})
            return False

        ctx.log.info("SMS sent", {"provider": result.provider, "message_id": result.message_id})
        return True

    def describe(self, params: Any) -> str | None:
        return describe_target("SendSmsTask", params)
