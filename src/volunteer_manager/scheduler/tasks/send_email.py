"""
Задача отправки email подписчику.
"""

from __future__ import annotations

from typing import Any

from volunteer_manager.delivery.email.sender import SMTPEmailProvider, render_email
from volunteer_manager.delivery.outbox import record_attempt
from volunteer_manager.domain.enums import Channel
from volunteer_manager.scheduler.context import TaskContext
from volunteer_manager.scheduler.tasks.base import SendTaskParams, TaskHandler, describe_target


class SendEmailParams(SendTaskParams):
    subject: str
    body: str
    link: str | None = None


class SendEmailTask(TaskHandler):
    params_model = SendEmailParams

    def execute(self, ctx: TaskContext, params: SendEmailParams) -> bool:
        html, text = render_email(subject=params.subject, body=params.body, link=params.link)
        result = SMTPEmailProvider().send_message(
            recipients=[params.to],
            subject=params.subject,
            html_body=html,
            text_body=text,
        )

        if ctx.session is not None:
            record_attempt(
                ctx.session,
                channel=Channel.email,
                recipient=params.to,
                result=result,
                subject=params.subject,
                body=text,
                source_user_id=params.source_user_id,
                target_user_id=params.target_user_id,
                publication_id=params.publication_id,
                task_id=ctx.task_id,
            )

        if not result.ok:
            ctx.log.error("Unable to send the e-mail", {"provider": result.provider, "error": result.error})
            return False

        ctx.log.info("E-mail sent", {"provider": result.provider, "message_id": result.message_id})
        return True

    def describe(self, params: Any) -> str | None:
        return describe_target("SendEmailTask", params)
