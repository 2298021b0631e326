"""
SMTP-отправка email.

Назначение:
- Доставка сообщений подписчикам по почте
- HTML (Jinja2-шаблон) + текстовая версия

Важно:
- Не логировать содержимое писем
- Логировать только метаданные (кому, статус, message-id)
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from email.utils import make_msgid
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from volunteer_manager.common.config import get_settings
from volunteer_manager.common.logging import get_project_logger
from volunteer_manager.delivery.base import DeliveryResult, EmailProvider
from volunteer_manager.delivery.results import fail_result, ok_result

log = get_project_logger()

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
_env: Environment | None = None


def _jinja() -> Environment:
    global _env
    if _env is None:
        _env = Environment(
            loader=FileSystemLoader(str(_TEMPLATES_DIR)),
            autoescape=select_autoescape(["html", "html.j2", "xml"]),
        )
    return _env


def render_email(*, subject: str, body: str, link: str | None = None) -> tuple[str, str]:
    """
    Оборачивает текст сообщения в общий макет письма. Возвращает (html, text).
    """
    env = _jinja()
    paragraphs = [p.strip() for p in body.split("\n\n") if p.strip()]
    html = env.get_template("message.html.j2").render(
        subject=subject, paragraphs=paragraphs, link=link
    )
    text = env.get_template("message.txt.j2").render(subject=subject, body=body, link=link)
    return html, text


class SMTPEmailProvider(EmailProvider):
    def __init__(self) -> None:
        self.s = get_settings()

    def send_message(
        self,
        *,
        recipients: list[str],
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> DeliveryResult:
        if not recipients:
            return fail_result("smtp", "recipients_empty")

        if not self.s.smtp_host:
            return fail_result("smtp", "SMTP_HOST_not_set")

        msg = EmailMessage()
        msg["From"] = self.s.email_from
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid(domain="volunteers.animecon.nl")

        msg.set_content(text_body or subject)
        msg.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(
                self.s.smtp_host, self.s.smtp_port, timeout=self.s.smtp_timeout_sec
            ) as smtp:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()

                if self.s.smtp_user and self.s.smtp_pass:
                    smtp.login(self.s.smtp_user, self.s.smtp_pass)

                smtp.send_message(msg)

            log.info(
                "email_sent",
                extra={"payload": {"to": recipients, "provider": "smtp"}},
            )
            return ok_result("smtp", message_id=msg.get("Message-ID"))
        except (smtplib.SMTPException, OSError) as e:
            log.error(
                "email_send_failed",
                extra={"payload": {"to": recipients, "err": str(e)[:200]}},
            )
            return fail_result("smtp", str(e))
