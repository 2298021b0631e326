"""
Отправка WhatsApp-сообщений через Cloud API.

Вне 24-часового окна WhatsApp принимает только заранее одобренные шаблоны,
поэтому отправляется шаблон WHATSAPP_TEMPLATE_NAME с текстовыми параметрами.
"""

from __future__ import annotations

import requests

from volunteer_manager.common.config import get_settings
from volunteer_manager.common.logging import get_project_logger
from volunteer_manager.delivery.base import DeliveryResult, WhatsappProvider
from volunteer_manager.delivery.results import fail_result, ok_result

log = get_project_logger()


def build_template_payload(
    *, to: str, template_name: str, language: str, parameters: list[str]
) -> dict:
    return {
        "messaging_product": "whatsapp",
        "to": to,
        "type": "template",
        "template": {
            "name": template_name,
            "language": {"code": language},
            "components": [
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": p} for p in parameters],
                }
            ],
        },
    }


class CloudApiWhatsappProvider(WhatsappProvider):
    def __init__(self) -> None:
        self.s = get_settings()

    def send_template(
        self, *, to: str, template_name: str, parameters: list[str]
    ) -> DeliveryResult:
        if not to:
            return fail_result("whatsapp_cloud", "recipient_empty")
        if not self.s.whatsapp_phone_number_id or not self.s.whatsapp_access_token:
            return fail_result("whatsapp_cloud", "WHATSAPP_not_configured")

        url = (
            f"{self.s.whatsapp_api_base.rstrip('/')}/"
            f"{self.s.whatsapp_phone_number_id}/messages"
        )
        headers = {
            "Authorization": f"Bearer {self.s.whatsapp_access_token}",
            "Content-Type": "application/json",
        }
        payload = build_template_payload(
            to=to.lstrip("+"),
            template_name=template_name,
            language=self.s.whatsapp_language,
            parameters=parameters,
        )

        try:
            resp = requests.post(
                url, headers=headers, json=payload, timeout=self.s.whatsapp_timeout_sec
            )
        except requests.RequestException as e:
            log.error("whatsapp_http_error", extra={"payload": {"to": to, "err": str(e)[:200]}})
            return fail_result("whatsapp_cloud", str(e))

        if resp.status_code >= 400:
            log.error(
                "whatsapp_send_failed",
                extra={"payload": {"to": to, "status": resp.status_code}},
            )
            return fail_result(
                "whatsapp_cloud",
                f"http_{resp.status_code}",
                meta={"text_head": resp.text[:200]},
            )

        message_id = None
        try:
            messages = resp.json().get("messages") or []
            if messages:
                message_id = messages[0].get("id")
        except (ValueError, AttributeError):
            message_id = None

        log.info("whatsapp_sent", extra={"payload": {"to": to, "template": template_name}})
        return ok_result("whatsapp_cloud", message_id=message_id)
