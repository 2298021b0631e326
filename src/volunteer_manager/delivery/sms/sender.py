"""
Отправка SMS через HTTP-шлюз.

Шлюз принимает JSON {"from", "to", "body"} и возвращает id сообщения.
"""

from __future__ import annotations

import requests

from volunteer_manager.common.config import get_settings
from volunteer_manager.common.logging import get_project_logger
from volunteer_manager.delivery.base import DeliveryResult, SmsProvider
from volunteer_manager.delivery.results import fail_result, http_message_id, ok_result

log = get_project_logger()


class HttpSmsProvider(SmsProvider):
    def __init__(self) -> None:
        self.s = get_settings()

    def send_sms(self, *, to: str, message: str) -> DeliveryResult:
        if not to:
            return fail_result("sms_http", "recipient_empty")
        if not self.s.sms_api_url:
            return fail_result("sms_http", "SMS_API_URL_not_set")

        headers = {"Content-Type": "application/json"}
        if self.s.sms_api_token:
            headers["Authorization"] = f"Bearer {self.s.sms_api_token}"
        payload = {"from": self.s.sms_sender, "to": to, "body": message}

        try:
            resp = requests.post(
                self.s.sms_api_url,
                headers=headers,
                json=payload,
                timeout=self.s.sms_timeout_sec,
            )
        except requests.RequestException as e:
            log.error("sms_http_error", extra={"payload": {"to": to, "err": str(e)[:200]}})
            return fail_result("sms_http", str(e))

        if resp.status_code >= 400:
            log.error(
                "sms_send_failed",
                extra={"payload": {"to": to, "status": resp.status_code}},
            )
            return fail_result(
                "sms_http",
                f"http_{resp.status_code}",
                meta={"text_head": resp.text[:200]},
            )

        try:
            data = resp.json()
        except ValueError:
            data = None

        log.info("sms_sent", extra={"payload": {"to": to, "provider": "sms_http"}})
        return ok_result("sms_http", message_id=http_message_id(data, "id", "message_id"))
