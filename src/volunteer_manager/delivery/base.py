"""
Базовые интерфейсы доставки.

Назначение:
- Единый контракт для каналов (email/SMS/WhatsApp)
- Провайдер подменяется в тестах через monkeypatch
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class DeliveryResult:
    """
    Результат доставки.
    """

    ok: bool
    provider: str
    message_id: str | None = None
    error: str | None = None
    meta: dict[str, Any] | None = None


class EmailProvider(Protocol):
    def send_message(
        self,
        *,
        recipients: list[str],
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> DeliveryResult: ...


class SmsProvider(Protocol):
    def send_sms(self, *, to: str, message: str) -> DeliveryResult: ...


class WhatsappProvider(Protocol):
    def send_template(
        self, *, to: str, template_name: str, parameters: list[str]
    ) -> DeliveryResult: ...
