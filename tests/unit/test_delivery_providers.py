from __future__ import annotations

import requests

from volunteer_manager.delivery.email import sender as email_sender
from volunteer_manager.delivery.email.sender import SMTPEmailProvider, render_email
from volunteer_manager.delivery.sms import sender as sms_sender
from volunteer_manager.delivery.sms.sender import HttpSmsProvider
from volunteer_manager.delivery.whatsapp import sender as whatsapp_sender
from volunteer_manager.delivery.whatsapp.sender import (
    CloudApiWhatsappProvider,
    build_template_payload,
)


class _FakeResponse:
    def __init__(self, status_code: int = 200, data: object = None, text: str = "") -> None:
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self) -> object:
        if self._data is None:
            raise ValueError("no json")
        return self._data


class _FakeSMTP:
    sent: list = []

    def __init__(self, host: str, port: int, timeout: int) -> None:
        self.host = host
        self.port = port
        self.logged_in: tuple[str, str] | None = None

    def __enter__(self) -> _FakeSMTP:
        return self

    def __exit__(self, *exc) -> None:
        return None

    def ehlo(self) -> None:
        return None

    def has_extn(self, name: str) -> bool:
        return False

    def login(self, user: str, password: str) -> None:
        self.logged_in = (user, password)

    def send_message(self, msg) -> None:
        type(self).sent.append(msg)


def test_render_email_escapes_html() -> None:
    html, text = render_email(
        subject="Hello",
        body="First <b>para</b>\n\nSecond para",
        link="https://volunteers.example.org/x",
    )

    assert "<p>First &lt;b&gt;para&lt;/b&gt;</p>" in html
    assert "<p>Second para</p>" in html
    assert 'href="https://volunteers.example.org/x"' in html
    assert "First <b>para</b>" in text
    assert "https://volunteers.example.org/x" in text


def test_smtp_without_host_fails(settings_guard) -> None:
    settings_guard.smtp_host = None

    result = SMTPEmailProvider().send_message(
        recipients=["a@example.com"], subject="s", html_body="<p>x</p>"
    )

    assert result.ok is False
    assert result.error == "SMTP_HOST_not_set"


def test_smtp_sends_multipart_message(settings_guard, monkeypatch) -> None:
    settings_guard.smtp_host = "smtp.example.org"
    settings_guard.smtp_user = "crew"
    settings_guard.smtp_pass = "secret"
    _FakeSMTP.sent = []
    monkeypatch.setattr(email_sender.smtplib, "SMTP", _FakeSMTP)

    result = SMTPEmailProvider().send_message(
        recipients=["a@example.com"], subject="Subject", html_body="<p>x</p>", text_body="x"
    )

    assert result.ok is True
    assert result.provider == "smtp"
    [msg] = _FakeSMTP.sent
    assert msg["To"] == "a@example.com"
    assert msg["Subject"] == "Subject"
    assert result.message_id == msg["Message-ID"]
    assert msg.is_multipart()


def test_smtp_error_is_reported(settings_guard, monkeypatch) -> None:
    settings_guard.smtp_host = "smtp.example.org"

    class _Refused(_FakeSMTP):
        def send_message(self, msg) -> None:
            raise email_sender.smtplib.SMTPRecipientsRefused({"a@example.com": (550, b"no")})

    monkeypatch.setattr(email_sender.smtplib, "SMTP", _Refused)

    result = SMTPEmailProvider().send_message(
        recipients=["a@example.com"], subject="s", html_body="<p>x</p>"
    )

    assert result.ok is False
    assert result.error


def test_sms_gateway_request(settings_guard, monkeypatch) -> None:
    settings_guard.sms_api_url = "https://sms.example.org/send"
    settings_guard.sms_api_token = "token"
    settings_guard.sms_sender = "AnimeCon"
    calls = []

    def fake_post(url, headers, json, timeout):
        calls.append((url, headers, json))
        return _FakeResponse(200, {"id": "sms-1"})

    monkeypatch.setattr(sms_sender.requests, "post", fake_post)

    result = HttpSmsProvider().send_sms(to="+31600000000", message="hi")

    assert result.ok is True
    assert result.message_id == "sms-1"
    [(url, headers, payload)] = calls
    assert url == "https://sms.example.org/send"
    assert headers["Authorization"] == "Bearer token"
    assert payload == {"from": "AnimeCon", "to": "+31600000000", "body": "hi"}


def test_sms_gateway_errors(settings_guard, monkeypatch) -> None:
    settings_guard.sms_api_url = None
    assert HttpSmsProvider().send_sms(to="+31", message="x").error == "SMS_API_URL_not_set"

    settings_guard.sms_api_url = "https://sms.example.org/send"
    monkeypatch.setattr(
        sms_sender.requests, "post", lambda *a, **kw: _FakeResponse(503, text="busy")
    )
    result = HttpSmsProvider().send_sms(to="+31", message="x")
    assert result.ok is False
    assert result.error == "http_503"
    assert result.meta == {"text_head": "busy"}

    def unreachable(*a, **kw):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(sms_sender.requests, "post", unreachable)
    assert HttpSmsProvider().send_sms(to="+31", message="x").ok is False


def test_whatsapp_template_payload() -> None:
    payload = build_template_payload(
        to="31600000000", template_name="volunteer_notification", language="en", parameters=["Bo", "hi"]
    )

    assert payload["type"] == "template"
    assert payload["template"]["name"] == "volunteer_notification"
    assert payload["template"]["components"][0]["parameters"] == [
        {"type": "text", "text": "Bo"},
        {"type": "text", "text": "hi"},
    ]


def test_whatsapp_cloud_api_request(settings_guard, monkeypatch) -> None:
    settings_guard.whatsapp_api_base = "https://graph.example.org/v19.0/"
    settings_guard.whatsapp_phone_number_id = "555"
    settings_guard.whatsapp_access_token = "wa-token"
    calls = []

    def fake_post(url, headers, json, timeout):
        calls.append((url, json))
        return _FakeResponse(200, {"messages": [{"id": "wamid.1"}]})

    monkeypatch.setattr(whatsapp_sender.requests, "post", fake_post)

    result = CloudApiWhatsappProvider().send_template(
        to="+31600000000", template_name="volunteer_notification", parameters=["Bo", "hi"]
    )

    assert result.ok is True
    assert result.message_id == "wamid.1"
    [(url, payload)] = calls
    assert url == "https://graph.example.org/v19.0/555/messages"
    assert payload["to"] == "31600000000"


def test_whatsapp_not_configured(settings_guard) -> None:
    settings_guard.whatsapp_access_token = None

    result = CloudApiWhatsappProvider().send_template(
        to="+31600000000", template_name="t", parameters=[]
    )

    assert result.error == "WHATSAPP_not_configured"
