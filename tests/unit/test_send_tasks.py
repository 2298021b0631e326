from __future__ import annotations

import json

from volunteer_manager.delivery.results import fail_result, ok_result
from volunteer_manager.domain.enums import Channel, TaskResult
from volunteer_manager.scheduler.executor import TaskExecutor
from volunteer_manager.scheduler.registry import resolve_handler
from volunteer_manager.scheduler.tasks import send_email, send_sms, send_whatsapp
from volunteer_manager.storage.models import OutboxMessage, Task

ATTRIBUTION = {"source_user_id": 12, "target_user_id": 7, "publication_id": 3}


def _outbox(session_factory) -> list[OutboxMessage]:
    with session_factory() as session:
        rows = session.query(OutboxMessage).order_by(OutboxMessage.id).all()
        for row in rows:
            session.expunge(row)
        return rows


def test_email_task_sends_and_records(session_factory, monkeypatch) -> None:
    sent = []

    class _Provider:
        def send_message(self, *, recipients, subject, html_body, text_body=None):
            sent.append((recipients, subject, html_body, text_body))
            return ok_result("smtp", message_id="<m1@example.org>")

    monkeypatch.setattr(send_email, "SMTPEmailProvider", _Provider)
    executor = TaskExecutor(session_factory)
    task_id = executor.schedule(
        task_name="SendEmailTask",
        params={
            "to": "bo@example.com",
            "subject": "New account",
            "body": "Hi Bo,\n\nAna has registered.",
            "link": "https://volunteers.example.org/admin",
            **ATTRIBUTION,
        },
    )

    assert executor.execute(task_id) == TaskResult.TaskSuccess

    [(recipients, subject, html, text)] = sent
    assert recipients == ["bo@example.com"]
    assert subject == "New account"
    assert "<p>Ana has registered.</p>" in html
    assert "https://volunteers.example.org/admin" in text

    [row] = _outbox(session_factory)
    assert row.channel == Channel.email
    assert row.ok is True
    assert row.message_id == "<m1@example.org>"
    assert row.task_id == task_id
    assert (row.source_user_id, row.target_user_id, row.publication_id) == (12, 7, 3)


def test_failed_sms_is_task_failure_with_outbox_row(session_factory, monkeypatch) -> None:
    class _Provider:
        def send_sms(self, *, to, message):
            return fail_result("sms_http", "http_503")

    monkeypatch.setattr(send_sms, "HttpSmsProvider", _Provider)
    executor = TaskExecutor(session_factory)
    task_id = executor.schedule(
        task_name="SendSmsTask", params={"to": "+31600000000", "message": "hi", **ATTRIBUTION}
    )

    assert executor.execute(task_id) == TaskResult.TaskFailure

    [row] = _outbox(session_factory)
    assert row.channel == Channel.sms
    assert row.ok is False
    assert row.error == "http_503"

    with session_factory() as session:
        logs = json.loads(session.get(Task, task_id).invocation_logs)
    assert logs[-1]["severity"] == "Error"


def test_whatsapp_task_uses_configured_template(session_factory, settings_guard, monkeypatch) -> None:
    settings_guard.whatsapp_template_name = "crew_alert"
    calls = []

    class _Provider:
        def send_template(self, *, to, template_name, parameters):
            calls.append((to, template_name, parameters))
            return ok_result("whatsapp_cloud", message_id="wamid.1")

    monkeypatch.setattr(send_whatsapp, "CloudApiWhatsappProvider", _Provider)

    result = TaskExecutor(session_factory).run_task(
        "SendWhatsappTask", {"to": "+31600000000", "message": "hi", "parameters": ["Bo", "hi"]}
    )

    assert result == TaskResult.TaskSuccess
    assert calls == [("+31600000000", "crew_alert", ["Bo", "hi"])]


def test_send_task_requires_recipient(session_factory) -> None:
    result = TaskExecutor(session_factory).run_task("SendSmsTask", {"message": "hi"})
    assert result == TaskResult.InvalidParameters


def test_send_tasks_describe_their_target() -> None:
    handler = resolve_handler("SendEmailTask")()
    assert handler.describe({"to": "x", "target_user_id": 7}) == "SendEmailTask (user 7)"
    assert handler.describe({"to": "x"}) == "SendEmailTask"
