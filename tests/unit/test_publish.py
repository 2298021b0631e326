from __future__ import annotations

import json

import pytest

from volunteer_manager.common.errors import ValidationError
from volunteer_manager.domain.enums import Channel, SubscriptionType
from volunteer_manager.storage.models import Notification, Publication, Task
from volunteer_manager.subscriptions.drivers import registry as drivers
from volunteer_manager.subscriptions.drivers.help import HELP_TARGET_TYPE_ID, HelpTarget
from volunteer_manager.subscriptions.publish import publish
from volunteer_manager.subscriptions.store import upsert_subscription

REGISTRATION = {"user_id": 12, "name": "Ana Lopez", "email_address": "ana@example.com"}


def _subscribe(session_factory, user_id, subscription_type, type_id=None, **channels) -> None:
    with session_factory() as session:
        upsert_subscription(
            session,
            user_id=user_id,
            subscription_type=subscription_type,
            type_id=type_id,
            channels={Channel(k): v for k, v in channels.items()},
        )


def _tasks(session_factory, task_name: str) -> list[dict]:
    with session_factory() as session:
        rows = session.query(Task).filter(Task.task_name == task_name).order_by(Task.id)
        return [json.loads(t.task_params) for t in rows]


def test_publication_without_subscribers(session_factory) -> None:
    publication_id = publish(
        SubscriptionType.Registration, REGISTRATION, session_factory=session_factory
    )

    with session_factory() as session:
        publication = session.get(Publication, publication_id)
        assert publication.subscription_type == SubscriptionType.Registration
        assert session.query(Task).count() == 0


def test_email_only_subscriber_gets_one_email(session_factory, make_user) -> None:
    make_user(7, first_name="Bo", last_name="Kim", email="bo@example.com", phone="+31600000000")
    _subscribe(session_factory, 7, SubscriptionType.Registration, email=True)

    publication_id = publish(
        SubscriptionType.Registration,
        REGISTRATION,
        source_user_id=12,
        session_factory=session_factory,
    )

    [email] = _tasks(session_factory, "SendEmailTask")
    assert email["target_user_id"] == 7
    assert email["source_user_id"] == 12
    assert email["publication_id"] == publication_id
    assert _tasks(session_factory, "SendSmsTask") == []


def test_each_subscriber_gets_channels_they_can_receive(session_factory, make_user) -> None:
    make_user(1, email="email-only@example.com")
    make_user(2, phone="+31600000002")
    for user_id in (1, 2):
        _subscribe(session_factory, user_id, SubscriptionType.Test, email=True, sms=True)

    publish(SubscriptionType.Test, {"message": "ping"}, session_factory=session_factory)

    assert [t["to"] for t in _tasks(session_factory, "SendEmailTask")] == ["email-only@example.com"]
    assert [t["to"] for t in _tasks(session_factory, "SendSmsTask")] == ["+31600000002"]


def test_scoped_publication_reaches_matching_subscribers(session_factory, make_user) -> None:
    make_user(1)
    make_user(2)
    _subscribe(session_factory, 1, SubscriptionType.Help, type_id=1, notification=True)
    _subscribe(session_factory, 2, SubscriptionType.Help, type_id=3, notification=True)

    publish(
        SubscriptionType.Help,
        {"request_id": 9, "location": "Hall B", "subject": "a spill"},
        type_id=3,
        session_factory=session_factory,
    )

    with session_factory() as session:
        assert [n.user_id for n in session.query(Notification).all()] == [2]


def test_driver_failure_stops_remaining_fanout(session_factory, make_user, monkeypatch) -> None:
    make_user(1, email="a@example.com")
    make_user(2, email="b@example.com")
    _subscribe(session_factory, 1, SubscriptionType.Test, email=True)
    _subscribe(session_factory, 2, SubscriptionType.Test, email=True)

    base = drivers.DRIVER_FACTORIES[SubscriptionType.Test]

    class _BreaksOnSecond(base):
        calls = 0

        def publish_email(self, publication_id, recipient, message):
            type(self).calls += 1
            if type(self).calls > 1:
                raise RuntimeError("template store went away")
            return super().publish_email(publication_id, recipient, message)

    monkeypatch.setitem(drivers.DRIVER_FACTORIES, SubscriptionType.Test, _BreaksOnSecond)

    publication_id = publish(SubscriptionType.Test, {"message": "ping"}, session_factory=session_factory)

    with session_factory() as session:
        assert session.get(Publication, publication_id) is not None

    [email] = _tasks(session_factory, "SendEmailTask")
    assert email["to"] == "a@example.com"


def test_invalid_message_is_rejected(session_factory) -> None:
    with pytest.raises(ValidationError):
        publish(SubscriptionType.Registration, {"name": "x"}, session_factory=session_factory)

    with session_factory() as session:
        assert session.query(Publication).count() == 0


def test_scoped_type_requires_type_id(session_factory) -> None:
    message = {
        "user_id": 1,
        "name": "Ana",
        "event": "AnimeCon",
        "event_slug": "2025",
        "team_name": "Crew",
        "team_slug": "crew",
    }
    with pytest.raises(ValidationError):
        publish(SubscriptionType.Application, message, session_factory=session_factory)


def test_help_publication_requires_known_target(session_factory) -> None:
    message = {"request_id": 9, "location": "Hall B", "subject": "a spill"}
    with pytest.raises(ValidationError):
        publish(SubscriptionType.Help, message, type_id=42, session_factory=session_factory)

    crew = HELP_TARGET_TYPE_ID[HelpTarget.Crew]
    publication_id = publish(
        SubscriptionType.Help, message, type_id=crew, session_factory=session_factory
    )

    with session_factory() as session:
        assert [p.id for p in session.query(Publication).all()] == [publication_id]
