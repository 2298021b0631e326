from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta

import pytest

from volunteer_manager.common.time import db_now
from volunteer_manager.domain.enums import TaskResult
from volunteer_manager.scheduler import runner as runner_module
from volunteer_manager.scheduler.executor import TaskExecutor
from volunteer_manager.scheduler.status import NOT_RUNNING_ALERT
from volunteer_manager.storage.models import Task
from volunteer_manager.storage.repositories import TaskRepository


def _scheduler(session_factory, **kwargs) -> runner_module.Scheduler:
    kwargs.setdefault("mode", "inline")
    kwargs.setdefault("owner", "test-owner")
    kwargs.setdefault("interval_ms", 1000)
    kwargs.setdefault("claim_ttl_sec", 600)
    kwargs.setdefault("max_penalty_multiplier", 64)
    return runner_module.Scheduler(session_factory=session_factory, **kwargs)


def _results(session_factory) -> dict[int, TaskResult | None]:
    with session_factory() as session:
        return {t.id: t.invocation_result for t in session.query(Task).order_by(Task.id)}


def test_tick_executes_due_tasks_only(session_factory) -> None:
    executor = TaskExecutor(session_factory)
    due_a = executor.schedule(task_name="NoopTask")
    due_b = executor.schedule(task_name="NoopTask", params={"festivalId": 42})
    later = executor.schedule(task_name="NoopTask", delay_ms=60_000)

    scheduler = _scheduler(session_factory, executor=executor)
    assert scheduler.tick() == 2

    results = _results(session_factory)
    assert results[due_a] == TaskResult.TaskSuccess
    assert results[due_b] == TaskResult.TaskSuccess
    assert results[later] is None
    assert scheduler.execution_count == 1
    assert scheduler.invocation_count == 2
    assert scheduler.last_execution is not None


def test_tick_records_claim_owner(session_factory) -> None:
    task_id = TaskExecutor(session_factory).schedule(task_name="NoopTask")

    _scheduler(session_factory, owner="replica-1").tick()

    with session_factory() as session:
        task = TaskRepository(session).get(task_id)
        assert task.claimed_by == "replica-1"
        assert task.claimed_at is not None


def test_live_claim_of_other_replica_is_skipped(session_factory) -> None:
    with session_factory() as session:
        session.add(
            Task(
                task_name="NoopTask",
                task_params="{}",
                scheduled_date=db_now(),
                claimed_by="replica-2",
                claimed_at=db_now(),
            )
        )

    scheduler = _scheduler(session_factory)
    assert scheduler.tick() == 0
    assert scheduler.invocation_count == 0
    assert list(_results(session_factory).values()) == [None]


def test_expired_claim_is_taken_over(session_factory) -> None:
    with session_factory() as session:
        session.add(
            Task(
                task_name="NoopTask",
                task_params="{}",
                scheduled_date=db_now(),
                claimed_by="crashed-replica",
                claimed_at=db_now() - timedelta(seconds=1200),
            )
        )

    assert _scheduler(session_factory, claim_ttl_sec=600).tick() == 1
    assert list(_results(session_factory).values()) == [TaskResult.TaskSuccess]


def test_claim_is_exclusive(session_factory) -> None:
    task_id = TaskExecutor(session_factory).schedule(task_name="NoopTask")
    now = db_now()
    expired_before = now - timedelta(seconds=600)

    with session_factory() as session:
        first = TaskRepository(session).claim(
            task_id=task_id, owner="a", now=now, claim_expired_before=expired_before
        )
    with session_factory() as session:
        second = TaskRepository(session).claim(
            task_id=task_id, owner="b", now=now, claim_expired_before=expired_before
        )

    assert first is True
    assert second is False


def test_failing_task_does_not_stop_tick(session_factory) -> None:
    executor = TaskExecutor(session_factory)
    first = executor.schedule(task_name="NoopTask")
    second = executor.schedule(task_name="NoopTask")

    class _FlakyExecutor:
        def __init__(self) -> None:
            self.calls: list[int] = []

        def execute(self, task_id: int) -> TaskResult:
            self.calls.append(task_id)
            if task_id == first:
                raise RuntimeError("database went away")
            return executor.execute(task_id)

    flaky = _FlakyExecutor()
    scheduler = _scheduler(session_factory, executor=flaky)

    assert scheduler.run_once() is True
    assert flaky.calls == [first, second]
    assert _results(session_factory)[second] == TaskResult.TaskSuccess
    assert scheduler.penalty_multiplier == 1


def test_tick_failure_doubles_penalty_up_to_limit(session_factory) -> None:
    @contextmanager
    def broken():
        raise RuntimeError("database unavailable")
        yield  # pragma: no cover

    scheduler = _scheduler(session_factory, max_penalty_multiplier=8)
    scheduler.session_factory = broken

    multipliers = []
    for _ in range(5):
        assert scheduler.run_once() is False
        multipliers.append(scheduler.penalty_multiplier)

    assert multipliers == [2, 4, 8, 8, 8]
    assert scheduler.next_wait_sec() == 8.0
    assert scheduler.execution_count == 0

    scheduler.session_factory = session_factory
    assert scheduler.run_once() is True
    assert scheduler.penalty_multiplier == 1
    assert scheduler.next_wait_sec() == 1.0


def test_status_alerts_until_first_tick(session_factory) -> None:
    scheduler = _scheduler(session_factory)
    assert scheduler.status().alert == NOT_RUNNING_ALERT

    scheduler.tick()

    status = scheduler.status()
    assert status.alert is None
    assert status.execution_count == 1
    assert status.mode == "inline"


def test_tick_publishes_heartbeat(session_factory, monkeypatch) -> None:
    published = []
    monkeypatch.setattr(runner_module, "publish_status", lambda status: published.append(status))

    scheduler = _scheduler(session_factory, publish_heartbeat=True)
    scheduler.tick()
    scheduler.tick()

    assert [s.execution_count for s in published] == [1, 2]
    assert published[-1].owner == "test-owner"


def test_run_forever_stops(session_factory) -> None:
    scheduler = _scheduler(session_factory, interval_ms=10)
    thread = scheduler.start_in_thread()
    assert scheduler.active

    scheduler.stop()
    thread.join(timeout=5)

    assert not thread.is_alive()


def test_claim_ttl_must_outlast_delivery_timeouts(session_factory, settings_guard) -> None:
    settings_guard.smtp_timeout_sec = 20
    settings_guard.sms_timeout_sec = 10
    settings_guard.whatsapp_timeout_sec = 45

    with pytest.raises(RuntimeError, match="SCHEDULER_CLAIM_TTL_SEC"):
        _scheduler(session_factory, claim_ttl_sec=45)

    assert _scheduler(session_factory, claim_ttl_sec=46).claim_ttl_sec == 46
