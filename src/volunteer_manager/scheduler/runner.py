"""
Цикл планировщика.

Scheduler — явный сервисный объект: создаётся при старте процесса
(worker или API в inline-режиме) и передаётся туда, где нужен статус.

Тик:
- выбирает задачи к выполнению (scheduled_date <= now, без результата, без живого захвата)
- захватывает каждую атомарным UPDATE; выполняет только захваченные
- ошибка отдельной задачи не прерывает тик
- ошибка самого тика удваивает паузу до следующего (до 64x интервала)
"""

from __future__ import annotations

import os
import socket
import threading
from datetime import datetime, timedelta

import redis

from volunteer_manager.common.config import get_settings
from volunteer_manager.common.logging import get_scheduler_logger
from volunteer_manager.common.metrics import SCHEDULER_CLAIM_CONFLICTS_TOTAL, record_scheduler_tick
from volunteer_manager.common.time import db_now, utc_now
from volunteer_manager.scheduler.executor import TaskExecutor
from volunteer_manager.scheduler.status import SchedulerStatus, publish_status
from volunteer_manager.storage.db import SessionFactory, db_session
from volunteer_manager.storage.repositories import TaskRepository

log = get_scheduler_logger()


def default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


class Scheduler:
    def __init__(
        self,
        *,
        session_factory: SessionFactory = db_session,
        executor: TaskExecutor | None = None,
        mode: str | None = None,
        owner: str | None = None,
        interval_ms: int | None = None,
        batch_limit: int | None = None,
        claim_ttl_sec: int | None = None,
        max_penalty_multiplier: int | None = None,
        publish_heartbeat: bool = False,
    ) -> None:
        s = get_settings()
        self.session_factory = session_factory
        self.executor = executor or TaskExecutor(session_factory)
        self.mode = mode or s.scheduler_mode
        self.owner = owner or default_owner()
        self.interval_ms = interval_ms if interval_ms is not None else s.scheduler_interval_ms
        self.batch_limit = batch_limit if batch_limit is not None else s.scheduler_batch_limit
        self.claim_ttl_sec = claim_ttl_sec if claim_ttl_sec is not None else s.scheduler_claim_ttl_sec
        self.max_penalty_multiplier = (
            max_penalty_multiplier
            if max_penalty_multiplier is not None
            else s.scheduler_max_penalty_multiplier
        )
        self.publish_heartbeat = publish_heartbeat

        # захват, истёкший посреди отправки, отдаёт задачу второй реплике
        longest_send_sec = max(s.smtp_timeout_sec, s.sms_timeout_sec, s.whatsapp_timeout_sec)
        if self.claim_ttl_sec <= longest_send_sec:
            raise RuntimeError(
                f"SCHEDULER_CLAIM_TTL_SEC={self.claim_ttl_sec} должен превышать "
                f"таймаут доставки ({longest_send_sec} сек)"
            )

        self.execution_count = 0
        self.invocation_count = 0
        self.last_execution: datetime | None = None
        self.penalty_multiplier = 1

        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # =========================================================================
    # TICK
    # =========================================================================
    def tick(self) -> int:
        """
        Одна итерация. Возвращает количество выполненных задач.
        """
        now = db_now()
        expired_before = now - timedelta(seconds=self.claim_ttl_sec)

        with self.session_factory() as session:
            due_ids = TaskRepository(session).list_due_ids(
                now=now, claim_expired_before=expired_before, limit=self.batch_limit
            )

        executed = 0
        for task_id in due_ids:
            with self.session_factory() as session:
                claimed = TaskRepository(session).claim(
                    task_id=task_id,
                    owner=self.owner,
                    now=db_now(),
                    claim_expired_before=expired_before,
                )
            if not claimed:
                SCHEDULER_CLAIM_CONFLICTS_TOTAL.inc()
                continue

            self.invocation_count += 1
            executed += 1
            try:
                self.executor.execute(task_id)
            except Exception as e:
                log.error(
                    "scheduler_task_failed",
                    extra={"payload": {"task_id": task_id, "err": str(e)[:200]}},
                    exc_info=True,
                )

        self.execution_count += 1
        self.last_execution = utc_now()
        record_scheduler_tick(ok=True, at_unix=self.last_execution.timestamp())
        self._publish_status()
        return executed

    def run_once(self) -> bool:
        """
        Тик с учётом штрафа за исключения.
        """
        try:
            self.tick()
        except Exception as e:
            record_scheduler_tick(ok=False)
            self.penalty_multiplier = min(self.penalty_multiplier * 2, self.max_penalty_multiplier)
            log.error(
                "scheduler_tick_failed",
                extra={
                    "payload": {"err": str(e)[:200], "penalty_multiplier": self.penalty_multiplier}
                },
                exc_info=True,
            )
            return False

        self.penalty_multiplier = 1
        return True

    def next_wait_sec(self) -> float:
        return self.interval_ms * self.penalty_multiplier / 1000.0

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    @property
    def active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_forever(self) -> None:
        log.info(
            "scheduler_started",
            extra={"payload": {"mode": self.mode, "owner": self.owner, "interval_ms": self.interval_ms}},
        )
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self.next_wait_sec())
        log.info("scheduler_stopped", extra={"payload": {"owner": self.owner}})

    def stop(self) -> None:
        """
        Цикл завершится после текущего тика.
        """
        self._stop.set()

    def start_in_thread(self) -> threading.Thread:
        if self.active:
            raise RuntimeError("scheduler is already running")
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run_forever, name="volunteer-manager-scheduler", daemon=True
        )
        self._thread.start()
        return self._thread

    # =========================================================================
    # STATUS
    # =========================================================================
    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            mode=self.mode,
            owner=self.owner,
            last_execution=self.last_execution,
            execution_count=self.execution_count,
            invocation_count=self.invocation_count,
            penalty_multiplier=self.penalty_multiplier,
        )

    def _publish_status(self) -> None:
        if not self.publish_heartbeat:
            return
        try:
            publish_status(self.status())
        except redis.RedisError as e:
            log.warning("scheduler_status_publish_failed", extra={"payload": {"err": str(e)[:200]}})
