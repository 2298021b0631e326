"""
Исполнитель задач планировщика.

Назначение:
- schedule: запись задачи в БД (без выполнения)
- execute: выполнение задачи по id с записью результата ровно один раз
- rerun: повторный запуск выполненной задачи новой строкой
- run_task: выполнение без строки в БД (эфемерная задача)

Сессии:
- загрузка задачи, работа обработчика и запись результата идут в разных
  сессиях; исключение обработчика откатывает только его изменения
"""

from __future__ import annotations

import json
import traceback
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from volunteer_manager.common.errors import ConflictError, NotFoundError, ValidationError
from volunteer_manager.common.logging import get_scheduler_logger
from volunteer_manager.common.metrics import record_task_result, track_task_latency
from volunteer_manager.common.time import db_after_ms, db_now
from volunteer_manager.domain.enums import RESCHEDULE_RESULTS, TaskResult
from volunteer_manager.scheduler.context import TaskContext
from volunteer_manager.scheduler.registry import TaskName, resolve_handler, task_name_of
from volunteer_manager.storage.db import SessionFactory, db_session
from volunteer_manager.storage.models import Task
from volunteer_manager.storage.repositories import TaskRepository

log = get_scheduler_logger()


def _serialize_params(params: Any) -> str:
    try:
        return json.dumps({} if params is None else params, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            "Параметры задачи должны сериализоваться в JSON", {"err": str(e)[:200]}
        ) from e


def _insert_task(
    session: Session,
    *,
    task_name: str,
    task_params: str,
    scheduled_date: datetime,
    interval_ms: int | None = None,
    parent_task_id: int | None = None,
) -> Task:
    return TaskRepository(session).add(
        Task(
            task_name=task_name,
            task_params=task_params,
            scheduled_date=scheduled_date,
            scheduled_interval_ms=interval_ms,
            parent_task_id=parent_task_id,
        )
    )


def schedule_task(
    session: Session,
    *,
    task_name: str | TaskName,
    params: Any = None,
    delay_ms: int = 0,
    interval_ms: int | None = None,
) -> int:
    """
    Записывает задачу в текущую сессию и возвращает её id.
    """
    name = task_name_of(task_name)
    if resolve_handler(name) is None:
        raise ValidationError("Неизвестная задача", {"task_name": name})
    if delay_ms < 0:
        raise ValidationError("delay_ms не может быть отрицательным", {"delay_ms": delay_ms})
    if interval_ms is not None and interval_ms <= 0:
        raise ValidationError("interval_ms должен быть положительным", {"interval_ms": interval_ms})

    task = _insert_task(
        session,
        task_name=name,
        task_params=_serialize_params(params),
        scheduled_date=db_after_ms(delay_ms),
        interval_ms=interval_ms,
    )
    log.info(
        "task_scheduled",
        extra={
            "payload": {
                "task_id": task.id,
                "task_name": name,
                "delay_ms": delay_ms,
                "interval_ms": interval_ms,
            }
        },
    )
    return int(task.id)


@dataclass(frozen=True)
class _PendingTask:
    id: int
    task_name: str
    task_params: str
    scheduled_date: datetime
    interval_ms: int | None


class TaskExecutor:
    def __init__(self, session_factory: SessionFactory = db_session) -> None:
        self.session_factory = session_factory

    # -------------------------------------------------------------------------
    # Планирование
    # -------------------------------------------------------------------------
    def schedule(
        self,
        *,
        task_name: str | TaskName,
        params: Any = None,
        delay_ms: int = 0,
        interval_ms: int | None = None,
    ) -> int:
        with self.session_factory() as session:
            return schedule_task(
                session,
                task_name=task_name,
                params=params,
                delay_ms=delay_ms,
                interval_ms=interval_ms,
            )

    def rerun(self, task_id: int) -> int:
        """
        Новая строка с теми же именем/параметрами, без интервала, parent = task_id.
        """
        with self.session_factory() as session:
            original = TaskRepository(session).get(task_id)
            if original is None:
                raise NotFoundError("Задача не найдена", {"task_id": task_id})
            if original.invocation_result is None:
                raise ConflictError("Задача ещё не выполнялась", {"task_id": task_id})

            task = _insert_task(
                session,
                task_name=original.task_name,
                task_params=original.task_params,
                scheduled_date=db_now(),
                parent_task_id=original.id,
            )
            new_id = int(task.id)

        log.info("task_rerun", extra={"payload": {"task_id": task_id, "new_task_id": new_id}})
        return new_id

    # -------------------------------------------------------------------------
    # Выполнение
    # -------------------------------------------------------------------------
    def execute(self, task_id: int) -> TaskResult:
        with self.session_factory() as session:
            row = TaskRepository(session).get_pending(task_id)
            if row is None:
                log.warning("task_invalid_id", extra={"payload": {"task_id": task_id}})
                return TaskResult.InvalidTaskId
            pending = _PendingTask(
                id=int(row.id),
                task_name=row.task_name,
                task_params=row.task_params,
                scheduled_date=row.scheduled_date,
                interval_ms=row.scheduled_interval_ms,
            )

        ctx = TaskContext(
            task_id=pending.id,
            task_name=pending.task_name,
            interval_ms=pending.interval_ms,
        )
        result = self._invoke(ctx, pending.task_params, from_json=True)

        with self.session_factory() as session:
            repo = TaskRepository(session)
            written = repo.mark_executed(
                task_id=pending.id,
                result=result,
                logs=ctx.log.to_json(),
                time_ms=ctx.runtime_ms,
            )
            if not written:
                log.warning(
                    "task_result_already_written",
                    extra={"payload": {"task_id": pending.id, "result": result.value}},
                )
                return TaskResult.InvalidTaskId

            next_task_id = None
            if (
                pending.interval_ms is not None
                and ctx.interval_ms is not None
                and result in RESCHEDULE_RESULTS
            ):
                next_task = _insert_task(
                    session,
                    task_name=pending.task_name,
                    task_params=pending.task_params,
                    scheduled_date=pending.scheduled_date + timedelta(milliseconds=ctx.interval_ms),
                    interval_ms=ctx.interval_ms,
                    parent_task_id=pending.id,
                )
                next_task_id = int(next_task.id)

        record_task_result(task_name=pending.task_name, result=result.value)
        log.info(
            "task_executed",
            extra={
                "payload": {
                    "task_id": pending.id,
                    "task_name": pending.task_name,
                    "result": result.value,
                    "time_ms": round(ctx.runtime_ms, 3),
                    "next_task_id": next_task_id,
                }
            },
        )
        return result

    def run_task(self, task_name: str | TaskName, params: Any = None) -> TaskResult:
        """
        Выполняет обработчик без строки в БД. Результат никуда не пишется.
        """
        name = task_name_of(task_name)
        ctx = TaskContext.for_ephemeral_task(name, params)
        result = self._invoke(ctx, params, from_json=False)
        record_task_result(task_name=name, result=result.value)
        log.info(
            "task_executed_ephemeral",
            extra={"payload": {"task_name": name, "result": result.value}},
        )
        return result

    def _invoke(self, ctx: TaskContext, raw_params: Any, *, from_json: bool) -> TaskResult:
        handler_cls = resolve_handler(ctx.task_name)
        if handler_cls is None:
            ctx.log.error("Unknown task", ctx.task_name)
            return TaskResult.InvalidNamedTask

        if from_json:
            try:
                raw_params = json.loads(raw_params or "{}")
            except ValueError as e:
                ctx.log.error("Unable to parse the task parameters", str(e))
                return TaskResult.InvalidParameters

        handler = handler_cls()
        try:
            params = handler.parse_params(raw_params)
        except PydanticValidationError as e:
            ctx.log.error("Invalid task parameters", e.errors(include_url=False))
            return TaskResult.InvalidParameters
        ctx.params = params

        ctx.mark_started()
        try:
            with self.session_factory() as session:
                ctx.session = session
                with track_task_latency(ctx.task_name):
                    outcome = handler.execute(ctx, params)
        except Exception as e:
            ctx.log.exception(str(e), traceback.format_exc())
            log.error(
                "task_exception",
                extra={
                    "payload": {
                        "task_id": ctx.task_id,
                        "task_name": ctx.task_name,
                        "err": str(e)[:200],
                    }
                },
            )
            return TaskResult.TaskException
        finally:
            ctx.session = None
            ctx.mark_finished()

        if outcome is False:
            return TaskResult.TaskFailure
        if ctx.log.has_warnings():
            return TaskResult.TaskWarning
        return TaskResult.TaskSuccess
