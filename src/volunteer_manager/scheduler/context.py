"""
Контекст выполнения задачи планировщика.

Назначение:
- Журнал выполнения задачи (сохраняется в tasks.invocation_logs)
- Параметры, интервал повторения и замер времени выполнения
"""

from __future__ import annotations

import json
import time
from typing import Any

from sqlalchemy.orm import Session

from volunteer_manager.common.time import utc_now_iso
from volunteer_manager.domain.enums import TaskLogSeverity

_WARNING_SEVERITIES = frozenset(
    {TaskLogSeverity.Warning, TaskLogSeverity.Error, TaskLogSeverity.Exception}
)


class TaskLogger:
    """
    Журнал задачи в хронологическом порядке. Показывается в админке.
    """

    def __init__(self) -> None:
        self._entries: list[dict[str, Any]] = []

    def _add(self, severity: TaskLogSeverity, message: str, data: tuple[Any, ...]) -> None:
        self._entries.append(
            {
                "severity": severity.value,
                "time": utc_now_iso(),
                "message": message,
                "data": list(data),
            }
        )

    def debug(self, message: str, *data: Any) -> None:
        self._add(TaskLogSeverity.Debug, message, data)

    def info(self, message: str, *data: Any) -> None:
        self._add(TaskLogSeverity.Info, message, data)

    def warning(self, message: str, *data: Any) -> None:
        self._add(TaskLogSeverity.Warning, message, data)

    def error(self, message: str, *data: Any) -> None:
        self._add(TaskLogSeverity.Error, message, data)

    def exception(self, message: str, *data: Any) -> None:
        self._add(TaskLogSeverity.Exception, message, data)

    @property
    def entries(self) -> list[dict[str, Any]]:
        return list(self._entries)

    def has_warnings(self) -> bool:
        return any(TaskLogSeverity(e["severity"]) in _WARNING_SEVERITIES for e in self._entries)

    def to_json(self) -> str:
        return json.dumps(self._entries, ensure_ascii=False, default=str)


class TaskContext:
    def __init__(
        self,
        *,
        task_name: str,
        params: Any = None,
        task_id: int | None = None,
        interval_ms: int | None = None,
    ) -> None:
        self.task_id = task_id
        self.task_name = task_name
        self.params = params
        self.log = TaskLogger()
        # Сессия БД на время выполнения обработчика (выставляет исполнитель)
        self.session: Session | None = None

        self._interval_ms = interval_ms
        self._started: float | None = None
        self._finished: float | None = None

    @classmethod
    def for_ephemeral_task(cls, task_name: str, params: Any = None) -> TaskContext:
        return cls(task_name=task_name, params=params)

    @property
    def is_ephemeral(self) -> bool:
        return self.task_id is None

    # -------------------------------------------------------------------------
    # Повторение
    # -------------------------------------------------------------------------
    @property
    def interval_ms(self) -> int | None:
        return self._interval_ms

    def set_interval_ms(self, interval_ms: int | None) -> None:
        """
        Интервал для следующего запуска. None отменяет повторение.
        """
        if interval_ms is not None and interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self._interval_ms = interval_ms

    # -------------------------------------------------------------------------
    # Время выполнения
    # -------------------------------------------------------------------------
    def mark_started(self) -> None:
        if self._started is not None:
            raise RuntimeError("task execution already started")
        self._started = time.perf_counter()

    def mark_finished(self) -> None:
        if self._started is None:
            raise RuntimeError("task execution has not started")
        if self._finished is None:
            self._finished = time.perf_counter()

    @property
    def runtime_ms(self) -> float:
        if self._started is None:
            return 0.0
        end = self._finished if self._finished is not None else time.perf_counter()
        return max(0.0, (end - self._started) * 1000)
