"""
Служебные задачи без побочных эффектов.

NoopTask пишет свои параметры в журнал; NoopComplexTask умеет изображать
предупреждения, неудачу, исключение и менять интервал повторения.
Используются для проверки планировщика из админки.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from volunteer_manager.domain.enums import TaskLogSeverity
from volunteer_manager.scheduler.context import TaskContext
from volunteer_manager.scheduler.tasks.base import TaskHandler


class NoopTask(TaskHandler):
    def execute(self, ctx: TaskContext, params: Any) -> bool:
        ctx.log.info("NoopTask executed", params)
        return True


class NoopLogEntry(BaseModel):
    severity: TaskLogSeverity = TaskLogSeverity.Info
    message: str


class NoopComplexParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    succeed: bool = True
    logs: list[NoopLogEntry] = Field(default_factory=list)
    interval_ms: int | None = Field(default=None, alias="intervalMs", gt=0)
    stop_repeating: bool = Field(default=False, alias="stopRepeating")
    throw: str | None = None


class NoopComplexTask(TaskHandler):
    params_model = NoopComplexParams

    def execute(self, ctx: TaskContext, params: NoopComplexParams) -> bool:
        writers = {
            TaskLogSeverity.Debug: ctx.log.debug,
            TaskLogSeverity.Info: ctx.log.info,
            TaskLogSeverity.Warning: ctx.log.warning,
            TaskLogSeverity.Error: ctx.log.error,
            TaskLogSeverity.Exception: ctx.log.exception,
        }
        for entry in params.logs:
            writers[entry.severity](entry.message)

        if params.throw:
            raise RuntimeError(params.throw)

        if params.stop_repeating:
            ctx.set_interval_ms(None)
        elif params.interval_ms is not None:
            ctx.set_interval_ms(params.interval_ms)

        return params.succeed

    def describe(self, params: Any) -> str | None:
        if isinstance(params, dict) and params.get("succeed") is False:
            return "NoopComplexTask (failing)"
        return None
