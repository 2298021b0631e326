"""
Базовый класс обработчика задачи.

Обработчик:
- объявляет params_model (pydantic) — параметры валидируются до запуска
- возвращает False при неудаче; иначе задача считается успешной
- пишет в ctx.log; предупреждения/ошибки дают результат TaskWarning
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel

from volunteer_manager.scheduler.context import TaskContext


class TaskHandler:
    params_model: ClassVar[type[BaseModel] | None] = None

    def parse_params(self, raw: Any) -> Any:
        """
        Валидация параметров. Без params_model параметры передаются как есть.
        Бросает pydantic.ValidationError.
        """
        if self.params_model is None:
            return raw
        return self.params_model.model_validate(raw if raw is not None else {})

    def execute(self, ctx: TaskContext, params: Any) -> bool | None:
        raise NotImplementedError

    def describe(self, params: Any) -> str | None:
        """
        Короткое описание для списка задач (например, «SendEmailTask (user 7)»).
        """
        return None


class SendTaskParams(BaseModel):
    """
    Общие поля задач отправки: адрес и атрибуция публикации.
    """

    to: str
    source_user_id: int | None = None
    target_user_id: int | None = None
    publication_id: int | None = None


def describe_target(task_name: str, params: Any) -> str:
    target = params.get("target_user_id") if isinstance(params, dict) else None
    if target is None:
        return task_name
    return f"{task_name} (user {target})"
