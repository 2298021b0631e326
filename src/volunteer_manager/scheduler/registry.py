"""
Реестр обработчиков задач.

TaskName -> класс обработчика. Полнота реестра проверяется при импорте:
задача без обработчика — ошибка запуска, а не InvalidNamedTask в проде.
"""

from __future__ import annotations

import enum

from volunteer_manager.scheduler.tasks.base import TaskHandler
from volunteer_manager.scheduler.tasks.noop import NoopComplexTask, NoopTask
from volunteer_manager.scheduler.tasks.send_email import SendEmailTask
from volunteer_manager.scheduler.tasks.send_sms import SendSmsTask
from volunteer_manager.scheduler.tasks.send_whatsapp import SendWhatsappTask


class TaskName(str, enum.Enum):
    NoopTask = "NoopTask"
    NoopComplexTask = "NoopComplexTask"
    SendEmailTask = "SendEmailTask"
    SendSmsTask = "SendSmsTask"
    SendWhatsappTask = "SendWhatsappTask"


TASK_HANDLERS: dict[str, type[TaskHandler]] = {
    TaskName.NoopTask.value: NoopTask,
    TaskName.NoopComplexTask.value: NoopComplexTask,
    TaskName.SendEmailTask.value: SendEmailTask,
    TaskName.SendSmsTask.value: SendSmsTask,
    TaskName.SendWhatsappTask.value: SendWhatsappTask,
}


def verify_registry(handlers: dict[str, type[TaskHandler]] | None = None) -> None:
    handlers = TASK_HANDLERS if handlers is None else handlers
    missing = [n.value for n in TaskName if n.value not in handlers]
    if missing:
        raise RuntimeError(f"task handlers are not registered: {', '.join(missing)}")
    unknown = sorted(set(handlers) - {n.value for n in TaskName})
    if unknown:
        raise RuntimeError(f"task handlers without a TaskName: {', '.join(unknown)}")


def task_name_of(task_name: str | TaskName) -> str:
    if isinstance(task_name, enum.Enum):
        return str(task_name.value)
    return str(task_name)


def resolve_handler(task_name: str | TaskName) -> type[TaskHandler] | None:
    return TASK_HANDLERS.get(task_name_of(task_name))


def is_registered(task_name: str | TaskName) -> bool:
    return resolve_handler(task_name) is not None


verify_registry()
