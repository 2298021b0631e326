"""
Доменные перечисления (enum).

Используются во всей системе:
- результат и журнал выполнения задач планировщика
- типы подписок и каналы доставки
"""

from __future__ import annotations

import enum


class TaskResult(str, enum.Enum):
    """
    Результат выполнения задачи. InvalidTaskId в БД не пишется:
    строки нет или задача уже выполнена.
    """

    TaskSuccess = "TaskSuccess"
    TaskWarning = "TaskWarning"
    TaskFailure = "TaskFailure"
    TaskException = "TaskException"
    InvalidNamedTask = "InvalidNamedTask"
    InvalidParameters = "InvalidParameters"
    InvalidTaskId = "InvalidTaskId"


class TaskState(str, enum.Enum):
    """
    Состояние задачи для отображения в админке.
    """

    pending = "pending"
    success = "success"
    warning = "warning"
    error = "error"


def task_state(result: TaskResult | str | None) -> TaskState:
    if result is None:
        return TaskState.pending
    value = TaskResult(result)
    if value == TaskResult.TaskSuccess:
        return TaskState.success
    if value == TaskResult.TaskWarning:
        return TaskState.warning
    return TaskState.error


# Результаты, после которых повторяющаяся задача планируется снова
RESCHEDULE_RESULTS = frozenset({TaskResult.TaskSuccess, TaskResult.TaskWarning})


class TaskLogSeverity(str, enum.Enum):
    Debug = "Debug"
    Info = "Info"
    Warning = "Warning"
    Error = "Error"
    Exception = "Exception"


class SubscriptionType(str, enum.Enum):
    """
    Тип подписки (и публикации).
    """

    Application = "Application"
    Registration = "Registration"
    Help = "Help"
    Test = "Test"


# Типы, для которых подписка ограничена конкретным type_id
# (Application: команда, Help: адресат запроса помощи)
SCOPED_SUBSCRIPTION_TYPES = frozenset({SubscriptionType.Application, SubscriptionType.Help})


class Channel(str, enum.Enum):
    """
    Канал доставки. Порядок объявления = порядок рассылки для подписчика.
    """

    email = "email"
    notification = "notification"
    sms = "sms"
    whatsapp = "whatsapp"
