"""
Админка планировщика задач.

Назначение:
- статус цикла планировщика
- список задач / одна задача с журналом выполнения
- создание задачи и повторный запуск выполненной
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from apps.api_gateway.deps import (
    http_error,
    scheduler_status_dep,
    service_auth_dep,
    session_factory_dep,
)
from volunteer_manager.common.errors import AppError, ErrCode
from volunteer_manager.common.time import to_iso
from volunteer_manager.domain.enums import task_state
from volunteer_manager.scheduler.executor import TaskExecutor
from volunteer_manager.scheduler.registry import resolve_handler
from volunteer_manager.scheduler.status import SchedulerStatus
from volunteer_manager.storage.db import SessionFactory
from volunteer_manager.storage.models import Task
from volunteer_manager.storage.repositories import TaskRepository

router = APIRouter(prefix="/admin/scheduler", dependencies=[Depends(service_auth_dep)])


class SchedulerStatusResponse(BaseModel):
    mode: str
    owner: str | None = None
    last_execution: str | None = None
    execution_count: int
    invocation_count: int
    penalty_multiplier: int
    alert: str | None = None


class TaskItem(BaseModel):
    id: int
    task_name: str
    description: str
    parent_task_id: int | None = None
    scheduled_date: str
    scheduled_interval_ms: int | None = None
    state: str
    invocation_result: str | None = None
    invocation_time_ms: float | None = None


class TaskListResponse(BaseModel):
    tasks: list[TaskItem]
    total: int
    offset: int
    limit: int


class TaskDetailResponse(TaskItem):
    task_params: Any = None
    invocation_logs: list[dict[str, Any]] = Field(default_factory=list)
    claimed_by: str | None = None


class CreateTaskRequest(BaseModel):
    task_name: str
    task_params: Any = Field(default_factory=dict)
    delay_ms: int = Field(default=0, ge=0)
    interval_ms: int | None = Field(default=None, gt=0)


class TaskCreatedResponse(BaseModel):
    task_id: int


def _load_json(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        return default


def _describe(task: Task) -> str:
    handler_cls = resolve_handler(task.task_name)
    if handler_cls is not None:
        description = handler_cls().describe(_load_json(task.task_params, {}))
        if description:
            return description
    return task.task_name


def _as_item(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "task_name": task.task_name,
        "description": _describe(task),
        "parent_task_id": task.parent_task_id,
        "scheduled_date": to_iso(task.scheduled_date),
        "scheduled_interval_ms": task.scheduled_interval_ms,
        "state": task_state(task.invocation_result).value,
        "invocation_result": task.invocation_result.value if task.invocation_result else None,
        "invocation_time_ms": task.invocation_time_ms,
    }


@router.get("", response_model=SchedulerStatusResponse)
def scheduler_status(
    scheduler: SchedulerStatus = Depends(scheduler_status_dep),
) -> SchedulerStatusResponse:
    return SchedulerStatusResponse(**scheduler.to_dict(), alert=scheduler.alert)


@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=500),
    session_factory: SessionFactory = Depends(session_factory_dep),
) -> TaskListResponse:
    with session_factory() as session:
        tasks, total = TaskRepository(session).list_page(offset=offset, limit=limit)
        items = [TaskItem(**_as_item(t)) for t in tasks]
    return TaskListResponse(tasks=items, total=total, offset=offset, limit=limit)


@router.get("/tasks/{task_id}", response_model=TaskDetailResponse)
def get_task(
    task_id: int,
    session_factory: SessionFactory = Depends(session_factory_dep),
) -> TaskDetailResponse:
    with session_factory() as session:
        task = TaskRepository(session).get(task_id)
        if task is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": ErrCode.NOT_FOUND, "message": "Задача не найдена"},
            )
        return TaskDetailResponse(
            **_as_item(task),
            task_params=_load_json(task.task_params, {}),
            invocation_logs=_load_json(task.invocation_logs, []),
            claimed_by=task.claimed_by,
        )


@router.post("/tasks", response_model=TaskCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    req: CreateTaskRequest,
    session_factory: SessionFactory = Depends(session_factory_dep),
) -> TaskCreatedResponse:
    try:
        task_id = TaskExecutor(session_factory).schedule(
            task_name=req.task_name,
            params=req.task_params,
            delay_ms=req.delay_ms,
            interval_ms=req.interval_ms,
        )
    except AppError as e:
        raise http_error(e) from e
    return TaskCreatedResponse(task_id=task_id)


@router.post(
    "/tasks/{task_id}/rerun",
    response_model=TaskCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def rerun_task(
    task_id: int,
    session_factory: SessionFactory = Depends(session_factory_dep),
) -> TaskCreatedResponse:
    try:
        new_task_id = TaskExecutor(session_factory).rerun(task_id)
    except AppError as e:
        raise http_error(e) from e
    return TaskCreatedResponse(task_id=new_task_id)
