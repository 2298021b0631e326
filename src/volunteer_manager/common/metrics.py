"""
Метрики Prometheus для сервиса.

Назначение:
- Экспорт /metrics
- Счётчики планировщика задач и рассылки публикаций
- Используется API Gateway и воркером планировщика
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import FastAPI, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# =============================================================================
# СЧЁТЧИКИ И МЕТРИКИ
# =============================================================================

# Общее количество HTTP-запросов
REQUESTS_TOTAL = Counter(
    "vm_requests_total",
    "Общее количество HTTP запросов",
    ["service", "route", "method", "status"],
)

HTTP_REQUEST_LATENCY_MS = Histogram(
    "vm_http_request_latency_ms",
    "Задержка HTTP запроса (мс)",
    ["service", "route", "method"],
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
)

# Выполнение задач планировщика
TASKS_EXECUTED_TOTAL = Counter(
    "vm_tasks_executed_total",
    "Количество выполненных задач планировщика",
    ["task", "result"],
)

TASK_LATENCY_MS = Histogram(
    "vm_task_latency_ms",
    "Время выполнения задачи планировщика (мс)",
    ["task"],
    buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000),
)

SCHEDULER_TICKS_TOTAL = Counter(
    "vm_scheduler_ticks_total",
    "Количество итераций цикла планировщика",
    ["result"],  # ok|error
)

SCHEDULER_LAST_EXECUTION = Gauge(
    "vm_scheduler_last_execution_timestamp",
    "Unix-время последней итерации планировщика",
)

SCHEDULER_CLAIM_CONFLICTS_TOTAL = Counter(
    "vm_scheduler_claim_conflicts_total",
    "Задачи, захваченные другим экземпляром планировщика",
)

# Публикации и рассылка
PUBLICATIONS_TOTAL = Counter(
    "vm_publications_total",
    "Количество публикаций",
    ["type"],
)

PUBLICATION_FANOUT_TOTAL = Counter(
    "vm_publication_fanout_total",
    "Результат рассылки публикации",
    ["type", "result"],  # result=ok|empty|error
)

PUBLICATION_DELIVERIES_TOTAL = Counter(
    "vm_publication_deliveries_total",
    "Вызовы драйвера по каналам",
    ["type", "channel", "result"],  # result=scheduled|skipped
)

OUTBOX_MESSAGES_TOTAL = Counter(
    "vm_outbox_messages_total",
    "Попытки доставки сообщений",
    ["channel", "result"],  # result=ok|failed
)


@contextmanager
def track_task_latency(task_name: str) -> Iterator[None]:
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        TASK_LATENCY_MS.labels(task=task_name).observe(elapsed_ms)


def record_task_result(*, task_name: str, result: str) -> None:
    TASKS_EXECUTED_TOTAL.labels(task=task_name, result=result).inc()


def record_scheduler_tick(*, ok: bool, at_unix: float | None = None) -> None:
    SCHEDULER_TICKS_TOTAL.labels(result="ok" if ok else "error").inc()
    if ok:
        SCHEDULER_LAST_EXECUTION.set(at_unix if at_unix is not None else time.time())


def record_delivery(*, subscription_type: str, channel: str, scheduled: bool) -> None:
    PUBLICATION_DELIVERIES_TOTAL.labels(
        type=subscription_type,
        channel=channel,
        result="scheduled" if scheduled else "skipped",
    ).inc()


# =============================================================================
# ENDPOINT /metrics
# =============================================================================
def setup_metrics_endpoint(app: FastAPI) -> None:
    """
    Регистрирует endpoint /metrics для Prometheus.
    """

    @app.middleware("http")
    async def http_metrics(request: Request, call_next):
        route = request.url.path
        method = request.method
        started = time.perf_counter()

        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        status_code = str(response.status_code)

        REQUESTS_TOTAL.labels(
            service="api-gateway",
            route=route,
            method=method,
            status=status_code,
        ).inc()
        HTTP_REQUEST_LATENCY_MS.labels(
            service="api-gateway",
            route=route,
            method=method,
        ).observe(elapsed_ms)
        return response

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
