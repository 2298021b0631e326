"""
API Gateway (FastAPI).

Функции:
- /health
- /metrics
- админ-API планировщика задач, подписок, публикаций и outbox

Планировщик:
- SCHEDULER_MODE=inline — цикл работает в фоновом потоке этого процесса
- SCHEDULER_MODE=worker — отдельный процесс apps/worker_scheduler, статус через Redis
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apps.api_gateway.routers.outbox import router as outbox_router
from apps.api_gateway.routers.publications import router as publications_router
from apps.api_gateway.routers.scheduler import router as scheduler_router
from apps.api_gateway.routers.subscriptions import router as subscriptions_router
from volunteer_manager.common.config import get_settings
from volunteer_manager.common.logging import get_project_logger, setup_logging
from volunteer_manager.common.metrics import setup_metrics_endpoint
from volunteer_manager.scheduler.runner import Scheduler

log = get_project_logger()


def _parse_origins(raw: str) -> list[str]:
    origins = [o.strip() for o in (raw or "").split(",") if o.strip()]
    return origins or ["*"]


def _is_prod_env(app_env: str | None) -> bool:
    env = (app_env or "").strip().lower()
    return env in {"prod", "production"}


def _cors_params() -> tuple[list[str], bool]:
    settings = get_settings()
    allow_origins = _parse_origins(settings.cors_allowed_origins)
    allow_credentials = bool(settings.cors_allow_credentials)

    if _is_prod_env(settings.app_env) and "*" in allow_origins:
        raise RuntimeError("CORS wildcard '*' запрещён в APP_ENV=prod")

    # '*' нельзя использовать вместе с credentials=true
    if "*" in allow_origins:
        allow_credentials = False

    return allow_origins, allow_credentials


def create_app(*, scheduler: Scheduler | None = None) -> FastAPI:
    app = FastAPI(title="AnimeCon Volunteer Manager", version="0.1.0")
    allow_origins, allow_credentials = _cors_params()
    settings = get_settings()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=allow_credentials,
    )

    setup_metrics_endpoint(app)

    if scheduler is None and settings.scheduler_mode == "inline":
        scheduler = Scheduler(mode="inline")
    app.state.scheduler = scheduler

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True}

    @app.on_event("startup")
    def start_scheduler() -> None:
        s = app.state.scheduler
        if s is not None and s.mode == "inline" and not s.active:
            s.start_in_thread()

    @app.on_event("shutdown")
    def stop_scheduler() -> None:
        if app.state.scheduler is not None:
            app.state.scheduler.stop()

    app.include_router(scheduler_router, prefix="/v1")
    app.include_router(subscriptions_router, prefix="/v1")
    app.include_router(publications_router, prefix="/v1")
    app.include_router(outbox_router, prefix="/v1")

    return app


setup_logging()
log.info("api_gateway_starting", extra={"payload": {"scheduler_mode": get_settings().scheduler_mode}})

app = create_app()
