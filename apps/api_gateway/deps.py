"""
FastAPI Depends.

Сюда выносим:
- проверку авторизации (X-API-Key)
- фабрику сессий БД (подменяется в тестах через dependency_overrides)
- статус планировщика
- единое преобразование AppError -> HTTPException
"""

from __future__ import annotations

import redis
from fastapi import Header, HTTPException, Request, status

from volunteer_manager.common.config import get_settings
from volunteer_manager.common.errors import AppError, ErrCode, UnauthorizedError
from volunteer_manager.common.logging import get_project_logger
from volunteer_manager.common.security import AuthContext, require_auth
from volunteer_manager.scheduler.status import SchedulerStatus, read_status
from volunteer_manager.storage.db import SessionFactory, db_session

log = get_project_logger()

_ERROR_STATUS = {
    ErrCode.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrCode.TEMPLATE_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrCode.CONFLICT: status.HTTP_409_CONFLICT,
}


def http_error(e: AppError) -> HTTPException:
    detail: dict = {"code": e.code, "message": e.message}
    if e.details:
        detail["details"] = e.details
    return HTTPException(
        status_code=_ERROR_STATUS.get(e.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=detail,
    )


def _request_meta(request: Request | None) -> tuple[str, str, str | None]:
    if request is None:
        return "unknown", "UNKNOWN", None
    endpoint = request.url.path
    method = request.method
    client_ip = request.client.host if request.client else None
    return endpoint, method, client_ip


def _audit_allow(
    *,
    request: Request | None,
    ctx: AuthContext,
    reason: str,
) -> None:
    endpoint, method, client_ip = _request_meta(request)
    log.info(
        "security_audit_allow",
        extra={
            "payload": {
                "endpoint": endpoint,
                "method": method,
                "subject": ctx.subject,
                "auth_type": ctx.auth_type,
                "reason": reason,
                "client_ip": client_ip,
            }
        },
    )


def _audit_deny(
    *,
    request: Request | None,
    status_code: int,
    reason: str,
    error_code: str,
    auth_type: str | None = None,
    subject: str | None = None,
) -> None:
    endpoint, method, client_ip = _request_meta(request)
    log.warning(
        "security_audit_deny",
        extra={
            "payload": {
                "endpoint": endpoint,
                "method": method,
                "status_code": status_code,
                "reason": reason,
                "error_code": error_code,
                "auth_type": auth_type or "unknown",
                "subject": subject or "unknown",
                "client_ip": client_ip,
            }
        },
    )


def _authenticate_request(*, x_api_key: str | None, request: Request | None) -> AuthContext:
    try:
        return require_auth(x_api_key=x_api_key)
    except UnauthorizedError as e:
        _audit_deny(
            request=request,
            status_code=status.HTTP_401_UNAUTHORIZED,
            reason=e.message,
            error_code=e.code,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": e.code, "message": e.message},
        ) from e


def service_auth_dep(
    request: Request,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> AuthContext:
    ctx = _authenticate_request(x_api_key=x_api_key, request=request)
    if ctx.is_service:
        _audit_allow(request=request, ctx=ctx, reason=ctx.auth_type)
        return ctx

    _audit_deny(
        request=request,
        status_code=status.HTTP_403_FORBIDDEN,
        reason="not_service_identity",
        error_code=ErrCode.FORBIDDEN,
        auth_type=ctx.auth_type,
        subject=ctx.subject,
    )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"code": ErrCode.FORBIDDEN, "message": "Требуется service-авторизация"},
    )


def session_factory_dep() -> SessionFactory:
    return db_session


def scheduler_status_dep(request: Request) -> SchedulerStatus:
    """
    inline: статус берётся из объекта планировщика этого процесса;
    worker: из heartbeat в Redis.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        return scheduler.status()

    mode = get_settings().scheduler_mode
    if mode == "off":
        return SchedulerStatus(mode=mode)

    try:
        status_ = read_status()
    except redis.RedisError as e:
        log.warning("scheduler_status_read_failed", extra={"payload": {"err": str(e)[:200]}})
        return SchedulerStatus(mode=mode, error="scheduler status is unavailable")
    return status_ or SchedulerStatus(mode=mode)
