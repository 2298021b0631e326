from __future__ import annotations

import logging

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from apps.api_gateway.deps import service_auth_dep


def _make_request(*, path: str, method: str = "GET") -> Request:
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": b"",
        "headers": [],
        "client": ("127.0.0.1", 12345),
        "server": ("testserver", 80),
    }
    return Request(scope)


@pytest.fixture()
def auth_settings(settings_guard):
    settings_guard.auth_mode = "api_key"
    settings_guard.api_keys = "user-1"
    settings_guard.service_api_keys = "svc-1"
    return settings_guard


def test_service_auth_dep_logs_allow(caplog, auth_settings) -> None:
    caplog.set_level(logging.INFO, logger="volunteer-manager")
    req = _make_request(path="/v1/admin/scheduler/tasks", method="POST")
    ctx = service_auth_dep(x_api_key="svc-1", request=req)

    assert ctx.auth_type == "service_api_key"
    rec = next(r for r in caplog.records if r.msg == "security_audit_allow")
    assert rec.payload["endpoint"] == "/v1/admin/scheduler/tasks"
    assert rec.payload["method"] == "POST"
    assert rec.payload["reason"] == "service_api_key"


def test_service_auth_dep_logs_deny_401(caplog, auth_settings) -> None:
    caplog.set_level(logging.INFO, logger="volunteer-manager")
    req = _make_request(path="/v1/admin/outbox")
    with pytest.raises(HTTPException) as e:
        service_auth_dep(x_api_key="bad", request=req)
    assert e.value.status_code == 401

    rec = next(r for r in caplog.records if r.msg == "security_audit_deny")
    assert rec.payload["endpoint"] == "/v1/admin/outbox"
    assert rec.payload["status_code"] == 401
    assert rec.payload["error_code"] == "unauthorized"


def test_service_auth_dep_logs_deny_403_with_reason(caplog, auth_settings) -> None:
    caplog.set_level(logging.INFO, logger="volunteer-manager")
    req = _make_request(path="/v1/admin/scheduler")
    with pytest.raises(HTTPException) as e:
        service_auth_dep(x_api_key="user-1", request=req)
    assert e.value.status_code == 403

    rec = [r for r in caplog.records if r.msg == "security_audit_deny"][-1]
    assert rec.payload["reason"] == "not_service_identity"
    assert rec.payload["status_code"] == 403
    assert rec.payload["auth_type"] == "user_api_key"
