# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 全局异常处理：500 脱敏 / 404 路由 / 令牌异常 / 唯一约束 / 请求 ID

from __future__ import annotations

import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError, OperationalError

from app.error_handlers import register_exception_handlers
from domains.error_domain import ConflictError
from infrastructures.vconfig import vconfig
from infrastructures.vlogger import RequestContextMiddleware


def _boom_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.add_middleware(RequestContextMiddleware)

    @app.get("/api/boom")
    async def boom():
        raise RuntimeError("database password is hunter2")

    @app.get("/api/expired")
    async def expired():
        raise jwt.ExpiredSignatureError("expired")

    @app.get("/api/invalid")
    async def invalid():
        raise jwt.DecodeError("bad")

    @app.get("/api/duplicate")
    async def duplicate():
        raise IntegrityError("INSERT ...", {}, Exception("UNIQUE constraint failed: users.username"))

    @app.get("/api/db-down")
    async def db_down():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    @app.get("/api/conflict")
    async def conflict():
        raise ConflictError("用户名或邮箱已存在", details={"field": "username"})

    return app


def test_production_500_has_no_stack(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(vconfig, "app_env", "production")
    client = TestClient(_boom_app(), raise_server_exceptions=False)

    resp = client.get("/api/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "INTERNAL_ERROR"
    assert body["message"] == "服务器内部错误"
    assert "stack" not in body["error"]
    assert "details" not in body["error"]
    assert "hunter2" not in resp.text
    assert resp.headers["X-Request-ID"] == body["meta"]["requestId"]


def test_development_500_has_stack(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(vconfig, "app_env", "development")
    client = TestClient(_boom_app(), raise_server_exceptions=False)

    resp = client.get("/api/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["message"] == "database password is hunter2"
    assert "RuntimeError" in body["error"]["stack"]
    assert body["error"]["details"] == {"exception": "RuntimeError"}


def test_token_errors_map_to_401() -> None:
    client = TestClient(_boom_app())

    expired = client.get("/api/expired")
    assert expired.status_code == 401
    assert expired.json()["message"] == "访问令牌已过期"

    invalid = client.get("/api/invalid")
    assert invalid.status_code == 401
    assert invalid.json()["message"] == "无效的访问令牌"


def test_unique_violation_maps_to_400() -> None:
    resp = TestClient(_boom_app()).get("/api/duplicate")
    assert resp.status_code == 400
    assert resp.json()["message"] == "重复的字段值，请使用其他值"


def test_app_error_details_hidden_in_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(vconfig, "app_env", "production")
    resp = TestClient(_boom_app()).get("/api/conflict")
    assert resp.status_code == 409
    assert resp.json()["error"] == {"type": "BUSINESS"}


def test_unknown_route_is_enveloped_404(client: TestClient) -> None:
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "NOT_FOUND"
    assert body["message"] == "路由 GET /api/does-not-exist 未找到"


def test_request_id_is_echoed(client: TestClient) -> None:
    resp = client.get("/api/health", headers={"X-Request-ID": "req-123"})
    assert resp.status_code == 200
    assert resp.headers["X-Request-ID"] == "req-123"
    assert resp.json()["meta"]["requestId"] == "req-123"


def test_request_id_is_generated(client: TestClient) -> None:
    resp = client.get("/api/health")
    rid = resp.headers["X-Request-ID"]
    assert rid and resp.json()["meta"]["requestId"] == rid


def test_health_reports_database(client: TestClient) -> None:
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "ok"
    assert data["services"]["database"] is True
    assert data["uptime"] >= 0


def test_database_error_maps_to_500(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(vconfig, "app_env", "production")
    resp = TestClient(_boom_app()).get("/api/db-down")
    assert resp.status_code == 500
    body = resp.json()
    assert body["code"] == "DATABASE_ERROR"
    assert body["error"] == {"type": "DATABASE"}
    assert "connection refused" not in resp.text


def test_unhandled_500_echoes_request_id() -> None:
    client = TestClient(_boom_app(), raise_server_exceptions=False)
    resp = client.get("/api/boom", headers={"X-Request-ID": "req-500"})
    assert resp.status_code == 500
    assert resp.headers["X-Request-ID"] == "req-500"
    assert resp.json()["meta"]["requestId"] == "req-500"
