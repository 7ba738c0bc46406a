# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 测试公共夹具（内存 SQLite + TestClient + 登录辅助）

from __future__ import annotations

import os

# 配置在导入应用前写入环境变量（vconfig 在导入时加载）
os.environ["APP_ENV"] = "development"
os.environ["DB_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-smartlis-0123456789"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["REDIS_URL"] = ""
os.environ["PERMISSION_DEFAULT_DENY"] = "false"

from contextlib import contextmanager  # noqa: E402
from typing import Callable, Dict, Iterator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "Admin123"


def auth_header(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def login(client: TestClient, username: str, password: str) -> str:
    resp = client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["token"]


def register(client: TestClient, username: str, password: str = "Passw0rd", **extra) -> dict:
    payload = {
        "username": username,
        "email": f"{username}@lab.example.com",
        "password": password,
        "realName": f"{username} 测试",
    }
    payload.update(extra)
    return client.post("/api/auth/register", json=payload)


def role_id_by_name(client: TestClient, token: str, name: str) -> str:
    resp = client.get("/api/roles", params={"limit": 100}, headers=auth_header(token))
    assert resp.status_code == 200, resp.text
    for role in resp.json()["data"]:
        if role["name"] == name:
            return role["id"]
    raise AssertionError(f"role {name} not seeded")


@contextmanager
def temporary_route(client: TestClient, path: str, endpoint: Callable, methods=("GET",)) -> Iterator[None]:
    """在测试期间给应用挂一个临时路由，结束后移除。"""
    routes = client.app.router.routes
    client.app.add_api_route(path, endpoint, methods=list(methods))
    added = routes[-1]
    try:
        yield
    finally:
        routes.remove(added)


@pytest.fixture()
def client() -> Iterator[TestClient]:
    from app.main import app

    # 每个用例走一遍 lifespan：建表 + 初始化 RBAC，结束时释放引擎（内存库随之丢弃）
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def admin_token(client: TestClient) -> str:
    return login(client, ADMIN_USERNAME, ADMIN_PASSWORD)


@pytest.fixture()
def technician_token(client: TestClient) -> str:
    resp = register(client, "tech01")
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["token"]
