# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 角色门禁 / 权限门禁 / 用户与角色管理接口
# @Description: 角色门禁 / 权限门禁 / 映射表鉴权 / 用户、角色与权限管理接口
from __future__ import annotations

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from app.deps import require_api_permission, require_roles
from conftest import auth_header, login, register, role_id_by_name, temporary_route
from domains.user_domain import CurrentUser
from infrastructures.vconfig import vconfig


def _create_user(client: TestClient, admin_token: str, username: str, role: str, password: str = "Manager123") -> dict:
    role_id = role_id_by_name(client, admin_token, role)
    resp = client.post(
        "/api/users",
        json={
            "username": username,
            "email": f"{username}@lab.example.com",
            "realName": username,
            "password": password,
            "roleIds": [role_id],
        },
        headers=auth_header(admin_token),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_technician_lacks_user_list_permission(client: TestClient, technician_token: str) -> None:
    resp = client.get("/api/users", headers=auth_header(technician_token))
    assert resp.status_code == 403
    body = resp.json()
    assert body["code"] == "FORBIDDEN"
    assert body["message"] == "权限不足"
    assert body["error"]["type"] == "AUTHORIZATION"
    assert body["error"]["details"] == {"required_permission": "user.list"}


def test_role_gate_rejects_user_without_role(client: TestClient, admin_token: str) -> None:
    _create_user(client, admin_token, "manager01", "lab_manager")
    manager_token = login(client, "manager01", "Manager123")

    # lab_manager 持有 role.delete，但删除角色还要求 admin 角色
    me = client.get("/api/auth/me", headers=auth_header(manager_token)).json()["data"]
    assert "role.delete" in me["permissions"]

    role_id = role_id_by_name(client, admin_token, "report_reviewer")
    resp = client.delete(f"/api/roles/{role_id}", headers=auth_header(manager_token))
    assert resp.status_code == 403
    assert resp.json()["error"]["details"] == {"required_roles": ["admin"]}

    target = register(client, "victim").json()["data"]["user"]["id"]
    resp = client.post(f"/api/users/{target}/reset-password", headers=auth_header(manager_token))
    assert resp.status_code == 403


def test_admin_passes_role_gate(client: TestClient, admin_token: str) -> None:
    target = register(client, "resetme").json()["data"]["user"]["id"]
    resp = client.post(f"/api/users/{target}/reset-password", headers=auth_header(admin_token))
    assert resp.status_code == 200

    new_password = resp.json()["data"]["newPassword"]
    assert len(new_password) == 12
    assert login(client, "resetme", new_password)


def test_system_role_cannot_be_deleted(client: TestClient, admin_token: str) -> None:
    role_id = role_id_by_name(client, admin_token, "technician")
    resp = client.delete(f"/api/roles/{role_id}", headers=auth_header(admin_token))
    assert resp.status_code == 400
    assert resp.json()["message"] == "系统角色不能删除"


def test_role_crud_and_live_permission_changes(client: TestClient, admin_token: str) -> None:
    headers = auth_header(admin_token)
    perms = client.get("/api/permissions", params={"module": "报告管理"}, headers=headers).json()["data"]
    report_list = next(p for p in perms if p["code"] == "report.list")

    created = client.post(
        "/api/roles",
        json={"name": "auditor", "displayName": "审计员", "permissionIds": [report_list["id"]]},
        headers=headers,
    )
    assert created.status_code == 201
    role = created.json()["data"]
    assert role["permissions"] == ["report.list"]
    assert role["isSystem"] is False

    user = _create_user(client, admin_token, "auditor01", "auditor", password="Audit0r1")
    token = login(client, "auditor01", "Audit0r1")
    assert client.get("/api/auth/me", headers=auth_header(token)).json()["data"]["permissions"] == ["report.list"]

    # 撤销权限后同一个令牌立即失去该权限（每次请求实时解析）
    cleared = client.post(f"/api/roles/{role['id']}/permissions", json={"permissionIds": []}, headers=headers)
    assert cleared.status_code == 200
    assert client.get("/api/auth/me", headers=auth_header(token)).json()["data"]["permissions"] == []

    in_use = client.delete(f"/api/roles/{role['id']}", headers=headers)
    assert in_use.status_code == 409

    client.post(f"/api/users/{user['id']}/roles", json={"roleIds": []}, headers=headers)
    deleted = client.delete(f"/api/roles/{role['id']}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["code"] == "DELETED"
    assert client.get(f"/api/roles/{role['id']}", headers=headers).status_code == 404


def test_disabled_user_is_rejected(client: TestClient, admin_token: str, technician_token: str) -> None:
    headers = auth_header(admin_token)
    me = client.get("/api/auth/me", headers=auth_header(technician_token)).json()["data"]

    resp = client.put(f"/api/users/{me['id']}/status", json={"status": "inactive"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "inactive"

    assert client.get("/api/auth/me", headers=auth_header(technician_token)).status_code == 401
    relogin = client.post("/api/auth/login", json={"username": "tech01", "password": "Passw0rd"})
    assert relogin.status_code == 401
    assert relogin.json()["message"] == "用户名或密码错误"


def test_delete_user_only_flips_status(client: TestClient, admin_token: str) -> None:
    headers = auth_header(admin_token)
    target = register(client, "leaver").json()["data"]["user"]["id"]

    resp = client.delete(f"/api/users/{target}", headers=headers)
    assert resp.status_code == 200

    detail = client.get(f"/api/users/{target}", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["data"]["status"] == "inactive"


def test_admin_cannot_disable_self(client: TestClient, admin_token: str) -> None:
    headers = auth_header(admin_token)
    me = client.get("/api/auth/me", headers=headers).json()["data"]
    resp = client.delete(f"/api/users/{me['id']}", headers=headers)
    assert resp.status_code == 400


def test_create_user_without_password_returns_initial_password(client: TestClient, admin_token: str) -> None:
    resp = client.post(
        "/api/users",
        json={"username": "nopass", "email": "nopass@lab.example.com", "realName": "无密码"},
        headers=auth_header(admin_token),
    )
    assert resp.status_code == 201
    assert login(client, "nopass", resp.json()["data"]["initialPassword"])


def test_user_list_is_paginated(client: TestClient, admin_token: str) -> None:
    for i in range(3):
        register(client, f"page{i}")

    resp = client.get("/api/users", params={"page": 1, "limit": 2, "search": "page"}, headers=auth_header(admin_token))
    body = resp.json()
    assert resp.status_code == 200
    assert len(body["data"]) == 2
    assert body["meta"]["pagination"] == {
        "page": 1,
        "limit": 2,
        "total": 3,
        "totalPages": 2,
        "hasNext": True,
        "hasPrev": False,
    }


def test_permission_catalog_endpoints(client: TestClient, admin_token: str) -> None:
    headers = auth_header(admin_token)

    modules = client.get("/api/permissions/modules", headers=headers).json()["data"]
    assert modules[0] == "用户权限管理"
    assert "系统设置" in modules

    grouped = client.get("/api/permissions/grouped", headers=headers).json()["data"]
    assert {p["code"] for p in grouped["样本管理"]} >= {"sample.list", "sample.receive"}

    first = grouped["报告管理"][0]
    detail = client.get(f"/api/permissions/{first['id']}", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["data"]["code"] == first["code"]


async def _qa_only(user: CurrentUser = Depends(require_roles(["qa"]))):
    return {"username": user.username}


def test_disabled_role_no_longer_passes_role_gate(client: TestClient, admin_token: str) -> None:
    headers = auth_header(admin_token)
    role = client.post("/api/roles", json={"name": "qa", "displayName": "质控员"}, headers=headers).json()["data"]
    _create_user(client, admin_token, "qa01", "qa", password="Quality1")
    token = login(client, "qa01", "Quality1")

    with temporary_route(client, "/api/_qa-only", _qa_only):
        assert client.get("/api/_qa-only", headers=auth_header(token)).status_code == 200

        disabled = client.put(f"/api/roles/{role['id']}", json={"status": False}, headers=headers)
        assert disabled.status_code == 200
        assert disabled.json()["data"]["status"] is False

        resp = client.get("/api/_qa-only", headers=auth_header(token))
        assert resp.status_code == 403
        assert resp.json()["error"]["details"] == {"required_roles": ["qa"]}

    assert client.get("/api/auth/me", headers=auth_header(token)).json()["data"]["roles"] == []


async def _table_checked(user: CurrentUser = Depends(require_api_permission())):
    return {"username": user.username}


def test_api_permission_table_is_enforced_at_runtime(
        client: TestClient, admin_token: str, technician_token: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    tech, admin = auth_header(technician_token), auth_header(admin_token)

    with temporary_route(client, "/api/permissions/assign", _table_checked, methods=("POST",)), \
            temporary_route(client, "/api/tests", _table_checked), \
            temporary_route(client, "/api/lab-notes", _table_checked):
        denied = client.post("/api/permissions/assign", headers=tech)
        assert denied.status_code == 403
        assert denied.json()["error"]["details"] == {"required_permission": "permission.config"}
        assert client.post("/api/permissions/assign", headers=admin).status_code == 200

        # 映射表中的检测项目列表，实验员持有 routine.list
        assert client.get("/api/tests", headers=tech).status_code == 200

        # 未映射路由：默认放行，开启默认拒绝后 403
        assert client.get("/api/lab-notes", headers=tech).status_code == 200
        monkeypatch.setattr(vconfig, "permission_default_deny", True)
        resp = client.get("/api/lab-notes", headers=tech)
        assert resp.status_code == 403
        assert resp.json()["code"] == "FORBIDDEN"
        assert client.get("/api/lab-notes").status_code == 401


def test_permission_create_update_delete(client: TestClient, admin_token: str) -> None:
    headers = auth_header(admin_token)
    payload = {"code": "report.export", "name": "报告导出", "module": "报告管理", "sortOrder": 90}

    created = client.post("/api/permissions", json=payload, headers=headers)
    assert created.status_code == 201
    perm = created.json()["data"]
    assert perm["code"] == "report.export"
    assert perm["isActive"] is True

    duplicate = client.post("/api/permissions", json=payload, headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["message"] == "权限编码已存在"

    bad_code = client.post("/api/permissions", json={**payload, "code": "Report Export"}, headers=headers)
    assert bad_code.status_code == 400

    updated = client.put(
        f"/api/permissions/{perm['id']}", json={"name": "报告批量导出", "isActive": False}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["code"] == "UPDATED"
    assert updated.json()["data"]["name"] == "报告批量导出"
    assert updated.json()["data"]["isActive"] is False
    assert updated.json()["data"]["code"] == "report.export"

    role_id = role_id_by_name(client, admin_token, "report_reviewer")
    client.post(f"/api/roles/{role_id}/permissions", json={"permissionIds": [perm["id"]]}, headers=headers)
    in_use = client.delete(f"/api/permissions/{perm['id']}", headers=headers)
    assert in_use.status_code == 409
    assert in_use.json()["message"] == "该权限正在被角色使用，无法删除"

    client.post(f"/api/roles/{role_id}/permissions", json={"permissionIds": []}, headers=headers)
    deleted = client.delete(f"/api/permissions/{perm['id']}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["code"] == "DELETED"
    assert client.get(f"/api/permissions/{perm['id']}", headers=headers).status_code == 404


def test_permission_writes_require_permission_config(client: TestClient, technician_token: str) -> None:
    resp = client.post(
        "/api/permissions",
        json={"code": "sample.export", "name": "样本导出", "module": "样本管理"},
        headers=auth_header(technician_token),
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["details"] == {"required_permission": "permission.config"}


def test_failed_request_rolls_back_partial_writes(client: TestClient, admin_token: str) -> None:
    headers = auth_header(admin_token)
    resp = client.post(
        "/api/roles",
        json={"name": "ghost_role", "displayName": "幽灵", "permissionIds": ["no-such-permission"]},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["details"] == {"permission_ids": ["no-such-permission"]}

    listed = client.get("/api/roles", params={"search": "ghost_role"}, headers=headers).json()
    assert listed["meta"]["pagination"]["total"] == 0
