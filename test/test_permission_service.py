# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 路径标准化 / 映射表查询 / 默认放行策略 / 启动审计

from __future__ import annotations

import pytest
from fastapi import Depends, FastAPI

from app.deps import require_api_permission, require_permission
from services.permission_service import (
    API_PERMISSION_MAP,
    all_permission_codes,
    audit_route_permissions,
    get_required_permission,
    has_api_permission,
    module_of,
    normalize_path,
    route_pattern,
)


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/api/samples/550e8400-e29b-41d4-a716-446655440000", "/api/samples/:id"),
        ("/api/samples/42?x=1", "/api/samples/:id"),
        ("/api/samples/42/receive", "/api/samples/:id/receive"),
        ("/api/samples/550E8400-E29B-41D4-A716-446655440000/storage", "/api/samples/:id/storage"),
        ("/api/samples", "/api/samples"),
        ("/api/reports/statistics", "/api/reports/statistics"),
        # 只替换整段数字，不吞掉混合段
        ("/api/samples/42abc", "/api/samples/42abc"),
    ],
)
def test_normalize_path(path: str, expected: str) -> None:
    assert normalize_path(path) == expected


def test_get_required_permission() -> None:
    assert get_required_permission("GET", "/api/samples/42") == "sample.list"
    assert get_required_permission("POST", "/api/samples/42/receive") == "sample.receive"
    assert get_required_permission("get", "/api/users") == "user.list"
    assert get_required_permission("DELETE", "/api/roles/550e8400-e29b-41d4-a716-446655440000") == "role.delete"
    assert get_required_permission("GET", "/api/unmapped/route") is None


def test_unmapped_route_is_allowed_by_default() -> None:
    assert has_api_permission([], "GET", "/api/unmapped/route") is True


def test_unmapped_route_denied_when_default_deny() -> None:
    assert has_api_permission(["user.list"], "GET", "/api/unmapped/route", default_deny=True) is False


def test_mapped_route_requires_membership() -> None:
    assert has_api_permission(["sample.list"], "GET", "/api/samples/7") is True
    assert has_api_permission(["sample.create"], "GET", "/api/samples/7") is False
    assert has_api_permission([], "POST", "/api/samples") is False


def test_catalog_covers_every_mapped_code() -> None:
    codes = all_permission_codes()
    assert len(codes) == len(set(codes))
    assert set(API_PERMISSION_MAP.values()) <= set(codes)
    assert module_of("sample.create") == "样本管理"
    assert module_of("report.review") == "报告管理"


def test_route_pattern() -> None:
    assert route_pattern("/api/users/{user_id}/status") == "/api/users/:id/status"
    assert route_pattern("/api/system/settings/{key}") == "/api/system/settings/:key"


def test_require_permission_rejects_unknown_code() -> None:
    with pytest.raises(ValueError):
        require_permission("sample.fly")


def test_audit_passes_for_application_routes() -> None:
    from app.main import app

    assert audit_route_permissions(app) == []


def _app_with(route_deps) -> FastAPI:
    app = FastAPI()

    @app.get("/api/samples", dependencies=route_deps)
    async def list_samples():
        return []

    return app


def test_audit_flags_mapped_route_that_enforces_nothing() -> None:
    problems = audit_route_permissions(_app_with([]))
    assert problems == ["GET /api/samples: mapped to sample.list but route enforces nothing"]


def test_audit_flags_declaration_mismatch() -> None:
    problems = audit_route_permissions(_app_with([Depends(require_permission("sample.create"))]))
    assert len(problems) == 1
    assert "declares ['sample.create']" in problems[0]


def test_audit_accepts_matching_declaration_and_table_lookup() -> None:
    assert audit_route_permissions(_app_with([Depends(require_permission("sample.list"))])) == []
    assert audit_route_permissions(_app_with([Depends(require_api_permission())])) == []


def test_audit_strict_mode_raises_on_unmapped_route() -> None:
    app = FastAPI()

    @app.get("/api/orphan")
    async def orphan():
        return {}

    with pytest.raises(RuntimeError):
        audit_route_permissions(app, strict=True)
