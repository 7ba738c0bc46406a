# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: API 路由与权限编码映射、路径标准化、注册期权限声明与启动审计

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from fastapi import FastAPI
from fastapi.routing import APIRoute

from infrastructures.vlogger import get_logger

logger = get_logger("SmartLis.permission")

# 键为 "METHOD /path/pattern"，值为权限编码
API_PERMISSION_MAP: Dict[str, str] = {
    # 用户管理
    "GET /api/users": "user.list",
    "GET /api/users/:id": "user.list",
    "POST /api/users": "user.create",
    "PUT /api/users/:id": "user.edit",
    "DELETE /api/users/:id": "user.delete",
    "POST /api/users/:id/reset-password": "user.edit",
    "PUT /api/users/:id/status": "user.edit",
    "POST /api/users/:id/roles": "user.edit",

    # 角色管理
    "GET /api/roles": "role.list",
    "GET /api/roles/:id": "role.list",
    "POST /api/roles": "role.create",
    "PUT /api/roles/:id": "role.edit",
    "DELETE /api/roles/:id": "role.delete",
    "GET /api/roles/:id/permissions": "role.list",
    "POST /api/roles/:id/permissions": "role.edit",

    # 权限管理
    "GET /api/permissions": "permission.config",
    "GET /api/permissions/:id": "permission.config",
    "POST /api/permissions": "permission.config",
    "PUT /api/permissions/:id": "permission.config",
    "DELETE /api/permissions/:id": "permission.config",
    "GET /api/permissions/modules": "permission.config",
    "GET /api/permissions/grouped": "permission.config",
    "POST /api/permissions/assign": "permission.config",

    # 样本管理
    "GET /api/samples": "sample.list",
    "GET /api/samples/:id": "sample.list",
    "POST /api/samples": "sample.create",
    "PUT /api/samples/:id": "sample.edit",
    "DELETE /api/samples/:id": "sample.delete",
    "POST /api/samples/:id/receive": "sample.receive",
    "POST /api/samples/:id/storage": "sample.storage",
    "POST /api/samples/:id/destroy": "sample.destroy",

    # 检测项目
    "GET /api/tests": "routine.list",
    "GET /api/tests/:id": "routine.list",
    "POST /api/tests": "routine.create",
    "PUT /api/tests/:id": "routine.edit",
    "DELETE /api/tests/:id": "routine.delete",
    "POST /api/tests/:id/results": "routine.data_entry",

    # 报告管理
    "GET /api/reports": "report.list",
    "GET /api/reports/:id": "report.list",
    "POST /api/reports": "report.edit",
    "PUT /api/reports/:id": "report.edit",
    "DELETE /api/reports/:id": "report.delete",
    "POST /api/reports/:id/generate-pdf": "report.edit",
    "GET /api/reports/statistics": "report.list",

    # 系统设置
    "GET /api/system/sample-types": "settings.basic",
    "POST /api/system/sample-types": "settings.basic",
    "PUT /api/system/sample-types/:id": "settings.basic",
    "DELETE /api/system/sample-types/:id": "settings.basic",
    "GET /api/system/test-items": "settings.basic",
    "POST /api/system/test-items": "settings.basic",
    "PUT /api/system/test-items/:id": "settings.basic",
    "DELETE /api/system/test-items/:id": "settings.basic",
    "GET /api/system/settings": "settings.basic",
    "PUT /api/system/settings/:key": "settings.basic",
}


@dataclass(frozen=True)
class PermissionGroup:
    key: str
    module: str
    permissions: List[str] = field(default_factory=list)


# 仅用于前端菜单分组展示，服务端不据此鉴权
PERMISSION_GROUPS: List[PermissionGroup] = [
    PermissionGroup(
        key="USER_MANAGEMENT",
        module="用户权限管理",
        permissions=[
            "user.list", "user.create", "user.edit", "user.delete",
            "role.list", "role.create", "role.edit", "role.delete",
            "permission.config",
        ],
    ),
    PermissionGroup(
        key="SAMPLE_MANAGEMENT",
        module="样本管理",
        permissions=[
            "sample.list", "sample.create", "sample.edit", "sample.delete",
            "sample.receive", "sample.storage", "sample.destroy",
        ],
    ),
    PermissionGroup(
        key="EXPERIMENT_MANAGEMENT",
        module="实验管理",
        permissions=[
            "routine.list", "routine.create", "routine.edit", "routine.delete",
            "routine.data_entry", "routine.data_review", "routine.exception",
            "mass_spec.list", "mass_spec.data_entry", "mass_spec.data_review", "mass_spec.qc",
            "special.list", "special.wet_lab", "special.instrument", "special.analysis",
        ],
    ),
    PermissionGroup(
        key="REPORT_MANAGEMENT",
        module="报告管理",
        permissions=["report.list", "report.edit", "report.delete", "report.review", "report.template"],
    ),
    PermissionGroup(
        key="SYSTEM_SETTINGS",
        module="系统设置",
        permissions=["settings.basic", "settings.notification", "settings.log", "settings.import_export"],
    ),
]

# 公开路由：无需令牌，也不参与权限审计
PUBLIC_ROUTES = frozenset({
    "GET /api/health",
    "POST /api/auth/register",
    "POST /api/auth/login",
})

# 仅需登录即可访问的路由（自身账号相关）
AUTHENTICATED_ROUTES = frozenset({
    "POST /api/auth/logout",
    "GET /api/auth/me",
    "POST /api/auth/refresh",
    "PUT /api/auth/password",
})

_UUID_SEGMENT = re.compile(
    r"/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}(?=/|$)",
    re.IGNORECASE,
)
_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")
_ROUTE_PARAM = re.compile(r"/\{[^}/]+\}")


def normalize_path(path: str) -> str:
    """去掉查询串，UUID 段与纯数字段统一替换为 :id（先 UUID 后数字）。"""
    normalized = path.split("?", 1)[0]
    normalized = _UUID_SEGMENT.sub("/:id", normalized)
    normalized = _NUMERIC_SEGMENT.sub("/:id", normalized)
    return normalized


def permission_key(method: str, path: str) -> str:
    return f"{method.upper()} {normalize_path(path)}"


def get_required_permission(method: str, path: str) -> Optional[str]:
    return API_PERMISSION_MAP.get(permission_key(method, path))


def has_api_permission(
        user_permissions: Iterable[str],
        method: str,
        path: str,
        *,
        default_deny: bool = False,
) -> bool:
    required = get_required_permission(method, path)
    if required is None:
        # 未配置映射：默认放行；default_deny 时按拒绝处理
        return not default_deny
    return required in set(user_permissions)


def all_permission_codes() -> List[str]:
    codes: List[str] = []
    seen = set()
    for group in PERMISSION_GROUPS:
        for code in group.permissions:
            if code not in seen:
                seen.add(code)
                codes.append(code)
    for code in API_PERMISSION_MAP.values():
        if code not in seen:
            seen.add(code)
            codes.append(code)
    return codes


def module_of(code: str) -> str:
    for group in PERMISSION_GROUPS:
        if code in group.permissions:
            return group.module
    return code.split(".", 1)[0]


# ---------- 注册期声明与启动审计 ----------

PERMISSION_ATTR = "__permission_code__"
API_PERMISSION_ATTR = "__api_permission__"


def mark_permission(dep: Callable, code: str) -> Callable:
    setattr(dep, PERMISSION_ATTR, code)
    return dep


def declared_permissions(route: APIRoute) -> List[str]:
    codes: List[str] = []
    stack = list(route.dependant.dependencies)
    while stack:
        sub = stack.pop()
        call = sub.call
        code = getattr(call, PERMISSION_ATTR, None)
        if code:
            codes.append(code)
        stack.extend(sub.dependencies)
    return codes


def _uses_api_permission(route: APIRoute) -> bool:
    stack = list(route.dependant.dependencies)
    while stack:
        sub = stack.pop()
        if getattr(sub.call, API_PERMISSION_ATTR, False):
            return True
        stack.extend(sub.dependencies)
    return False


def route_pattern(path: str) -> str:
    """FastAPI 路由模板 /api/users/{user_id} -> /api/users/:id"""
    pattern = _ROUTE_PARAM.sub("/:id", path)
    # 设置项按 key 寻址
    return pattern.replace("/api/system/settings/:id", "/api/system/settings/:key")


def audit_route_permissions(app: FastAPI, *, strict: bool = False) -> List[str]:
    """
    检查每个 /api 路由都声明了权限（或在映射表中、或为公开/仅登录路由），
    且声明的编码与映射表一致。返回问题列表；strict 时有问题直接抛错。
    """
    problems: List[str] = []
    for route in app.routes:
        if not isinstance(route, APIRoute) or not route.path.startswith("/api"):
            continue
        pattern = route_pattern(route.path)
        for method in sorted(route.methods or []):
            key = f"{method} {pattern}"
            if key in PUBLIC_ROUTES or key in AUTHENTICATED_ROUTES:
                continue

            declared = declared_permissions(route)
            mapped = API_PERMISSION_MAP.get(key)

            if not declared and mapped is None:
                problems.append(f"{key}: no permission declared or mapped")
                continue
            if not declared and not _uses_api_permission(route):
                problems.append(f"{key}: mapped to {mapped} but route enforces nothing")
                continue
            if mapped is not None and declared and mapped not in declared:
                problems.append(f"{key}: declares {declared} but table maps {mapped}")

    for p in problems:
        logger.warning("permission audit: %s", p)
    if problems and strict:
        raise RuntimeError(f"permission audit failed: {len(problems)} route(s) misconfigured")
    return problems


def ensure_known_codes(codes: Sequence[str]) -> None:
    known = set(all_permission_codes())
    unknown = [c for c in codes if c not in known]
    if unknown:
        raise ValueError(f"unknown permission codes: {unknown}")
