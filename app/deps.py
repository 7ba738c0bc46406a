# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 鉴权依赖链（令牌 -> 身份 -> 角色 -> 权限）

from __future__ import annotations

from typing import Annotated, Callable, List, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from domains.error_domain import AuthenticationError, PermissionDeniedError
from domains.user_domain import CurrentUser
from infrastructures.db.orm.orm_deps import get_db
from infrastructures.vconfig import vconfig
from infrastructures.vlogger import bind_username, vlogger
from services.auth_service import AuthService
from services.permission_service import (
    API_PERMISSION_ATTR,
    ensure_known_codes,
    get_required_permission,
    has_api_permission,
    mark_permission,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

MISSING_TOKEN_MESSAGE = "缺少访问令牌"


async def get_current_user(
        request: Request,
        token: Annotated[Optional[str], Depends(oauth2_scheme)],
        db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    if token is None or token.strip() == "":
        raise AuthenticationError(MISSING_TOKEN_MESSAGE)

    user = await AuthService().resolve_identity(db, token.strip())
    request.state.user = user
    bind_username(user.username)
    return user


async def get_optional_user(
        request: Request,
        token: Annotated[Optional[str], Depends(oauth2_scheme)],
        db: AsyncSession = Depends(get_db),
) -> Optional[CurrentUser]:
    if token is None or token.strip() == "":
        return None
    return await get_current_user(request, token, db)


def require_roles(roles: List[str]) -> Callable:
    """
    用法：Depends(require_roles(["admin"]))
    """
    allowed = list(roles)

    async def _dep(user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
        if not user.has_any_role(allowed):
            vlogger.warning("role denied need=%s have=%s", allowed, user.roles)
            raise PermissionDeniedError(details={"required_roles": allowed})
        return user

    return _dep


def require_permission(code: str) -> Callable:
    """
    用法：Depends(require_permission("user.list"))
    编码在注册时校验，并挂在依赖上供启动审计比对映射表。
    """
    ensure_known_codes([code])

    async def _dep(user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
        if not user.has_permission(code):
            vlogger.warning("permission denied need=%s", code)
            raise PermissionDeniedError(details={"required_permission": code})
        return user

    return mark_permission(_dep, code)


def require_api_permission() -> Callable:
    """按 method + path 查映射表鉴权（未声明 require_permission 的路由使用）。"""

    async def _dep(
            request: Request,
            user: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        method, path = request.method, request.url.path
        if not has_api_permission(user.permissions, method, path, default_deny=vconfig.permission_default_deny):
            required = get_required_permission(method, path)
            vlogger.warning("api permission denied %s %s need=%s", method, path, required)
            raise PermissionDeniedError(details={"required_permission": required})
        return user

    setattr(_dep, API_PERMISSION_ATTR, True)
    return _dep
