# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 注册 / 登录 / 登出 / 当前用户 / 刷新令牌 / 修改密码

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import get_current_user
from app.responses import created, ok
from domains.domain_base import ApiModel
from domains.user_domain import CurrentUser, LoginType, ProfileOut
from infrastructures.db.orm.orm_deps import get_db
from infrastructures.vconfig import vconfig
from infrastructures.vlogger import vlogger
from services.auth_service import AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])

_auth_service = AuthService()

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterRequest(ApiModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., max_length=100, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)
    real_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    department: Optional[str] = Field(None, max_length=100)
    position: Optional[str] = Field(None, max_length=100)


class LoginRequest(ApiModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str = Field(..., min_length=1)
    login_type: LoginType = LoginType.USERNAME


class ChangePasswordRequest(ApiModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class TokenOut(ApiModel):
    token: str
    user: ProfileOut
    expires_in: str


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for") if vconfig.trust_proxy_headers else None
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post("/register")
async def register(
        body: RegisterRequest,
        request: Request,
        db: AsyncSession = Depends(get_db),
):
    user = await _auth_service.register(
        db,
        username=body.username,
        email=body.email,
        password=body.password,
        real_name=body.real_name,
        phone=body.phone,
        department=body.department,
        position=body.position,
    )
    out = TokenOut(
        token=_auth_service.issue_token(user),
        user=_auth_service.to_profile(user),
        expires_in=vconfig.jwt_expires_in,
    )
    return created(request, out.to_dict(), "注册成功")


@router.post("/login")
async def login(
        body: LoginRequest,
        request: Request,
        background_tasks: BackgroundTasks,
        db: AsyncSession = Depends(get_db),
):
    user = await _auth_service.authenticate_or_raise(
        db,
        password=body.password,
        login_type=body.login_type,
        username=body.username,
        email=body.email,
    )

    background_tasks.add_task(AuthService.record_login, user.id, client_ip(request))
    vlogger.info("login ok username=%s type=%s", user.username, body.login_type.value)

    out = TokenOut(
        token=_auth_service.issue_token(user),
        user=_auth_service.to_profile(user),
        expires_in=vconfig.jwt_expires_in,
    )
    return ok(request, out.to_dict(), "登录成功")


@router.post("/logout")
async def logout(
        request: Request,
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
):
    # 令牌无状态，登出由客户端丢弃令牌完成
    vlogger.info("logout username=%s", current_user.username)
    return ok(request, None, "登出成功")


@router.get("/me")
async def get_me(
        request: Request,
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        db: AsyncSession = Depends(get_db),
):
    profile = await _auth_service.profile(db, current_user.id)
    return ok(request, profile.to_dict(), "获取用户信息成功")


@router.post("/refresh")
async def refresh_token(
        request: Request,
        background_tasks: BackgroundTasks,
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
):
    background_tasks.add_task(AuthService.record_login, current_user.id, client_ip(request))
    data = {"token": _auth_service.issue_token(current_user), "expiresIn": vconfig.jwt_expires_in}
    return ok(request, data, "令牌刷新成功")


@router.put("/password")
async def change_password(
        body: ChangePasswordRequest,
        request: Request,
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        db: AsyncSession = Depends(get_db),
):
    await _auth_service.change_password(
        db,
        user_id=current_user.id,
        current_password=body.current_password,
        new_password=body.new_password,
    )
    return ok(request, None, "密码修改成功")
