# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 用户管理接口

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import require_permission, require_roles
from app.responses import created, no_content, ok, paginated
from app.routers.auth_router import EMAIL_PATTERN
from domains.domain_base import ApiModel
from domains.error_domain import ResponseCode
from domains.user_domain import CurrentUser, UserOut, UserStatus
from infrastructures.db.orm.orm_deps import get_db
from services.user_service import UserService

router = APIRouter(prefix="/api/users", tags=["users"])

_user_service = UserService()


class UserCreateRequest(ApiModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., max_length=100, pattern=EMAIL_PATTERN)
    real_name: str = Field(..., min_length=1, max_length=100)
    password: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=20)
    department: Optional[str] = Field(None, max_length=100)
    position: Optional[str] = Field(None, max_length=100)
    role_ids: List[str] = Field(default_factory=list)


class UserUpdateRequest(ApiModel):
    email: Optional[str] = Field(None, max_length=100, pattern=EMAIL_PATTERN)
    real_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    department: Optional[str] = Field(None, max_length=100)
    position: Optional[str] = Field(None, max_length=100)


class UserStatusRequest(ApiModel):
    status: UserStatus


class UserRolesRequest(ApiModel):
    role_ids: List[str] = Field(default_factory=list)


@router.get("")
async def list_users(
        request: Request,
        _user: CurrentUser = Depends(require_permission("user.list")),
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        search: Optional[str] = Query(None),
        status: Optional[UserStatus] = Query(None),
        db: AsyncSession = Depends(get_db),
):
    items, total = await _user_service.list_users(db, page=page, limit=limit, search=search, status=status)
    return paginated(request, [u.to_dict() for u in items], total=total, page=page, limit=limit)


@router.get("/{user_id}")
async def get_user(
        user_id: str,
        request: Request,
        _user: CurrentUser = Depends(require_permission("user.list")),
        db: AsyncSession = Depends(get_db),
):
    user = await _user_service.get_or_404(db, user_id)
    return ok(request, UserOut.model_validate(user).to_dict(), "获取用户详情成功")


@router.post("")
async def create_user(
        body: UserCreateRequest,
        request: Request,
        _user: CurrentUser = Depends(require_permission("user.create")),
        db: AsyncSession = Depends(get_db),
):
    user, initial_password = await _user_service.create_user(
        db,
        username=body.username,
        email=body.email,
        real_name=body.real_name,
        password=body.password,
        phone=body.phone,
        department=body.department,
        position=body.position,
        role_ids=body.role_ids,
    )
    data = UserOut.model_validate(user).to_dict()
    if initial_password is not None:
        data["initialPassword"] = initial_password
    return created(request, data, "用户创建成功")


@router.put("/{user_id}")
async def update_user(
        user_id: str,
        body: UserUpdateRequest,
        request: Request,
        _user: CurrentUser = Depends(require_permission("user.edit")),
        db: AsyncSession = Depends(get_db),
):
    user = await _user_service.update_user(db, user_id, **body.model_dump(exclude_none=True))
    return ok(request, UserOut.model_validate(user).to_dict(), "用户信息更新成功", code=ResponseCode.UPDATED)


@router.delete("/{user_id}")
async def delete_user(
        user_id: str,
        request: Request,
        operator: CurrentUser = Depends(require_permission("user.delete")),
        db: AsyncSession = Depends(get_db),
):
    await _user_service.deactivate(db, user_id, operator_id=operator.id)
    return no_content(request, "用户已停用")


@router.put("/{user_id}/status")
async def update_user_status(
        user_id: str,
        body: UserStatusRequest,
        request: Request,
        operator: CurrentUser = Depends(require_permission("user.edit")),
        db: AsyncSession = Depends(get_db),
):
    user = await _user_service.set_status(db, user_id, body.status, operator_id=operator.id)
    return ok(request, UserOut.model_validate(user).to_dict(), "用户状态更新成功", code=ResponseCode.UPDATED)


@router.post("/{user_id}/reset-password", dependencies=[Depends(require_roles(["admin"]))])
async def reset_password(
        user_id: str,
        request: Request,
        _user: CurrentUser = Depends(require_permission("user.edit")),
        db: AsyncSession = Depends(get_db),
):
    password = await _user_service.reset_password(db, user_id)
    return ok(request, {"newPassword": password}, "密码重置成功")


@router.post("/{user_id}/roles")
async def assign_roles(
        user_id: str,
        body: UserRolesRequest,
        request: Request,
        _user: CurrentUser = Depends(require_permission("user.edit")),
        db: AsyncSession = Depends(get_db),
):
    user = await _user_service.assign_roles(db, user_id, body.role_ids)
    return ok(request, UserOut.model_validate(user).to_dict(), "角色分配成功")
