# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 角色管理与角色权限分配接口

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import require_permission, require_roles
from app.responses import created, no_content, ok, paginated
from domains.domain_base import ApiModel
from domains.error_domain import ResponseCode
from domains.user_domain import CurrentUser, PermissionOut
from infrastructures.db.orm.orm_deps import get_db
from services.role_service import RoleService, to_role_out

router = APIRouter(prefix="/api/roles", tags=["roles"])

_role_service = RoleService()


class RoleCreateRequest(ApiModel):
    name: str = Field(..., min_length=2, max_length=50, pattern=r"^[a-z][a-z0-9_]*$")
    display_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    permission_ids: List[str] = Field(default_factory=list)


class RoleUpdateRequest(ApiModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    status: Optional[bool] = None


class RolePermissionsRequest(ApiModel):
    permission_ids: List[str] = Field(default_factory=list)


@router.get("")
async def list_roles(
        request: Request,
        _user: CurrentUser = Depends(require_permission("role.list")),
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        search: Optional[str] = Query(None),
        db: AsyncSession = Depends(get_db),
):
    items, total = await _role_service.list_roles(db, page=page, limit=limit, search=search)
    return paginated(request, [r.to_dict() for r in items], total=total, page=page, limit=limit)


@router.get("/{role_id}")
async def get_role(
        role_id: str,
        request: Request,
        _user: CurrentUser = Depends(require_permission("role.list")),
        db: AsyncSession = Depends(get_db),
):
    role = await _role_service.get_or_404(db, role_id)
    return ok(request, to_role_out(role).to_dict(), "获取角色详情成功")


@router.post("")
async def create_role(
        body: RoleCreateRequest,
        request: Request,
        _user: CurrentUser = Depends(require_permission("role.create")),
        db: AsyncSession = Depends(get_db),
):
    role = await _role_service.create_role(
        db,
        name=body.name,
        display_name=body.display_name,
        description=body.description,
        permission_ids=body.permission_ids,
    )
    return created(request, to_role_out(role).to_dict(), "角色创建成功")


@router.put("/{role_id}")
async def update_role(
        role_id: str,
        body: RoleUpdateRequest,
        request: Request,
        _user: CurrentUser = Depends(require_permission("role.edit")),
        db: AsyncSession = Depends(get_db),
):
    role = await _role_service.update_role(db, role_id, **body.model_dump(exclude_none=True))
    return ok(request, to_role_out(role).to_dict(), "角色更新成功", code=ResponseCode.UPDATED)


@router.delete("/{role_id}", dependencies=[Depends(require_roles(["admin"]))])
async def delete_role(
        role_id: str,
        request: Request,
        _user: CurrentUser = Depends(require_permission("role.delete")),
        db: AsyncSession = Depends(get_db),
):
    await _role_service.delete_role(db, role_id)
    return no_content(request, "角色删除成功")


@router.get("/{role_id}/permissions")
async def get_role_permissions(
        role_id: str,
        request: Request,
        _user: CurrentUser = Depends(require_permission("role.list")),
        db: AsyncSession = Depends(get_db),
):
    role = await _role_service.get_or_404(db, role_id)
    data = [PermissionOut.model_validate(p).to_dict() for p in role.permissions]
    return ok(request, data, "获取角色权限成功")


@router.post("/{role_id}/permissions")
async def set_role_permissions(
        role_id: str,
        body: RolePermissionsRequest,
        request: Request,
        _user: CurrentUser = Depends(require_permission("role.edit")),
        db: AsyncSession = Depends(get_db),
):
    role = await _role_service.set_permissions(db, role_id, body.permission_ids)
    return ok(request, to_role_out(role).to_dict(), "角色权限分配成功", code=ResponseCode.UPDATED)
