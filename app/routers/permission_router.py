# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 权限目录查询与维护接口

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import require_permission
from app.responses import created, no_content, ok, paginated
from domains.domain_base import ApiModel
from domains.error_domain import ResponseCode
from domains.user_domain import CurrentUser, PermissionOut
from infrastructures.db.orm.orm_deps import get_db
from services.role_service import RoleService

router = APIRouter(prefix="/api/permissions", tags=["permissions"])

_role_service = RoleService()


class PermissionCreateRequest(ApiModel):
    code: str = Field(..., max_length=100, pattern=r"^[a-z][a-z0-9_]*\.[a-z][a-z0-9_]*$")
    name: str = Field(..., min_length=1, max_length=100)
    module: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    sort_order: int = 0


class PermissionUpdateRequest(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    module: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


@router.get("")
async def list_permissions(
        request: Request,
        _user: CurrentUser = Depends(require_permission("permission.config")),
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=200),
        module: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        db: AsyncSession = Depends(get_db),
):
    items, total = await _role_service.list_permissions(db, page=page, limit=limit, module=module, search=search)
    return paginated(request, [p.to_dict() for p in items], total=total, page=page, limit=limit)


@router.get("/modules")
async def list_modules(
        request: Request,
        _user: CurrentUser = Depends(require_permission("permission.config")),
        db: AsyncSession = Depends(get_db),
):
    return ok(request, await _role_service.list_modules(db), "获取权限模块成功")


@router.get("/grouped")
async def grouped_permissions(
        request: Request,
        _user: CurrentUser = Depends(require_permission("permission.config")),
        db: AsyncSession = Depends(get_db),
):
    grouped = await _role_service.grouped_permissions(db)
    data = {module: [p.to_dict() for p in perms] for module, perms in grouped.items()}
    return ok(request, data, "获取分组权限成功")


@router.get("/{permission_id}")
async def get_permission(
        permission_id: str,
        request: Request,
        _user: CurrentUser = Depends(require_permission("permission.config")),
        db: AsyncSession = Depends(get_db),
):
    perm = await _role_service.get_permission_or_404(db, permission_id)
    return ok(request, PermissionOut.model_validate(perm).to_dict(), "获取权限详情成功")


@router.post("")
async def create_permission(
        body: PermissionCreateRequest,
        request: Request,
        _user: CurrentUser = Depends(require_permission("permission.config")),
        db: AsyncSession = Depends(get_db),
):
    perm = await _role_service.create_permission(
        db,
        code=body.code,
        name=body.name,
        module=body.module,
        description=body.description,
        sort_order=body.sort_order,
    )
    return created(request, PermissionOut.model_validate(perm).to_dict(), "权限创建成功")


@router.put("/{permission_id}")
async def update_permission(
        permission_id: str,
        body: PermissionUpdateRequest,
        request: Request,
        _user: CurrentUser = Depends(require_permission("permission.config")),
        db: AsyncSession = Depends(get_db),
):
    perm = await _role_service.update_permission(db, permission_id, **body.model_dump(exclude_none=True))
    return ok(request, PermissionOut.model_validate(perm).to_dict(), "权限信息更新成功", code=ResponseCode.UPDATED)


@router.delete("/{permission_id}")
async def delete_permission(
        permission_id: str,
        request: Request,
        _user: CurrentUser = Depends(require_permission("permission.config")),
        db: AsyncSession = Depends(get_db),
):
    await _role_service.delete_permission(db, permission_id)
    return no_content(request, "权限删除成功")
