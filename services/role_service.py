# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 角色与权限管理

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from domains.error_domain import BadRequestError, ConflictError, NotFoundError
from domains.user_domain import PermissionOut, RoleOut
from infrastructures.db.orm.user_orm import PermissionORM, RoleORM
from infrastructures.db.repository.role_repository import RoleRepository
from infrastructures.vlogger import vlogger


def to_role_out(role: RoleORM) -> RoleOut:
    return RoleOut(
        id=role.id,
        name=role.name,
        display_name=role.display_name,
        description=role.description,
        is_system=bool(role.is_system),
        status=bool(role.status),
        created_at=role.created_at,
        updated_at=role.updated_at,
        permissions=[p.code for p in role.permissions],
    )


class RoleService:
    def __init__(self) -> None:
        self._repo = RoleRepository()

    async def get_or_404(self, db: AsyncSession, role_id: str) -> RoleORM:
        role = await self._repo.get_by_id(db, role_id)
        if role is None:
            raise NotFoundError("角色不存在")
        return role

    async def list_roles(
            self, db: AsyncSession, *, page: int, limit: int, search: Optional[str] = None
    ) -> Tuple[List[RoleOut], int]:
        rows, total = await self._repo.list_roles(db, search=search, limit=limit, offset=(page - 1) * limit)
        return [to_role_out(r) for r in rows], total

    async def create_role(
            self,
            db: AsyncSession,
            *,
            name: str,
            display_name: str,
            description: Optional[str] = None,
            permission_ids: Sequence[str] = (),
    ) -> RoleORM:
        if await self._repo.get_by_name(db, name) is not None:
            raise ConflictError("角色名称已存在")
        role = await self._repo.create_role(db, name=name, display_name=display_name, description=description)
        if permission_ids:
            await self._set_permissions(db, role.id, permission_ids)
        vlogger.info("role created name=%s", name)
        return await self.get_or_404(db, role.id)

    async def update_role(self, db: AsyncSession, role_id: str, **fields) -> RoleORM:
        await self.get_or_404(db, role_id)
        await self._repo.update_role(db, role_id=role_id, **fields)
        return await self.get_or_404(db, role_id)

    async def delete_role(self, db: AsyncSession, role_id: str) -> None:
        role = await self.get_or_404(db, role_id)
        if role.is_system:
            raise BadRequestError("系统角色不能删除")
        in_use = await self._repo.count_users(db, role_id)
        if in_use:
            raise ConflictError("角色仍有关联用户，无法删除", details={"user_count": in_use})
        await self._repo.delete_role(db, role_id)
        vlogger.info("role deleted name=%s", role.name)

    async def set_permissions(self, db: AsyncSession, role_id: str, permission_ids: Sequence[str]) -> RoleORM:
        await self.get_or_404(db, role_id)
        await self._set_permissions(db, role_id, permission_ids)
        return await self.get_or_404(db, role_id)

    async def _set_permissions(self, db: AsyncSession, role_id: str, permission_ids: Sequence[str]) -> None:
        perms = await self._repo.get_permissions_by_ids(db, permission_ids)
        missing = sorted(set(permission_ids) - {p.id for p in perms})
        if missing:
            raise BadRequestError("权限不存在", details={"permission_ids": missing})
        await self._repo.set_permissions(db, role_id=role_id, permission_ids=[p.id for p in perms])

    # ---------- 权限 ----------

    async def get_permission_or_404(self, db: AsyncSession, permission_id: str) -> PermissionORM:
        perm = await self._repo.get_permission(db, permission_id)
        if perm is None:
            raise NotFoundError("权限不存在")
        return perm

    async def list_permissions(
            self,
            db: AsyncSession,
            *,
            page: int,
            limit: int,
            module: Optional[str] = None,
            search: Optional[str] = None,
    ) -> Tuple[List[PermissionOut], int]:
        rows, total = await self._repo.list_permissions(
            db, module=module, search=search, limit=limit, offset=(page - 1) * limit
        )
        return [PermissionOut.model_validate(p) for p in rows], total

    async def list_modules(self, db: AsyncSession) -> List[str]:
        return await self._repo.list_modules(db)

    async def grouped_permissions(self, db: AsyncSession) -> Dict[str, List[PermissionOut]]:
        rows, _ = await self._repo.list_permissions(db)
        grouped: Dict[str, List[PermissionOut]] = {}
        for p in rows:
            grouped.setdefault(p.module, []).append(PermissionOut.model_validate(p))
        return grouped

    async def create_permission(
            self,
            db: AsyncSession,
            *,
            code: str,
            name: str,
            module: str,
            description: Optional[str] = None,
            sort_order: int = 0,
    ) -> PermissionORM:
        if await self._repo.get_permission_by_code(db, code) is not None:
            raise ConflictError("权限编码已存在")
        perm = await self._repo.create_permission(
            db, code=code, name=name, module=module, description=description, sort_order=sort_order
        )
        vlogger.info("permission created code=%s", code)
        return perm

    async def update_permission(self, db: AsyncSession, permission_id: str, **fields) -> PermissionORM:
        perm = await self.get_permission_or_404(db, permission_id)
        await self._repo.update_permission(db, permission_id=permission_id, **fields)
        await db.refresh(perm)
        vlogger.info("permission updated code=%s", perm.code)
        return perm

    async def delete_permission(self, db: AsyncSession, permission_id: str) -> None:
        perm = await self.get_permission_or_404(db, permission_id)
        in_use = await self._repo.count_roles_using(db, permission_id)
        if in_use:
            raise ConflictError("该权限正在被角色使用，无法删除", details={"role_count": in_use})
        await self._repo.delete_permission(db, permission_id)
        vlogger.info("permission deleted code=%s", perm.code)
