# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 角色/权限数据访问层

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from infrastructures.db.orm.orm_base import now_ts
from infrastructures.db.orm.user_orm import PermissionORM, RoleORM, RolePermissionORM, UserRoleORM


class RoleRepository:
    # -------- Role --------

    @staticmethod
    async def get_by_id(db: AsyncSession, role_id: str) -> Optional[RoleORM]:
        stmt = (
            select(RoleORM)
            .options(selectinload(RoleORM.permissions))
            .where(RoleORM.id == role_id)
            .execution_options(populate_existing=True)
        )
        res = await db.execute(stmt)
        return res.scalars().first()

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> Optional[RoleORM]:
        stmt = select(RoleORM).options(selectinload(RoleORM.permissions)).where(RoleORM.name == name)
        res = await db.execute(stmt)
        return res.scalars().first()

    @staticmethod
    async def get_many(db: AsyncSession, role_ids: Sequence[str]) -> List[RoleORM]:
        if not role_ids:
            return []
        stmt = select(RoleORM).where(RoleORM.id.in_(list(role_ids)))
        res = await db.execute(stmt)
        return list(res.scalars().all())

    @staticmethod
    async def list_roles(
            db: AsyncSession,
            *,
            search: Optional[str] = None,
            limit: int = 10,
            offset: int = 0,
    ) -> Tuple[List[RoleORM], int]:
        conds = []
        if search:
            like = f"%{search}%"
            conds.append(or_(RoleORM.name.ilike(like), RoleORM.display_name.ilike(like)))

        total = int((await db.execute(select(func.count()).select_from(RoleORM).where(*conds))).scalar_one())
        stmt = (
            select(RoleORM)
            .options(selectinload(RoleORM.permissions))
            .where(*conds)
            .order_by(RoleORM.is_system.desc(), RoleORM.name)
            .offset(int(offset))
            .limit(int(limit))
        )
        res = await db.execute(stmt)
        return list(res.scalars().all()), total

    @staticmethod
    async def create_role(
            db: AsyncSession,
            *,
            name: str,
            display_name: str,
            description: Optional[str] = None,
            is_system: bool = False,
    ) -> RoleORM:
        role = RoleORM(name=name, display_name=display_name, description=description, is_system=is_system)
        db.add(role)
        await db.flush()
        return role

    @staticmethod
    async def update_role(db: AsyncSession, *, role_id: str, **fields) -> int:
        values = {k: v for k, v in fields.items() if v is not None}
        if not values:
            return 0
        values["updated_at"] = now_ts()
        res = await db.execute(update(RoleORM).where(RoleORM.id == role_id).values(**values))
        return int(res.rowcount or 0)

    @staticmethod
    async def count_users(db: AsyncSession, role_id: str) -> int:
        stmt = select(func.count()).select_from(UserRoleORM).where(UserRoleORM.role_id == role_id)
        return int((await db.execute(stmt)).scalar_one())

    @staticmethod
    async def delete_role(db: AsyncSession, role_id: str) -> int:
        await db.execute(delete(RolePermissionORM).where(RolePermissionORM.role_id == role_id))
        await db.execute(delete(UserRoleORM).where(UserRoleORM.role_id == role_id))
        res = await db.execute(delete(RoleORM).where(RoleORM.id == role_id))
        return int(res.rowcount or 0)

    @staticmethod
    async def set_permissions(db: AsyncSession, *, role_id: str, permission_ids: Sequence[str]) -> None:
        await db.execute(delete(RolePermissionORM).where(RolePermissionORM.role_id == role_id))
        for pid in dict.fromkeys(permission_ids):
            db.add(RolePermissionORM(role_id=role_id, permission_id=pid))
        await db.flush()

    # -------- Permission --------

    @staticmethod
    async def get_permission(db: AsyncSession, permission_id: str) -> Optional[PermissionORM]:
        res = await db.execute(select(PermissionORM).where(PermissionORM.id == permission_id))
        return res.scalars().first()

    @staticmethod
    async def get_permissions_by_ids(db: AsyncSession, permission_ids: Sequence[str]) -> List[PermissionORM]:
        if not permission_ids:
            return []
        res = await db.execute(select(PermissionORM).where(PermissionORM.id.in_(list(permission_ids))))
        return list(res.scalars().all())

    @staticmethod
    async def get_permissions_by_codes(db: AsyncSession, codes: Sequence[str]) -> List[PermissionORM]:
        if not codes:
            return []
        res = await db.execute(select(PermissionORM).where(PermissionORM.code.in_(list(codes))))
        return list(res.scalars().all())

    @staticmethod
    async def list_permissions(
            db: AsyncSession,
            *,
            module: Optional[str] = None,
            search: Optional[str] = None,
            limit: Optional[int] = None,
            offset: int = 0,
    ) -> Tuple[List[PermissionORM], int]:
        conds = []
        if module:
            conds.append(PermissionORM.module == module)
        if search:
            like = f"%{search}%"
            conds.append(or_(PermissionORM.code.ilike(like), PermissionORM.name.ilike(like)))

        total = int((await db.execute(select(func.count()).select_from(PermissionORM).where(*conds))).scalar_one())
        stmt = select(PermissionORM).where(*conds).order_by(PermissionORM.sort_order, PermissionORM.code)
        if limit is not None:
            stmt = stmt.offset(int(offset)).limit(int(limit))
        res = await db.execute(stmt)
        return list(res.scalars().all()), total

    @staticmethod
    async def list_modules(db: AsyncSession) -> List[str]:
        stmt = (
            select(PermissionORM.module, func.min(PermissionORM.sort_order).label("ord"))
            .group_by(PermissionORM.module)
            .order_by("ord")
        )
        res = await db.execute(stmt)
        return [row[0] for row in res.all()]

    @staticmethod
    async def create_permission(
            db: AsyncSession,
            *,
            code: str,
            name: str,
            module: str,
            description: Optional[str] = None,
            sort_order: int = 0,
    ) -> PermissionORM:
        perm = PermissionORM(code=code, name=name, module=module, description=description, sort_order=sort_order)
        db.add(perm)
        await db.flush()
        return perm

    @staticmethod
    async def get_permission_by_code(db: AsyncSession, code: str) -> Optional[PermissionORM]:
        res = await db.execute(select(PermissionORM).where(PermissionORM.code == code))
        return res.scalars().first()

    @staticmethod
    async def update_permission(db: AsyncSession, *, permission_id: str, **fields) -> int:
        values = {k: v for k, v in fields.items() if v is not None}
        if not values:
            return 0
        values["updated_at"] = now_ts()
        res = await db.execute(update(PermissionORM).where(PermissionORM.id == permission_id).values(**values))
        return int(res.rowcount or 0)

    @staticmethod
    async def count_roles_using(db: AsyncSession, permission_id: str) -> int:
        stmt = select(func.count()).select_from(RolePermissionORM).where(
            RolePermissionORM.permission_id == permission_id
        )
        return int((await db.execute(stmt)).scalar_one())

    @staticmethod
    async def delete_permission(db: AsyncSession, permission_id: str) -> int:
        res = await db.execute(delete(PermissionORM).where(PermissionORM.id == permission_id))
        return int(res.rowcount or 0)
