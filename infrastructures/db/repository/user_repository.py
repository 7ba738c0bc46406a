# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 用户数据访问层（含角色/权限链查询）

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from domains.user_domain import UserStatus
from infrastructures.db.orm.orm_base import now_ts
from infrastructures.db.orm.user_orm import RoleORM, UserORM, UserRoleORM


def _with_roles():
    return selectinload(UserORM.roles).selectinload(RoleORM.permissions)


class UserRepository:
    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: str) -> Optional[UserORM]:
        stmt = (
            select(UserORM)
            .options(_with_roles())
            .where(UserORM.id == user_id)
            .execution_options(populate_existing=True)
        )
        res = await db.execute(stmt)
        return res.scalars().first()

    @staticmethod
    async def get_by_username(db: AsyncSession, username: str) -> Optional[UserORM]:
        stmt = select(UserORM).options(_with_roles()).where(UserORM.username == username)
        res = await db.execute(stmt)
        return res.scalars().first()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[UserORM]:
        stmt = select(UserORM).options(_with_roles()).where(UserORM.email == email)
        res = await db.execute(stmt)
        return res.scalars().first()

    @staticmethod
    async def exists_username_or_email(
            db: AsyncSession,
            *,
            username: Optional[str] = None,
            email: Optional[str] = None,
            exclude_user_id: Optional[str] = None,
    ) -> bool:
        conds = []
        if username:
            conds.append(UserORM.username == username)
        if email:
            conds.append(UserORM.email == email)
        if not conds:
            return False

        stmt = select(UserORM.id).where(or_(*conds))
        if exclude_user_id:
            stmt = stmt.where(UserORM.id != exclude_user_id)
        res = await db.execute(stmt.limit(1))
        return res.scalar_one_or_none() is not None

    @staticmethod
    async def create_user(
            db: AsyncSession,
            *,
            username: str,
            email: str,
            password_hash: str,
            real_name: str = "",
            phone: Optional[str] = None,
            department: Optional[str] = None,
            position: Optional[str] = None,
            status: UserStatus = UserStatus.ACTIVE,
    ) -> UserORM:
        user = UserORM(
            username=username,
            email=email,
            password_hash=password_hash,
            real_name=real_name,
            phone=phone,
            department=department,
            position=position,
            status=status.value,
        )
        db.add(user)

        await db.flush()
        return user

    @staticmethod
    async def list_users(
            db: AsyncSession,
            *,
            search: Optional[str] = None,
            status: Optional[UserStatus] = None,
            limit: int = 10,
            offset: int = 0,
    ) -> Tuple[List[UserORM], int]:
        conds = []
        if search:
            like = f"%{search}%"
            conds.append(or_(UserORM.username.ilike(like), UserORM.real_name.ilike(like), UserORM.email.ilike(like)))
        if status is not None:
            conds.append(UserORM.status == status.value)

        count_stmt = select(func.count()).select_from(UserORM).where(*conds)
        total = int((await db.execute(count_stmt)).scalar_one())

        stmt = (
            select(UserORM)
            .options(_with_roles())
            .where(*conds)
            .order_by(UserORM.created_at.desc(), UserORM.username)
            .offset(int(offset))
            .limit(int(limit))
        )
        res = await db.execute(stmt)
        return list(res.scalars().all()), total

    @staticmethod
    async def update_profile(db: AsyncSession, *, user_id: str, **fields) -> int:
        values = {k: v for k, v in fields.items() if v is not None}
        if not values:
            return 0
        values["updated_at"] = now_ts()
        stmt = update(UserORM).where(UserORM.id == user_id).values(**values)
        res = await db.execute(stmt)
        return int(res.rowcount or 0)

    @staticmethod
    async def update_status(db: AsyncSession, *, user_id: str, status: UserStatus) -> int:
        stmt = update(UserORM).where(UserORM.id == user_id).values(status=status.value, updated_at=now_ts())
        res = await db.execute(stmt)
        return int(res.rowcount or 0)

    @staticmethod
    async def update_password(db: AsyncSession, *, user_id: str, password_hash: str) -> int:
        stmt = update(UserORM).where(UserORM.id == user_id).values(password_hash=password_hash, updated_at=now_ts())
        res = await db.execute(stmt)
        return int(res.rowcount or 0)

    @staticmethod
    async def update_last_login(db: AsyncSession, *, user_id: str, ip_address: str) -> int:
        ts = now_ts()
        stmt = (
            update(UserORM)
            .where(UserORM.id == user_id)
            .values(last_login_at=ts, last_login_ip=ip_address, updated_at=ts)
        )
        res = await db.execute(stmt)
        return int(res.rowcount or 0)

    @staticmethod
    async def set_roles(db: AsyncSession, *, user_id: str, role_ids: Sequence[str]) -> None:
        await db.execute(delete(UserRoleORM).where(UserRoleORM.user_id == user_id))
        for role_id in dict.fromkeys(role_ids):
            db.add(UserRoleORM(user_id=user_id, role_id=role_id))
        await db.flush()

    @staticmethod
    async def add_role(db: AsyncSession, *, user_id: str, role_id: str) -> None:
        db.add(UserRoleORM(user_id=user_id, role_id=role_id))
        await db.flush()

    @staticmethod
    def role_names(user: UserORM) -> List[str]:
        # 停用角色不参与鉴权，与 permission_codes 口径一致
        return [r.name for r in user.roles if r.status]

    @staticmethod
    def permission_codes(user: UserORM) -> List[str]:
        """用户所有启用角色下启用权限编码的去重并集（保持首次出现顺序）。"""
        codes: dict[str, None] = {}
        for role in user.roles:
            if not role.status:
                continue
            for perm in role.permissions:
                if perm.is_active:
                    codes.setdefault(perm.code, None)
        return list(codes)
