# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 用户管理（列表/详情/创建/编辑/状态/重置密码/分配角色）

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from domains.error_domain import BadRequestError, ConflictError, NotFoundError, ValidationAppError
from domains.user_domain import UserOut, UserStatus
from infrastructures.db.orm.user_orm import UserORM
from infrastructures.db.repository.role_repository import RoleRepository
from infrastructures.db.repository.user_repository import UserRepository
from infrastructures.vlogger import vlogger
from services.credential_service import generate_random_password, hash_password_async, validate_password_strength


class UserService:
    def __init__(self) -> None:
        self._user_repo = UserRepository()
        self._role_repo = RoleRepository()

    async def get_or_404(self, db: AsyncSession, user_id: str) -> UserORM:
        user = await self._user_repo.get_by_id(db, user_id)
        if user is None:
            raise NotFoundError("用户不存在")
        return user

    async def list_users(
            self,
            db: AsyncSession,
            *,
            page: int,
            limit: int,
            search: Optional[str] = None,
            status: Optional[UserStatus] = None,
    ) -> Tuple[List[UserOut], int]:
        rows, total = await self._user_repo.list_users(
            db, search=search, status=status, limit=limit, offset=(page - 1) * limit
        )
        return [UserOut.model_validate(u) for u in rows], total

    async def create_user(
            self,
            db: AsyncSession,
            *,
            username: str,
            email: str,
            real_name: str,
            password: Optional[str] = None,
            phone: Optional[str] = None,
            department: Optional[str] = None,
            position: Optional[str] = None,
            role_ids: Sequence[str] = (),
    ) -> Tuple[UserORM, Optional[str]]:
        """未提供密码时生成随机初始密码，并随结果返回（仅此一次）。"""
        generated = None
        if password is None:
            password = generated = self._strong_random_password()
        check = validate_password_strength(password)
        if not check.is_valid:
            raise ValidationAppError.from_errors(check.errors)
        if await self._user_repo.exists_username_or_email(db, username=username, email=email):
            raise ConflictError("用户名或邮箱已存在")

        user = await self._user_repo.create_user(
            db,
            username=username,
            email=email,
            password_hash=await hash_password_async(password),
            real_name=real_name,
            phone=phone,
            department=department,
            position=position,
        )
        if role_ids:
            await self._assign_roles(db, user.id, role_ids)

        vlogger.info("user created username=%s", username)
        return await self.get_or_404(db, user.id), generated

    async def update_user(self, db: AsyncSession, user_id: str, **fields) -> UserORM:
        await self.get_or_404(db, user_id)
        email = fields.get("email")
        if email and await self._user_repo.exists_username_or_email(db, email=email, exclude_user_id=user_id):
            raise ConflictError("邮箱已被使用")

        await self._user_repo.update_profile(db, user_id=user_id, **fields)
        return await self.get_or_404(db, user_id)

    async def set_status(self, db: AsyncSession, user_id: str, status: UserStatus, *, operator_id: str) -> UserORM:
        if user_id == operator_id and status != UserStatus.ACTIVE:
            raise BadRequestError("不能停用自己的账号")
        await self.get_or_404(db, user_id)
        await self._user_repo.update_status(db, user_id=user_id, status=status)
        vlogger.info("user status changed user_id=%s status=%s", user_id, status.value)
        return await self.get_or_404(db, user_id)

    async def deactivate(self, db: AsyncSession, user_id: str, *, operator_id: str) -> None:
        # 用户不做物理删除，只改状态
        await self.set_status(db, user_id, UserStatus.INACTIVE, operator_id=operator_id)

    async def reset_password(self, db: AsyncSession, user_id: str) -> str:
        user = await self.get_or_404(db, user_id)
        password = self._strong_random_password()

        password_hash = await hash_password_async(password)
        await self._user_repo.update_password(db, user_id=user_id, password_hash=password_hash)
        vlogger.info("password reset username=%s", user.username)
        return password

    @staticmethod
    def _strong_random_password() -> str:
        # 随机结果可能缺某类字符，重抽直到满足强度规则
        password = generate_random_password()
        while not validate_password_strength(password).is_valid:
            password = generate_random_password()
        return password

    async def assign_roles(self, db: AsyncSession, user_id: str, role_ids: Sequence[str]) -> UserORM:
        await self.get_or_404(db, user_id)
        await self._assign_roles(db, user_id, role_ids)
        return await self.get_or_404(db, user_id)

    async def _assign_roles(self, db: AsyncSession, user_id: str, role_ids: Sequence[str]) -> None:
        roles = await self._role_repo.get_many(db, role_ids)
        missing = sorted(set(role_ids) - {r.id for r in roles})
        if missing:
            raise BadRequestError("角色不存在", details={"role_ids": missing})
        await self._user_repo.set_roles(db, user_id=user_id, role_ids=role_ids)
