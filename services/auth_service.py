# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 注册/登录/身份解析/改密与最后登录信息更新

from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from domains.error_domain import AuthenticationError, BadRequestError, ConflictError, ValidationAppError
from domains.user_domain import CurrentUser, LoginType, ProfileOut, TokenClaims, UserStatus
from infrastructures.db.orm.orm_base import AsyncSessionFactory
from infrastructures.db.orm.user_orm import UserORM
from infrastructures.db.repository.role_repository import RoleRepository
from infrastructures.db.repository.user_repository import UserRepository
from infrastructures.vconfig import vconfig
from infrastructures.vlogger import vlogger
from services.credential_service import (
    dummy_verify_async,
    generate_token,
    hash_password_async,
    validate_password_strength,
    verify_password_async,
    verify_token,
)

INVALID_TOKEN_MESSAGE = "无效的访问令牌"


def login_failure_message(login_type: LoginType) -> str:
    return "邮箱或密码错误" if login_type == LoginType.EMAIL else "用户名或密码错误"


class AuthService:
    def __init__(self) -> None:
        self._user_repo = UserRepository()
        self._role_repo = RoleRepository()

    # ---------- 令牌 ----------

    @staticmethod
    def issue_token(user: UserORM | CurrentUser) -> str:
        return generate_token(TokenClaims(user_id=user.id, username=user.username, email=user.email))

    async def resolve_identity(self, db: AsyncSession, token: str) -> CurrentUser:
        """校验令牌 -> 实时加载用户/角色/权限 -> 检查状态。数据库异常直接向上抛。"""
        claims = verify_token(token)
        if claims is None:
            raise AuthenticationError(INVALID_TOKEN_MESSAGE)

        user = await self._user_repo.get_by_id(db, claims.user_id)
        if user is None or user.status != UserStatus.ACTIVE.value:
            vlogger.warning("auth rejected: user missing or disabled user_id=%s", claims.user_id)
            raise AuthenticationError(INVALID_TOKEN_MESSAGE)

        return self.to_current_user(user)

    def to_current_user(self, user: UserORM) -> CurrentUser:
        return CurrentUser(
            id=user.id,
            username=user.username,
            email=user.email,
            real_name=user.real_name or "",
            roles=self._user_repo.role_names(user),
            permissions=self._user_repo.permission_codes(user),
        )

    async def profile(self, db: AsyncSession, user_id: str) -> ProfileOut:
        user = await self._user_repo.get_by_id(db, user_id)
        if user is None:
            raise AuthenticationError(INVALID_TOKEN_MESSAGE)
        return self.to_profile(user)

    def to_profile(self, user: UserORM) -> ProfileOut:
        return ProfileOut(
            id=user.id,
            username=user.username,
            email=user.email,
            real_name=user.real_name or "",
            phone=user.phone or "",
            department=user.department or "",
            position=user.position or "",
            roles=self._user_repo.role_names(user),
            permissions=self._user_repo.permission_codes(user),
            created_at=user.created_at,
            updated_at=user.updated_at or user.created_at,
        )

    # ---------- 注册 / 登录 ----------

    async def register(
            self,
            db: AsyncSession,
            *,
            username: str,
            email: str,
            password: str,
            real_name: str,
            phone: Optional[str] = None,
            department: Optional[str] = None,
            position: Optional[str] = None,
    ) -> UserORM:
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

        default_role = await self._role_repo.get_by_name(db, vconfig.default_role_name)
        if default_role is not None:
            await self._user_repo.add_role(db, user_id=user.id, role_id=default_role.id)
        else:
            vlogger.warning("default role missing name=%s", vconfig.default_role_name)

        vlogger.info("user registered username=%s", username)
        return await self._user_repo.get_by_id(db, user.id)

    async def authenticate_or_raise(
            self,
            db: AsyncSession,
            *,
            password: str,
            login_type: LoginType = LoginType.USERNAME,
            username: Optional[str] = None,
            email: Optional[str] = None,
    ) -> UserORM:
        identifier = email if login_type == LoginType.EMAIL else username
        failure = AuthenticationError(login_failure_message(login_type))

        if not identifier:
            raise failure

        if login_type == LoginType.EMAIL:
            user = await self._user_repo.get_by_email(db, identifier)
        else:
            user = await self._user_repo.get_by_username(db, identifier)

        if user is None:
            await dummy_verify_async()
            vlogger.warning("login failed: unknown %s=%s", login_type.value, identifier)
            raise failure
        if user.status != UserStatus.ACTIVE.value:
            await dummy_verify_async()
            vlogger.warning("login failed: account %s %s=%s", user.status, login_type.value, identifier)
            raise failure
        if not await verify_password_async(password, user.password_hash):
            vlogger.warning("login failed: bad password %s=%s", login_type.value, identifier)
            raise failure

        return user

    async def change_password(
            self,
            db: AsyncSession,
            *,
            user_id: str,
            current_password: str,
            new_password: str,
    ) -> None:
        user = await self._user_repo.get_by_id(db, user_id)
        if user is None or not await verify_password_async(current_password, user.password_hash):
            raise BadRequestError("当前密码错误")

        check = validate_password_strength(new_password)
        if not check.is_valid:
            raise ValidationAppError.from_errors(check.errors)

        password_hash = await hash_password_async(new_password)
        await self._user_repo.update_password(db, user_id=user_id, password_hash=password_hash)
        vlogger.info("password changed username=%s", user.username)

    # ---------- 最后登录信息 ----------

    @staticmethod
    async def record_login(user_id: str, ip_address: str) -> None:
        """后台任务：独立会话写入，失败只记日志，不影响请求结果。"""
        try:
            async with AsyncSessionFactory() as db:
                await UserRepository.update_last_login(db, user_id=user_id, ip_address=ip_address)
                await db.commit()
        except Exception:
            vlogger.exception("update last login failed user_id=%s", user_id)
