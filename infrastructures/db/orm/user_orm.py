# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 用户/角色/权限表（认证与权限）

from __future__ import annotations

from typing import List

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from infrastructures.db.orm.orm_base import Base, TimestampMixin, UUIDPrimaryKeyMixin, new_uuid, now_ts


class UserORM(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, comment="用户名")
    email: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, comment="邮箱")
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False, comment="密码哈希")

    real_name: Mapped[str] = mapped_column(String(100), nullable=False, default="", comment="真实姓名")
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True, comment="手机号")
    department: Mapped[str | None] = mapped_column(String(100), nullable=True, comment="部门")
    position: Mapped[str | None] = mapped_column(String(100), nullable=True, comment="职位")

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active", comment="状态：active/inactive/locked"
    )
    last_login_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True, comment="最后登录时间(秒)")
    last_login_ip: Mapped[str | None] = mapped_column(String(64), nullable=True, comment="最后登录IP")

    roles: Mapped[List["RoleORM"]] = relationship(
        "RoleORM",
        secondary="user_roles",
        viewonly=True,
        lazy="raise",
    )

    __table_args__ = (
        Index("ix_users_status", "status"),
    )


class RoleORM(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, comment="角色名称（英文）")
    display_name: Mapped[str] = mapped_column(String(100), nullable=False, comment="角色显示名称")
    description: Mapped[str | None] = mapped_column(Text, nullable=True, comment="描述")
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, comment="是否系统角色")
    status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, comment="启用/禁用")

    permissions: Mapped[List["PermissionORM"]] = relationship(
        "PermissionORM",
        secondary="role_permissions",
        viewonly=True,
        lazy="raise",
    )

    __table_args__ = (
        Index("ix_roles_status", "status"),
    )


class PermissionORM(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "permissions"

    code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, comment="权限编码 module.action")
    name: Mapped[str] = mapped_column(String(100), nullable=False, comment="权限名称")
    module: Mapped[str] = mapped_column(String(50), nullable=False, comment="所属模块")
    description: Mapped[str | None] = mapped_column(Text, nullable=True, comment="描述")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, comment="排序")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, comment="是否启用")

    __table_args__ = (
        Index("ix_permissions_module", "module"),
    )


class UserRoleORM(Base):
    __tablename__ = "user_roles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role_id: Mapped[str] = mapped_column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ts)

    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )


class RolePermissionORM(Base):
    __tablename__ = "role_permissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    role_id: Mapped[str] = mapped_column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    permission_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ts)

    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )
