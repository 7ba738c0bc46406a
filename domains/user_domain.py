# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 用户/角色/权限领域模型与令牌载荷
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import Field

from domains.domain_base import ApiModel


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"  # 停用
    LOCKED = "locked"  # 锁定


class LoginType(str, Enum):
    USERNAME = "username"
    EMAIL = "email"


class TokenClaims(ApiModel):
    """JWT 载荷：userId / username / email / iat / exp。"""

    user_id: str
    username: str
    email: str
    iat: Optional[int] = None
    exp: Optional[int] = None


class PasswordCheck(ApiModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class CurrentUser(ApiModel):
    """鉴权通过后挂到 request.state.user 上的身份信息。"""

    id: str
    username: str
    email: str
    real_name: str = ""
    roles: List[str] = Field(default_factory=list)
    permissions: List[str] = Field(default_factory=list)

    def has_any_role(self, roles: List[str]) -> bool:
        return any(r in self.roles for r in roles)

    def has_permission(self, code: str) -> bool:
        return code in self.permissions


class RoleBrief(ApiModel):
    id: str
    name: str
    display_name: str


class UserOut(ApiModel):
    id: str
    username: str
    email: str
    real_name: str = ""
    phone: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    status: UserStatus
    last_login_at: Optional[int] = None
    last_login_ip: Optional[str] = None
    created_at: int
    updated_at: int
    roles: List[RoleBrief] = Field(default_factory=list)


class ProfileOut(ApiModel):
    id: str
    username: str
    email: str
    real_name: str = ""
    phone: str = ""
    department: str = ""
    position: str = ""
    avatar: str = ""
    roles: List[str] = Field(default_factory=list)
    permissions: List[str] = Field(default_factory=list)
    created_at: int
    updated_at: int


class PermissionOut(ApiModel):
    id: str
    code: str
    name: str
    module: str
    description: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True


class RoleOut(ApiModel):
    id: str
    name: str
    display_name: str
    description: Optional[str] = None
    is_system: bool = False
    status: bool = True
    created_at: int
    updated_at: int
    permissions: List[str] = Field(default_factory=list)
