# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 权限目录、系统角色与默认管理员的启动初始化

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from infrastructures.db.repository.role_repository import RoleRepository
from infrastructures.db.repository.user_repository import UserRepository
from infrastructures.vconfig import VConfig, vconfig
from infrastructures.vlogger import vlogger
from services.credential_service import hash_password_async, validate_password_strength
from services.permission_service import all_permission_codes, module_of

PERMISSION_NAMES: Dict[str, str] = {
    "user.list": "用户列表",
    "user.create": "创建用户",
    "user.edit": "编辑用户",
    "user.delete": "删除用户",
    "role.list": "角色列表",
    "role.create": "创建角色",
    "role.edit": "编辑角色",
    "role.delete": "删除角色",
    "permission.config": "权限配置",
    "sample.list": "样本列表",
    "sample.create": "创建样本",
    "sample.edit": "编辑样本",
    "sample.delete": "删除样本",
    "sample.receive": "样本接收",
    "sample.storage": "样本出入库",
    "sample.destroy": "样本销毁",
    "routine.list": "普检实验列表",
    "routine.create": "创建检测项目",
    "routine.edit": "编辑检测项目",
    "routine.delete": "删除检测项目",
    "routine.data_entry": "普检数据录入",
    "routine.data_review": "普检数据审核",
    "routine.exception": "普检异常处理",
    "mass_spec.list": "质谱实验列表",
    "mass_spec.data_entry": "质谱数据录入",
    "mass_spec.data_review": "质谱数据审核",
    "mass_spec.qc": "质谱质控管理",
    "special.list": "特检实验列表",
    "special.wet_lab": "湿实验管理",
    "special.instrument": "上机管理",
    "special.analysis": "分析解读",
    "report.list": "报告列表",
    "report.edit": "报告编辑",
    "report.delete": "删除报告",
    "report.review": "报告审核",
    "report.template": "报告模板管理",
    "settings.basic": "基础配置",
    "settings.notification": "通知设置",
    "settings.log": "系统日志",
    "settings.import_export": "数据导入导出",
}


@dataclass(frozen=True)
class SystemRole:
    name: str
    display_name: str
    description: str
    grants: Callable[[str], bool]


_EXPERIMENT_PREFIXES = ("sample.", "routine.", "mass_spec.", "special.")

SYSTEM_ROLES: List[SystemRole] = [
    SystemRole("admin", "系统管理员", "系统管理员，拥有所有权限", lambda code: True),
    SystemRole(
        "lab_manager",
        "实验室主管",
        "实验室主管，负责实验室整体管理",
        lambda code: not code.startswith("settings."),
    ),
    SystemRole(
        "technician",
        "实验员",
        "实验员，负责具体实验操作",
        lambda code: code.startswith(_EXPERIMENT_PREFIXES) and not code.endswith(("_review", ".review")),
    ),
    SystemRole(
        "report_reviewer",
        "报告审核员",
        "报告审核员，负责报告审核",
        lambda code: code.startswith("report."),
    ),
]


async def ensure_permission_catalog(db: AsyncSession) -> Dict[str, str]:
    """补齐权限目录，返回 code -> permission_id。"""
    codes = all_permission_codes()
    existing = {p.code: p.id for p in await RoleRepository.get_permissions_by_codes(db, codes)}

    for order, code in enumerate(codes, start=1):
        if code in existing:
            continue
        perm = await RoleRepository.create_permission(
            db,
            code=code,
            name=PERMISSION_NAMES.get(code, code),
            module=module_of(code),
            sort_order=order,
        )
        existing[code] = perm.id
    return existing


async def ensure_system_roles(db: AsyncSession, permission_ids: Dict[str, str]) -> None:
    for system_role in SYSTEM_ROLES:
        role = await RoleRepository.get_by_name(db, system_role.name)
        if role is not None:
            continue
        role = await RoleRepository.create_role(
            db,
            name=system_role.name,
            display_name=system_role.display_name,
            description=system_role.description,
            is_system=True,
        )
        granted = [pid for code, pid in permission_ids.items() if system_role.grants(code)]
        await RoleRepository.set_permissions(db, role_id=role.id, permission_ids=granted)
        vlogger.info("system role created name=%s permissions=%d", system_role.name, len(granted))


async def ensure_default_admin(db: AsyncSession) -> None:
    password = vconfig.default_admin_password
    if not vconfig.is_development:
        if password == VConfig.model_fields["default_admin_password"].default:
            raise RuntimeError("DEFAULT_ADMIN_PASSWORD must be changed for non-development environments.")
        if not validate_password_strength(password).is_valid:
            raise RuntimeError("DEFAULT_ADMIN_PASSWORD is too weak for non-development environments.")

    existing = await UserRepository.get_by_username(db, vconfig.default_admin_username)
    if existing:
        return

    admin_role = await RoleRepository.get_by_name(db, "admin")
    user = await UserRepository.create_user(
        db,
        username=vconfig.default_admin_username,
        email=vconfig.default_admin_email,
        password_hash=await hash_password_async(password),
        real_name="系统管理员",
    )
    if admin_role is not None:
        await UserRepository.add_role(db, user_id=user.id, role_id=admin_role.id)

    vlogger.warning("default admin created username=%s (password not logged)", user.username)


async def seed_rbac(db: AsyncSession) -> None:
    permission_ids = await ensure_permission_catalog(db)
    await ensure_system_roles(db, permission_ids)
    await ensure_default_admin(db)
    await db.commit()
