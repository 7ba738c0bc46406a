# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 请求级数据库会话依赖：正常返回提交，异常回滚后继续上抛

from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from infrastructures.db.orm.orm_base import AsyncSessionFactory
from infrastructures.vlogger import get_logger

logger = get_logger("SmartLis.db")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionFactory() as db:
        try:
            yield db
        except Exception as exc:
            await db.rollback()
            # rid 由日志 record factory 注入
            logger.warning("db session rolled back on %s: %s", type(exc).__name__, exc)
            raise
        else:
            if db.in_transaction():
                await db.commit()
