# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 健康检查（进程运行时长/内存/数据库与缓存连通性）

from __future__ import annotations

import asyncio
import resource
import sys
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from sqlalchemy.exc import SQLAlchemyError

from app.responses import ok
from domains.error_domain import ServiceUnavailableError
from infrastructures.cache.redis_gateway import RedisGateway
from infrastructures.db.orm.orm_base import ping_db
from infrastructures.vconfig import vconfig
from infrastructures.vlogger import vlogger

router = APIRouter(prefix="/api", tags=["system"])

_started_at = time.monotonic()


def _memory_mb() -> float:
    # Linux 上 ru_maxrss 单位是 KB，macOS 上是字节
    rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return round(rss / divisor, 2)


async def _database_ok() -> bool:
    try:
        return await ping_db()
    except (SQLAlchemyError, OSError) as exc:
        vlogger.warning("health: database unreachable: %s", exc)
        return False


async def _redis_ok() -> Optional[bool]:
    if not vconfig.redis_url:
        return None
    try:
        return await asyncio.to_thread(RedisGateway(vconfig.redis_url).ping)
    except (OSError, ValueError) as exc:
        vlogger.warning("health: redis unreachable: %s", exc)
        return False


@router.get("/health")
async def health_check(request: Request):
    database = await _database_ok()
    info: Dict[str, Any] = {
        "status": "ok" if database else "error",
        "environment": vconfig.app_env,
        "version": vconfig.app_version,
        "uptime": round(time.monotonic() - _started_at, 3),
        "memory": {"maxRssMb": _memory_mb()},
        "services": {"database": database, "redis": await _redis_ok()},
    }
    if not database:
        raise ServiceUnavailableError("服务不可用", details=info)
    return ok(request, info, "服务运行正常")
