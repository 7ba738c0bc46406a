# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: ORM基类与数据库初始化

from __future__ import annotations

import time
import uuid

from sqlalchemy import BigInteger, String, text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from infrastructures.vconfig import vconfig


def now_ts() -> int:
    return int(time.time())


def new_uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class UUIDPrimaryKeyMixin:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid, comment="主键UUID")


class TimestampMixin:
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ts, comment="创建时间(秒)")
    updated_at: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=now_ts, onupdate=now_ts, comment="更新时间(秒)"
    )


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _ensure_db_engine() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    global _engine, _session_factory
    if _engine is not None and _session_factory is not None:
        return _engine, _session_factory

    url = str(vconfig.db_url)
    kwargs = {"echo": bool(vconfig.sql_echo), "pool_pre_ping": True}
    if url.startswith("sqlite"):
        # 内存库必须共享同一连接，否则每个会话看到的是不同的库
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}

    _engine = create_async_engine(url, **kwargs)
    _session_factory = async_sessionmaker(
        bind=_engine,
        expire_on_commit=False,
        autoflush=False,
        class_=AsyncSession,
    )
    return _engine, _session_factory


class _LazyAsyncSessionFactory:
    def __call__(self, *args, **kwargs):
        _, factory = _ensure_db_engine()
        return factory(*args, **kwargs)


AsyncSessionFactory = _LazyAsyncSessionFactory()


async def init_db() -> None:
    from infrastructures.db.orm import user_orm  # noqa: F401

    engine, _ = _ensure_db_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ping_db() -> bool:
    engine, _ = _ensure_db_engine()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


async def close_db_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
