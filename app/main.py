# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: FastAPI 应用入口

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import RedirectResponse

from app.error_handlers import register_exception_handlers
from app.routers import auth_router, permission_router, role_router, system_router, user_router
from infrastructures.db.orm.orm_base import AsyncSessionFactory, close_db_engine, init_db
from infrastructures.vconfig import vconfig
from infrastructures.vlogger import RequestContextMiddleware, init_logging, vlogger
from services.credential_service import TokenConfigurationError
from services.permission_service import audit_route_permissions
from services.rbac_seed_service import seed_rbac


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_logging(vconfig.log_level)

    # 0) 签名密钥缺失属于启动级错误
    if not vconfig.jwt_secret_key:
        raise TokenConfigurationError("JWT_SECRET_KEY is not configured")

    # 1) 建表
    await init_db()
    vlogger.info("database schema ensured")

    # 2) 权限目录 / 系统角色 / 默认 admin
    async with AsyncSessionFactory() as db:
        await seed_rbac(db)
    vlogger.info("rbac seed ensured")

    try:
        yield
    finally:
        await close_db_engine()
        vlogger.info("application shutdown")


def create_app() -> FastAPI:
    app = FastAPI(
        title="SmartLis API",
        version=vconfig.app_version,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # ---------- Global error handler ----------
    register_exception_handlers(app)

    # ---------- Request context ----------
    app.add_middleware(RequestContextMiddleware)

    # ---------- CORS ----------
    cors = vconfig.cors_origins.strip()
    if cors == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in cors.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=cors != "*",
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[vconfig.request_id_header],
    )

    app.include_router(system_router.router)
    app.include_router(auth_router.router)
    app.include_router(user_router.router)
    app.include_router(role_router.router)
    app.include_router(permission_router.router)

    @app.get("/", include_in_schema=False)
    async def index():
        return RedirectResponse(url="/api/docs", status_code=302)

    # 路由与权限映射表的一致性检查；默认拒绝模式下有问题直接拒绝启动
    audit_route_permissions(app, strict=vconfig.permission_default_deny)

    return app


app = create_app()
