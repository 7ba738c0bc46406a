# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 项目配置（.env / 环境变量）
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


class VConfig(BaseSettings):
    """Project configuration loaded from .env."""

    model_config = SettingsConfigDict(
        env_file=str(_project_root() / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ---------- App & Logging ----------
    app_env: str = Field("development", validation_alias="APP_ENV")
    app_version: str = Field("1.0.0", validation_alias="APP_VERSION")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    log_requests: bool = Field(True, validation_alias="LOG_REQUESTS")
    request_id_header: str = Field("X-Request-ID", validation_alias="REQUEST_ID_HEADER")
    generate_request_id: bool = Field(True, validation_alias="GENERATE_REQUEST_ID")

    cors_origins: str = Field("http://localhost:5000", validation_alias="CORS_ORIGINS")
    # 仅在可信反向代理之后开启，才读取 X-Forwarded-For
    trust_proxy_headers: bool = Field(False, validation_alias="TRUST_PROXY_HEADERS")

    # ---------- Database ----------
    db_url: str = Field(..., validation_alias="DB_URL")
    sql_echo: bool = Field(False, validation_alias="SQL_ECHO")

    # ---------- Cache (optional) ----------
    redis_url: str = Field("", validation_alias="REDIS_URL")

    # ---------- Auth/JWT ----------
    jwt_secret_key: Optional[str] = Field(None, validation_alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", validation_alias="JWT_ALGORITHM")
    jwt_expire_minutes: int = Field(7 * 24 * 60, validation_alias="JWT_EXPIRE_MINUTES", ge=1)

    password_hash_rounds: int = Field(390000, validation_alias="PASSWORD_HASH_ROUNDS", ge=1000)

    # ---------- RBAC ----------
    permission_default_deny: bool = Field(False, validation_alias="PERMISSION_DEFAULT_DENY")
    default_role_name: str = Field("technician", validation_alias="DEFAULT_ROLE_NAME")

    default_admin_username: str = Field("admin", validation_alias="DEFAULT_ADMIN_USERNAME")
    default_admin_email: str = Field("admin@smartlis.com", validation_alias="DEFAULT_ADMIN_EMAIL")
    default_admin_password: str = Field("Admin123", validation_alias="DEFAULT_ADMIN_PASSWORD")

    @field_validator("jwt_secret_key", mode="before")
    @classmethod
    def _normalize_secret(cls, v):
        # "" -> None，空串视为未配置
        if v is None:
            return None
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("app_env", mode="before")
    @classmethod
    def _normalize_env(cls, v):
        if v is None:
            return "development"
        return str(v).strip().lower() or "development"

    @property
    def is_development(self) -> bool:
        return self.app_env in ("dev", "development")

    @property
    def jwt_expires_in(self) -> str:
        # 与前端约定的可读格式：7d / 12h / 30m
        minutes = int(self.jwt_expire_minutes)
        if minutes % (24 * 60) == 0:
            return f"{minutes // (24 * 60)}d"
        if minutes % 60 == 0:
            return f"{minutes // 60}h"
        return f"{minutes}m"


@lru_cache(maxsize=1)
def get_config() -> VConfig:
    return VConfig()


vconfig = get_config()
