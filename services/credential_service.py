# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 密码哈希/校验、JWT 签发与校验、密码强度与随机密码

from __future__ import annotations

import asyncio
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWTError
from passlib.context import CryptContext
from pydantic import ValidationError

from domains.user_domain import PasswordCheck, TokenClaims
from infrastructures.vconfig import vconfig
from infrastructures.vlogger import get_logger

logger = get_logger("SmartLis.credential")

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128
RANDOM_PASSWORD_CHARSET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789!@#$%^&*"

_pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=vconfig.password_hash_rounds,
)


class TokenConfigurationError(RuntimeError):
    """JWT 密钥未配置：启动级错误，不是单个请求可恢复的错误。"""


def _secret_or_raise() -> str:
    secret = vconfig.jwt_secret_key
    if not secret:
        raise TokenConfigurationError("JWT_SECRET_KEY is not configured")
    return secret


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return _pwd_context.verify(plain_password, password_hash)
    except (ValueError, TypeError):
        logger.warning("password hash could not be identified")
        return False


# 哈希计算是 CPU 密集操作，放到线程里跑，避免阻塞事件循环
async def hash_password_async(password: str) -> str:
    return await asyncio.to_thread(hash_password, password)


async def verify_password_async(plain_password: str, password_hash: str) -> bool:
    return await asyncio.to_thread(verify_password, plain_password, password_hash)


async def dummy_verify_async() -> bool:
    """用户不存在或已停用时补一次等价耗时的校验。"""
    return await asyncio.to_thread(_pwd_context.dummy_verify)


def generate_token(claims: TokenClaims, expires_delta: Optional[timedelta] = None) -> str:
    secret = _secret_or_raise()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else timedelta(minutes=vconfig.jwt_expire_minutes))
    to_encode: Dict[str, Any] = {
        "userId": claims.user_id,
        "username": claims.username,
        "email": claims.email,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(to_encode, secret, algorithm=vconfig.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(
        token,
        _secret_or_raise(),
        algorithms=[vconfig.jwt_algorithm],
        options={"require": ["exp", "iat"]},
    )


def verify_token(token: str) -> Optional[TokenClaims]:
    try:
        payload = decode_token(token)
        return TokenClaims.model_validate(payload)
    except (PyJWTError, TokenConfigurationError, ValidationError) as exc:
        logger.warning("jwt verification failed: %s: %s", type(exc).__name__, exc)
        return None


def validate_password_strength(password: str) -> PasswordCheck:
    errors: list[str] = []

    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"密码长度至少{PASSWORD_MIN_LENGTH}位")
    if len(password) > PASSWORD_MAX_LENGTH:
        errors.append(f"密码长度不能超过{PASSWORD_MAX_LENGTH}位")
    if not re.search(r"[a-z]", password):
        errors.append("密码必须包含小写字母")
    if not re.search(r"[A-Z]", password):
        errors.append("密码必须包含大写字母")
    if not re.search(r"\d", password):
        errors.append("密码必须包含数字")

    return PasswordCheck(is_valid=not errors, errors=errors)


def generate_random_password(length: int = 12) -> str:
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(RANDOM_PASSWORD_CHARSET) for _ in range(length))
