# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 全局异常处理：所有错误统一翻译成响应信封

from __future__ import annotations

import traceback
from typing import Any, List

import jwt
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.responses import error_response, formatter_for
from domains.error_domain import AppError, DatabaseError, ErrorType, ResponseCode
from infrastructures.vconfig import vconfig
from infrastructures.vlogger import vlogger

DUPLICATE_VALUE_MESSAGE = "重复的字段值，请使用其他值"
INTERNAL_ERROR_MESSAGE = "服务器内部错误"

_HTTP_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: (ResponseCode.BAD_REQUEST, ErrorType.VALIDATION),
    status.HTTP_401_UNAUTHORIZED: (ResponseCode.UNAUTHORIZED, ErrorType.AUTHENTICATION),
    status.HTTP_403_FORBIDDEN: (ResponseCode.FORBIDDEN, ErrorType.AUTHORIZATION),
    status.HTTP_404_NOT_FOUND: (ResponseCode.NOT_FOUND, ErrorType.BUSINESS),
    status.HTTP_409_CONFLICT: (ResponseCode.CONFLICT, ErrorType.BUSINESS),
    status.HTTP_422_UNPROCESSABLE_ENTITY: (ResponseCode.VALIDATION_ERROR, ErrorType.VALIDATION),
    status.HTTP_503_SERVICE_UNAVAILABLE: (ResponseCode.SERVICE_UNAVAILABLE, ErrorType.SYSTEM),
}


def _validation_messages(errors: List[dict]) -> List[str]:
    messages = []
    for e in errors:
        loc = [str(x) for x in e.get("loc", ()) if x not in ("body", "query", "path", "header")]
        msg = e.get("msg", "")
        messages.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return messages


def _is_unique_violation(exc: IntegrityError) -> bool:
    text = str(getattr(exc, "orig", exc)).lower()
    return "unique" in text or "duplicate" in text


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return error_response(
            request,
            exc.message,
            status_code=exc.http_status,
            code=exc.code,
            error_type=exc.error_type,
            details=exc.details,
        )

    @app.exception_handler(jwt.ExpiredSignatureError)
    async def expired_token_handler(request: Request, _exc: jwt.ExpiredSignatureError) -> JSONResponse:
        return error_response(
            request,
            "访问令牌已过期",
            status_code=status.HTTP_401_UNAUTHORIZED,
            code=ResponseCode.UNAUTHORIZED,
            error_type=ErrorType.AUTHENTICATION,
        )

    @app.exception_handler(jwt.InvalidTokenError)
    async def invalid_token_handler(request: Request, _exc: jwt.InvalidTokenError) -> JSONResponse:
        return error_response(
            request,
            "无效的访问令牌",
            status_code=status.HTTP_401_UNAUTHORIZED,
            code=ResponseCode.UNAUTHORIZED,
            error_type=ErrorType.AUTHENTICATION,
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        message = DUPLICATE_VALUE_MESSAGE if _is_unique_violation(exc) else "数据完整性约束冲突"
        return error_response(
            request,
            message,
            status_code=status.HTTP_400_BAD_REQUEST,
            code=ResponseCode.BAD_REQUEST,
            error_type=ErrorType.DATABASE,
            details={"error": str(getattr(exc, "orig", exc))},
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        vlogger.error("database error %s %s", request.method, request.url.path, exc_info=exc)
        err = DatabaseError(details={"error": str(exc)})
        return error_response(
            request,
            err.message,
            status_code=err.http_status,
            code=err.code,
            error_type=err.error_type,
            details=err.details,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        body = formatter_for(request).validation_error(_validation_messages(exc.errors()))
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.to_content())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            message = f"路由 {request.method} {request.url.path} 未找到"
        else:
            # exc.detail 可能是 str/dict/list
            message = exc.detail if isinstance(exc.detail, str) else "请求失败"

        default = (ResponseCode.INTERNAL_ERROR, ErrorType.SYSTEM) if exc.status_code >= 500 \
            else (ResponseCode.BAD_REQUEST, ErrorType.BUSINESS)
        code, error_type = _HTTP_STATUS_CODES.get(exc.status_code, default)
        return error_response(
            request,
            message,
            status_code=exc.status_code,
            code=code,
            error_type=error_type,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        vlogger.error("unhandled exception %s %s", request.method, request.url.path, exc_info=exc)

        details: Any = None
        stack = None
        message = INTERNAL_ERROR_MESSAGE
        if vconfig.is_development:
            message = str(exc) or type(exc).__name__
            details = {"exception": type(exc).__name__}
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

        return error_response(
            request,
            message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code=ResponseCode.INTERNAL_ERROR,
            error_type=ErrorType.SYSTEM,
            details=details,
            stack=stack,
        )
