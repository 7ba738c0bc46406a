# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 业务异常（统一 code / http_status / error_type）
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from starlette import status


class ResponseCode(str, Enum):
    SUCCESS = "SUCCESS"
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"

    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    DATABASE_ERROR = "DATABASE_ERROR"


class ErrorType(str, Enum):
    VALIDATION = "VALIDATION"
    AUTHENTICATION = "AUTHENTICATION"
    AUTHORIZATION = "AUTHORIZATION"
    BUSINESS = "BUSINESS"
    SYSTEM = "SYSTEM"
    NETWORK = "NETWORK"
    DATABASE = "DATABASE"


class AppError(Exception):
    def __init__(
            self,
            code: ResponseCode,
            message: str,
            http_status: int = status.HTTP_400_BAD_REQUEST,
            error_type: ErrorType = ErrorType.BUSINESS,
            details: Any | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.error_type = error_type
        self.details = details
        super().__init__(message)


class BadRequestError(AppError):
    def __init__(self, message: str = "请求参数错误", details: Any | None = None):
        super().__init__(
            code=ResponseCode.BAD_REQUEST,
            message=message,
            http_status=status.HTTP_400_BAD_REQUEST,
            error_type=ErrorType.VALIDATION,
            details=details,
        )


class ValidationAppError(AppError):
    def __init__(self, message: str = "数据验证失败", details: Any | None = None):
        super().__init__(
            code=ResponseCode.VALIDATION_ERROR,
            message=message,
            http_status=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_type=ErrorType.VALIDATION,
            details=details,
        )

    @classmethod
    def from_errors(cls, errors: list[str], message: Optional[str] = None) -> "ValidationAppError":
        return cls(message=message or f"数据验证失败: {'; '.join(errors)}", details={"errors": list(errors)})


class AuthenticationError(AppError):
    def __init__(self, message: str = "身份认证失败", details: Any | None = None):
        super().__init__(
            code=ResponseCode.UNAUTHORIZED,
            message=message,
            http_status=status.HTTP_401_UNAUTHORIZED,
            error_type=ErrorType.AUTHENTICATION,
            details=details,
        )


class PermissionDeniedError(AppError):
    def __init__(self, message: str = "权限不足", details: Any | None = None):
        super().__init__(
            code=ResponseCode.FORBIDDEN,
            message=message,
            http_status=status.HTTP_403_FORBIDDEN,
            error_type=ErrorType.AUTHORIZATION,
            details=details,
        )


class NotFoundError(AppError):
    def __init__(self, message: str = "资源未找到", details: Any | None = None):
        super().__init__(
            code=ResponseCode.NOT_FOUND,
            message=message,
            http_status=status.HTTP_404_NOT_FOUND,
            details=details,
        )


class ConflictError(AppError):
    def __init__(self, message: str = "资源冲突", details: Any | None = None):
        super().__init__(
            code=ResponseCode.CONFLICT,
            message=message,
            http_status=status.HTTP_409_CONFLICT,
            details=details,
        )


class DatabaseError(AppError):
    def __init__(self, message: str = "数据库操作失败", details: Any | None = None):
        super().__init__(
            code=ResponseCode.DATABASE_ERROR,
            message=message,
            http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_type=ErrorType.DATABASE,
            details=details,
        )


class ServiceUnavailableError(AppError):
    def __init__(self, message: str = "服务暂时不可用", details: Any | None = None):
        super().__init__(
            code=ResponseCode.SERVICE_UNAVAILABLE,
            message=message,
            http_status=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_type=ErrorType.SYSTEM,
            details=details,
        )
