# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 统一响应协议（成功/错误/分页）与按请求构造的格式化器

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import Field, model_validator

from domains.domain_base import ApiModel
from domains.error_domain import ErrorType, ResponseCode
from infrastructures.vlogger import get_logger

logger = get_logger("SmartLis.response")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PaginationMeta(ApiModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ResponseMeta(ApiModel):
    timestamp: str = Field(default_factory=utc_now_iso)
    request_id: Optional[str] = None
    version: Optional[str] = None
    pagination: Optional[PaginationMeta] = None


class ErrorInfo(ApiModel):
    type: ErrorType
    details: Optional[Any] = None
    stack: Optional[str] = None


class ApiResponse(ApiModel):
    success: bool
    code: ResponseCode
    message: str
    data: Optional[Any] = None
    error: Optional[ErrorInfo] = None
    meta: ResponseMeta = Field(default_factory=ResponseMeta)

    @model_validator(mode="after")
    def _validate_envelope(self) -> "ApiResponse":
        if not self.success:
            if self.data is not None:
                raise ValueError("error response must not carry data")
            if self.error is None:
                raise ValueError("error response requires error info")
        return self

    def to_content(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def create_pagination_meta(*, total: int, page: int, limit: int) -> PaginationMeta:
    if limit <= 0:
        raise ValueError("limit must be positive")
    total_pages = math.ceil(total / limit)
    return PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


class ResponseFormatter:
    """
    请求级格式化器：request_id / version / 环境在构造时确定，不跨请求共享。
    """

    def __init__(self, *, request_id: Optional[str] = None, version: Optional[str] = None,
                 development: bool = False) -> None:
        self.request_id = request_id
        self.version = version
        self.development = development

    @classmethod
    def from_request(cls, request: Any) -> "ResponseFormatter":
        from infrastructures.vconfig import vconfig
        from infrastructures.vlogger import get_request_id

        rid = getattr(request.state, "request_id", None) or get_request_id()
        return cls(request_id=rid, version=vconfig.app_version, development=vconfig.is_development)

    def _meta(self, pagination: Optional[PaginationMeta] = None) -> ResponseMeta:
        rid = self.request_id if self.request_id and self.request_id != "-" else None
        return ResponseMeta(request_id=rid, version=self.version, pagination=pagination)

    def success(
            self,
            data: Any = None,
            message: str = "操作成功",
            code: ResponseCode = ResponseCode.SUCCESS,
    ) -> ApiResponse:
        return ApiResponse(
            success=True,
            code=code,
            message=message,
            data=jsonable_encoder(data),
            meta=self._meta(),
        )

    def paginated(
            self,
            items: List[Any],
            pagination: PaginationMeta,
            message: str = "查询成功",
    ) -> ApiResponse:
        return ApiResponse(
            success=True,
            code=ResponseCode.SUCCESS,
            message=message,
            data=jsonable_encoder(list(items)),
            meta=self._meta(pagination),
        )

    def error(
            self,
            message: str,
            code: ResponseCode = ResponseCode.INTERNAL_ERROR,
            error_type: ErrorType = ErrorType.SYSTEM,
            details: Any = None,
            stack: Optional[str] = None,
            *,
            http_status: int = 500,
    ) -> ApiResponse:
        log = logger.error if http_status >= 500 else logger.warning
        log(
            "api error status=%s code=%s type=%s message=%s details=%s",
            http_status,
            code.value,
            error_type.value,
            message,
            details,
        )

        # 非开发环境不向客户端暴露内部细节
        return ApiResponse(
            success=False,
            code=code,
            message=message,
            error=ErrorInfo(
                type=error_type,
                details=jsonable_encoder(details) if self.development else None,
                stack=stack if self.development else None,
            ),
            meta=self._meta(),
        )

    def validation_error(self, errors: List[str], message: Optional[str] = None) -> ApiResponse:
        return self.error(
            message or f"数据验证失败: {'; '.join(errors)}",
            ResponseCode.VALIDATION_ERROR,
            ErrorType.VALIDATION,
            {"errors": list(errors)},
            http_status=400,
        )
