# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 路由层的统一响应构造（按当前请求生成格式化器）

from __future__ import annotations

from typing import Any, List, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette import status

from domains.error_domain import ErrorType, ResponseCode
from domains.response_domain import ResponseFormatter, create_pagination_meta
from infrastructures.vconfig import vconfig


def formatter_for(request: Request) -> ResponseFormatter:
    return ResponseFormatter.from_request(request)


def ok(
        request: Request,
        data: Any = None,
        message: str = "操作成功",
        *,
        code: ResponseCode = ResponseCode.SUCCESS,
        status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    body = formatter_for(request).success(data, message, code)
    return JSONResponse(status_code=status_code, content=body.to_content())


def created(request: Request, data: Any = None, message: str = "创建成功") -> JSONResponse:
    return ok(request, data, message, code=ResponseCode.CREATED, status_code=status.HTTP_201_CREATED)


def no_content(request: Request, message: str = "删除成功") -> JSONResponse:
    # 204 不允许带响应体，删除类接口仍返回 200 + 信封，前端需要 message
    return ok(request, None, message, code=ResponseCode.DELETED)


def paginated(
        request: Request,
        items: List[Any],
        *,
        total: int,
        page: int,
        limit: int,
        message: str = "查询成功",
) -> JSONResponse:
    meta = create_pagination_meta(total=total, page=page, limit=limit)
    body = formatter_for(request).paginated(items, meta, message)
    return JSONResponse(status_code=status.HTTP_200_OK, content=body.to_content())


def error_response(
        request: Request,
        message: str,
        *,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        code: ResponseCode = ResponseCode.INTERNAL_ERROR,
        error_type: ErrorType = ErrorType.SYSTEM,
        details: Any = None,
        stack: Optional[str] = None,
        headers: Optional[dict] = None,
) -> JSONResponse:
    body = formatter_for(request).error(message, code, error_type, details, stack, http_status=status_code)

    # 500 由最外层 ServerErrorMiddleware 输出，不经过请求上下文中间件，这里补上请求 ID
    headers = dict(headers or {})
    rid = getattr(request.state, "request_id", None)
    if rid and rid != "-":
        headers.setdefault(vconfig.request_id_header, rid)
    return JSONResponse(status_code=status_code, content=body.to_content(), headers=headers)
