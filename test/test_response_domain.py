# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: 响应信封 / 分页元数据 / 请求级格式化器

from __future__ import annotations

import pytest
from pydantic import ValidationError

from domains.error_domain import ErrorType, ResponseCode
from domains.response_domain import ApiResponse, ErrorInfo, ResponseFormatter, create_pagination_meta


def test_pagination_middle_page() -> None:
    meta = create_pagination_meta(total=23, page=2, limit=10)
    assert (meta.total_pages, meta.has_next, meta.has_prev) == (3, True, True)


def test_pagination_single_page() -> None:
    meta = create_pagination_meta(total=5, page=1, limit=10)
    assert (meta.total_pages, meta.has_next, meta.has_prev) == (1, False, False)


def test_pagination_empty_and_invalid_limit() -> None:
    meta = create_pagination_meta(total=0, page=1, limit=10)
    assert (meta.total_pages, meta.has_next, meta.has_prev) == (0, False, False)
    with pytest.raises(ValueError):
        create_pagination_meta(total=1, page=1, limit=0)


def test_error_envelope_cannot_carry_data() -> None:
    with pytest.raises(ValidationError):
        ApiResponse(
            success=False,
            code=ResponseCode.BAD_REQUEST,
            message="x",
            data={"id": 1},
            error=ErrorInfo(type=ErrorType.VALIDATION),
        )
    with pytest.raises(ValidationError):
        ApiResponse(success=False, code=ResponseCode.BAD_REQUEST, message="x")


def test_success_envelope_shape() -> None:
    body = ResponseFormatter(request_id="rid-1", version="1.0.0").success({"a": 1}).to_content()

    assert body["success"] is True
    assert body["code"] == "SUCCESS"
    assert body["message"] == "操作成功"
    assert body["data"] == {"a": 1}
    assert "error" not in body
    assert body["meta"]["requestId"] == "rid-1"
    assert body["meta"]["version"] == "1.0.0"
    assert body["meta"]["timestamp"]


def test_paginated_envelope_uses_camel_case() -> None:
    meta = create_pagination_meta(total=23, page=2, limit=10)
    body = ResponseFormatter().paginated([1, 2], meta).to_content()

    assert body["data"] == [1, 2]
    assert body["meta"]["pagination"] == {
        "page": 2,
        "limit": 10,
        "total": 23,
        "totalPages": 3,
        "hasNext": True,
        "hasPrev": True,
    }


def test_error_strips_internals_outside_development() -> None:
    body = ResponseFormatter(development=False).error(
        "boom", details={"sql": "select 1"}, stack="Traceback ..."
    ).to_content()

    assert body["success"] is False
    assert "data" not in body
    assert body["error"] == {"type": "SYSTEM"}


def test_error_keeps_internals_in_development() -> None:
    body = ResponseFormatter(development=True).error(
        "boom", details={"sql": "select 1"}, stack="Traceback ..."
    ).to_content()

    assert body["error"]["details"] == {"sql": "select 1"}
    assert body["error"]["stack"] == "Traceback ..."


def test_validation_error_joins_messages() -> None:
    body = ResponseFormatter(development=True).validation_error(["a 必填", "b 过长"]).to_content()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["message"] == "数据验证失败: a 必填; b 过长"
    assert body["error"]["type"] == "VALIDATION"


def test_formatters_do_not_share_request_state() -> None:
    a = ResponseFormatter(request_id="a").success().to_content()
    b = ResponseFormatter(request_id="b").success().to_content()
    assert (a["meta"]["requestId"], b["meta"]["requestId"]) == ("a", "b")
