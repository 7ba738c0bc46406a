# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: DomainModel 基类（统一配置与序列化）

from __future__ import annotations

from typing import Dict, Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    def to_dict(self, *, exclude_none: bool = False) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=exclude_none)


class ApiModel(DomainModel):
    """前端约定 camelCase 字段；入参同时接受 snake_case。"""

    model_config = ConfigDict(
        from_attributes=True,
        protected_namespaces=(),
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self, *, exclude_none: bool = False) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=exclude_none)
