# API Pydantic 数据模型
from .response import APIResponse, ErrorDetail, success_response, error_response
from .alarm_definition import (
    AlarmDefinitionCreate,
    AlarmDefinitionUpdate,
    AlarmDefinitionResponse,
    AlarmDefinitionListResponse,
    Link,
)

__all__ = [
    "APIResponse",
    "ErrorDetail",
    "success_response",
    "error_response",
    "AlarmDefinitionCreate",
    "AlarmDefinitionUpdate",
    "AlarmDefinitionResponse",
    "AlarmDefinitionListResponse",
    "Link",
]
