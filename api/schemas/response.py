"""
统一响应格式
"""
from pydantic import BaseModel, Field
from typing import TypeVar, Generic, Optional, Any, List, Dict
from datetime import datetime
import uuid

T = TypeVar("T")


def _new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ErrorDetail(BaseModel):
    """错误详情"""
    type: str = Field(..., description="错误类型")
    detail: str = Field(..., description="错误详细说明")
    field: Optional[str] = Field(None, description="相关字段")
    errors: Optional[List[Dict[str, str]]] = Field(None, description="多字段校验错误")
    position: Optional[int] = Field(None, description="表达式出错位置")


class APIResponse(BaseModel, Generic[T]):
    """
    统一 API 响应格式

    成功响应:
    {
        "success": true,
        "code": 200,
        "message": "操作成功",
        "data": { ... },
        "timestamp": "2026-01-05T10:00:00Z",
        "request_id": "req_abc123"
    }

    错误响应:
    {
        "success": false,
        "code": 42201,
        "message": "告警定义校验失败",
        "error": {"type": "ValidationError", "errors": [{"field": "severity", "reason": "..."}]},
        ...
    }
    """
    success: bool = Field(..., description="请求是否成功")
    code: int = Field(..., description="响应码")
    message: str = Field(..., description="响应消息")
    data: Optional[T] = Field(None, description="响应数据")
    error: Optional[ErrorDetail] = Field(None, description="错误详情")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="响应时间")
    request_id: str = Field(default_factory=_new_request_id, description="请求 ID")


def _timestamp() -> str:
    return datetime.utcnow().isoformat() + "Z"


def success_response(
    data: Any = None,
    message: str = "操作成功",
    code: int = 200,
) -> dict:
    """构建成功响应"""
    return {
        "success": True,
        "code": code,
        "message": message,
        "data": data,
        "timestamp": _timestamp(),
        "request_id": _new_request_id(),
    }


def error_response(
    message: str,
    code: int,
    error_type: str = "Error",
    detail: str = "",
    field: Optional[str] = None,
    errors: Optional[List[Dict[str, str]]] = None,
    position: Optional[int] = None,
) -> dict:
    """构建错误响应"""
    error: Dict[str, Any] = {
        "type": error_type,
        "detail": detail,
        "field": field,
    }
    if errors is not None:
        error["errors"] = errors
    if position is not None:
        error["position"] = position
    return {
        "success": False,
        "code": code,
        "message": message,
        "error": error,
        "timestamp": _timestamp(),
        "request_id": _new_request_id(),
    }
