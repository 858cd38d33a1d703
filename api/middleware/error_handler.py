"""
全局错误处理

把核心错误类型映射为统一响应格式:
- ParseError / ValidationError -> 422
- NotFoundError -> 404
- ConflictError / InUseError -> 409
- 其他异常 -> 500
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from alarms.exceptions import (
    ConflictError,
    InUseError,
    NotFoundError,
    ParseError,
    ValidationError,
)
from api.schemas.response import error_response
from core.config import get_settings

logger = structlog.get_logger(__name__)


class ErrorCode:
    """错误码定义"""
    # 请求错误 (4xxxx)
    TENANT_MISSING = 40100
    DEFINITION_NOT_FOUND = 40401
    DEFINITION_CONFLICT = 40901
    DEFINITION_IN_USE = 40902
    EXPRESSION_SYNTAX = 42201
    VALIDATION_FAILED = 42202

    # 服务器错误 (50xxx)
    INTERNAL_ERROR = 50000


class TenantMissingError(Exception):
    """请求未携带租户标识"""
    def __init__(self):
        super().__init__("X-Tenant-Id header is required")


async def tenant_missing_handler(request: Request, exc: TenantMissingError):
    logger.warning("tenant_missing", path=request.url.path)
    return JSONResponse(
        status_code=401,
        content=error_response(
            message="缺少租户标识",
            code=ErrorCode.TENANT_MISSING,
            error_type="TenantMissingError",
            detail=str(exc),
        ),
    )


async def parse_error_handler(request: Request, exc: ParseError):
    logger.info("expression_parse_failed", path=request.url.path, position=exc.position)
    return JSONResponse(
        status_code=422,
        content=error_response(
            message="告警表达式语法错误",
            code=ErrorCode.EXPRESSION_SYNTAX,
            error_type="ParseError",
            detail=exc.message,
            field="expression",
            position=exc.position,
        ),
    )


async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info("alarm_definition_rejected", path=request.url.path, fields=exc.fields)
    return JSONResponse(
        status_code=422,
        content=error_response(
            message="告警定义校验失败",
            code=ErrorCode.VALIDATION_FAILED,
            error_type="ValidationError",
            detail=exc.message,
            field=exc.field,
            errors=[e.to_dict() for e in exc.errors],
        ),
    )


async def not_found_handler(request: Request, exc: NotFoundError):
    logger.info("alarm_definition_not_found", path=request.url.path, definition_id=exc.definition_id)
    return JSONResponse(
        status_code=404,
        content=error_response(
            message="告警定义未找到",
            code=ErrorCode.DEFINITION_NOT_FOUND,
            error_type="NotFoundError",
            detail=exc.message,
        ),
    )


async def conflict_handler(request: Request, exc: ConflictError):
    logger.warning("alarm_definition_conflict", path=request.url.path, definition_id=exc.definition_id)
    return JSONResponse(
        status_code=409,
        content=error_response(
            message="告警定义被并发修改，请重试",
            code=ErrorCode.DEFINITION_CONFLICT,
            error_type="ConflictError",
            detail=exc.message,
        ),
    )


async def in_use_handler(request: Request, exc: InUseError):
    logger.info("alarm_definition_in_use", path=request.url.path, definition_id=exc.definition_id)
    return JSONResponse(
        status_code=409,
        content=error_response(
            message="告警定义仍被活跃告警引用",
            code=ErrorCode.DEFINITION_IN_USE,
            error_type="InUseError",
            detail=exc.message,
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    """全局异常处理器"""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )
    settings = get_settings()
    return JSONResponse(
        status_code=500,
        content=error_response(
            message="内部服务器错误",
            code=ErrorCode.INTERNAL_ERROR,
            error_type="InternalError",
            detail=str(exc) if settings.debug else "发生未预期的错误，请联系管理员",
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """注册全部异常处理器"""
    app.add_exception_handler(TenantMissingError, tenant_missing_handler)
    app.add_exception_handler(ParseError, parse_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(ConflictError, conflict_handler)
    app.add_exception_handler(InUseError, in_use_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
