# API 中间件
from .logging import LoggingMiddleware
from .error_handler import ErrorCode, TenantMissingError, register_exception_handlers

__all__ = [
    "LoggingMiddleware",
    "ErrorCode",
    "TenantMissingError",
    "register_exception_handlers",
]
