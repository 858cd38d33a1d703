"""
请求日志中间件

每个请求开始时重置 structlog 上下文并绑定 request_id 与租户标识。
"""
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from logging_config import bind_request_context

logger = structlog.get_logger(__name__)

TENANT_HEADER = "X-Tenant-Id"
REQUEST_ID_HEADER = "X-Request-ID"

# 探活请求只在 DEBUG 级别记录
_QUIET_PATHS = ("/health",)


class LoggingMiddleware(BaseHTTPMiddleware):
    """记录告警定义请求的方法、路径、状态码与处理时长"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or f"req_{uuid.uuid4().hex[:12]}"
        bind_request_context(request_id, request.headers.get(TENANT_HEADER))

        path = request.url.path
        log = logger.debug if path in _QUIET_PATHS else logger.info
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=path,
                error=str(e),
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                exc_info=True,
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        log(
            "request_completed",
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
