"""
FastAPI 应用主入口
"""
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI

from api.routers import alarm_definitions
from api.middleware.logging import LoggingMiddleware
from api.middleware.error_handler import register_exception_handlers
from api.schemas.response import success_response
from core.config import get_settings
from logging_config import setup_logging, get_logger

# 获取配置
settings = get_settings()

# 配置日志
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理

    启动时记录配置摘要；使用数据库时提前建立连接并建表。
    """
    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        config=settings.display_config(),
    )

    app.state.start_time = datetime.utcnow()

    if settings.database.enabled:
        from db import get_engine
        get_engine()

    logger.info("application_started")

    yield

    logger.info("application_stopped")


# 创建 FastAPI 应用
app = FastAPI(
    title=settings.app_name,
    description="Alarm Definition Service - 告警定义的解析、校验与生命周期管理",
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# ===== 中间件 =====

app.add_middleware(LoggingMiddleware)

# ===== 异常处理 =====

register_exception_handlers(app)


# ===== 路由 =====

API_PREFIX = settings.api_prefix


@app.get("/health")
async def health_check():
    """健康检查"""
    uptime = (datetime.utcnow() - app.state.start_time).total_seconds() if hasattr(app.state, "start_time") else 0

    return success_response(
        data={
            "status": "healthy",
            "version": settings.app_version,
            "uptime_seconds": round(uptime, 2),
            "environment": settings.environment,
        }
    )


app.include_router(
    alarm_definitions.router,
    prefix=f"{API_PREFIX}/alarm-definitions",
    tags=["Alarm Definitions"],
)


# ===== 开发模式入口 =====

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
