"""
结构化日志配置

使用 structlog 实现结构化日志，事件名统一使用 snake_case，
上下文（tenant_id、definition_id、request_id 等）以键值对形式附加。

日志格式:
- 开发环境: 彩色控制台输出
- 生产环境: JSON 格式
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

import structlog
from structlog.typing import Processor

from core.config import get_settings

# 降低日志级别的第三方 logger
_NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "sqlalchemy.engine")


def _shared_processors() -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderers(log_format: str) -> List[Processor]:
    if log_format == "json":
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def setup_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    配置 structlog 日志系统

    Args:
        level: 日志级别 (DEBUG, INFO, WARNING, ERROR, CRITICAL)，默认取配置
        log_format: 日志格式 (json, console)，默认取配置
        log_file: 日志文件路径，默认取配置
    """
    settings = get_settings()

    level = (level or settings.logging.level).upper()
    log_format = log_format or settings.logging.format
    log_file = log_file or settings.logging.file_path

    structlog.configure(
        processors=_shared_processors() + _renderers(log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level),
    )

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=settings.logging.max_size_mb * 1024 * 1024,
            backupCount=settings.logging.backup_count,
        )
        file_handler.setLevel(getattr(logging, level))
        logging.getLogger().addHandler(file_handler)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    获取 logger 实例

    Args:
        name: logger 名称，通常使用 __name__
    """
    return structlog.get_logger(name)


def bind_request_context(request_id: str, tenant_id: Optional[str] = None) -> None:
    """
    重置并绑定请求级日志上下文

    同一请求内核心模块打出的日志会自动带上 request_id / tenant_id。
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    if tenant_id:
        structlog.contextvars.bind_contextvars(tenant_id=tenant_id)
