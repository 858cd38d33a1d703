"""
数据库连接配置

引擎与会话工厂按需创建，未启用数据库时不会建立任何连接。
"""
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from core.config import get_settings

# 声明基类
Base = declarative_base()

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """
    创建数据库引擎

    内存 SQLite 使用 StaticPool，保证所有会话共享同一个连接。
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)

    settings = get_settings()
    return create_engine(
        url,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
        pool_timeout=settings.database.pool_timeout,
        pool_pre_ping=True,  # 连接健康检查
        echo=echo,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def get_engine() -> Engine:
    """获取全局引擎（首次调用时创建并建表）"""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_db_engine(settings.database.url, echo=settings.debug)
        Base.metadata.create_all(_engine)
    return _engine


def get_session_factory() -> sessionmaker:
    """获取全局会话工厂"""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory
