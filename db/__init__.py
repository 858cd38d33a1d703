# 数据库模块
from .database import Base, create_db_engine, create_session_factory, get_engine, get_session_factory
from .models import AlarmDefinitionRecord

__all__ = [
    "Base",
    "create_db_engine",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "AlarmDefinitionRecord",
]
