"""
数据库 CRUD 操作模块
"""
from .alarm_definition import SqlAlarmDefinitionRepository

__all__ = [
    "SqlAlarmDefinitionRepository",
]
