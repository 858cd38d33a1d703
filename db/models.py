"""
数据库模型定义
"""
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Text, JSON,
    Index, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from .database import Base

# PostgreSQL 上使用 JSONB，其他数据库使用通用 JSON
JSONType = JSON().with_variant(JSONB(), "postgresql")


class AlarmDefinitionRecord(Base):
    """
    告警定义表

    normalized_expression 存储规范化表达式树的字典形式，
    expression 存储调用方提交的原始文本。
    """
    __tablename__ = "alarm_definitions"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(64), nullable=False, index=True)

    # 基本信息
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    severity = Column(String(16), nullable=False)

    # 表达式
    expression = Column(Text, nullable=False)
    normalized_text = Column(Text, nullable=False)
    normalized_expression = Column(JSONType, nullable=False)

    # 分组与通知
    match_by = Column(JSONType, nullable=False, default=list)
    actions_enabled = Column(Boolean, nullable=False, default=True)
    alarm_actions = Column(JSONType, nullable=False, default=list)
    ok_actions = Column(JSONType, nullable=False, default=list)
    undetermined_actions = Column(JSONType, nullable=False, default=list)

    # 乐观并发版本号
    version = Column(Integer, nullable=False, default=1)

    # 时间戳
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_alarm_definitions_tenant_name"),
        Index("ix_alarm_definitions_tenant_id_id", "tenant_id", "id"),
    )
