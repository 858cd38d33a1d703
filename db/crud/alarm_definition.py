"""
告警定义 CRUD 操作

实现 alarms.repository.AlarmDefinitionRepository 接口:
- 所有查询都带 tenant_id 条件
- 更新使用 UPDATE ... WHERE id = ? AND version = ?，影响行数为 0 即视为并发冲突
"""
from dataclasses import replace
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
import structlog

from alarms.exceptions import ConflictError, NotFoundError
from alarms.expression import expression_from_dict, expression_to_dict
from alarms.models import AlarmDefinition, AlarmSeverity
from alarms.repository import matches_dimensions
from db.models import AlarmDefinitionRecord

logger = structlog.get_logger(__name__)


def _to_entity(record: AlarmDefinitionRecord) -> AlarmDefinition:
    return AlarmDefinition(
        id=record.id,
        tenant_id=record.tenant_id,
        name=record.name,
        description=record.description or "",
        severity=AlarmSeverity(record.severity),
        expression=record.expression,
        normalized_expression=expression_from_dict(record.normalized_expression),
        normalized_text=record.normalized_text,
        match_by=list(record.match_by or []),
        actions_enabled=record.actions_enabled,
        alarm_actions=list(record.alarm_actions or []),
        ok_actions=list(record.ok_actions or []),
        undetermined_actions=list(record.undetermined_actions or []),
        version=record.version,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _column_values(definition: AlarmDefinition) -> Dict[str, Any]:
    """可变字段的列值"""
    return {
        "name": definition.name,
        "description": definition.description,
        "severity": definition.severity.value,
        "expression": definition.expression,
        "normalized_text": definition.normalized_text,
        "normalized_expression": expression_to_dict(definition.normalized_expression),
        "match_by": list(definition.match_by),
        "actions_enabled": definition.actions_enabled,
        "alarm_actions": list(definition.alarm_actions),
        "ok_actions": list(definition.ok_actions),
        "undetermined_actions": list(definition.undetermined_actions),
        "updated_at": definition.updated_at,
    }


class SqlAlarmDefinitionRepository:
    """基于 SQLAlchemy 的告警定义持久化"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    def find_by_id(self, tenant_id: str, definition_id: str) -> Optional[AlarmDefinition]:
        """根据 ID 获取定义（限定租户）"""
        with self._session() as db:
            record = db.query(AlarmDefinitionRecord).filter(
                AlarmDefinitionRecord.id == definition_id,
                AlarmDefinitionRecord.tenant_id == tenant_id,
            ).first()
            return _to_entity(record) if record else None

    def find_by_name(self, tenant_id: str, name: str) -> Optional[AlarmDefinition]:
        with self._session() as db:
            record = db.query(AlarmDefinitionRecord).filter(
                AlarmDefinitionRecord.tenant_id == tenant_id,
                AlarmDefinitionRecord.name == name,
            ).first()
            return _to_entity(record) if record else None

    def find(
        self,
        tenant_id: str,
        name: Optional[str] = None,
        dimensions: Optional[Dict[str, str]] = None,
    ) -> List[AlarmDefinition]:
        """
        列出租户的定义

        维度过滤在加载后进行（表达式树以 JSON 存储）。
        """
        with self._session() as db:
            query = db.query(AlarmDefinitionRecord).filter(
                AlarmDefinitionRecord.tenant_id == tenant_id
            )
            if name is not None:
                query = query.filter(AlarmDefinitionRecord.name == name)
            records = query.order_by(AlarmDefinitionRecord.id).all()
            definitions = [_to_entity(r) for r in records]
        return [d for d in definitions if matches_dimensions(d, dimensions)]

    def save(self, definition: AlarmDefinition, expected_version: Optional[int] = None) -> AlarmDefinition:
        """
        新建或按版本号更新

        Raises:
            ConflictError: 版本不一致、记录已存在或名称唯一约束冲突
        """
        with self._session() as db:
            if expected_version is None:
                record = AlarmDefinitionRecord(
                    id=definition.id,
                    tenant_id=definition.tenant_id,
                    version=1,
                    created_at=definition.created_at,
                    **_column_values(definition),
                )
                db.add(record)
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    logger.warning("alarm_definition_insert_conflict", definition_id=definition.id)
                    raise ConflictError(definition.id) from None
                return replace(definition, version=1)

            stmt = (
                update(AlarmDefinitionRecord)
                .where(
                    AlarmDefinitionRecord.id == definition.id,
                    AlarmDefinitionRecord.tenant_id == definition.tenant_id,
                    AlarmDefinitionRecord.version == expected_version,
                )
                .values(version=expected_version + 1, **_column_values(definition))
            )
            try:
                result = db.execute(stmt)
            except IntegrityError:
                db.rollback()
                logger.warning("alarm_definition_update_conflict", definition_id=definition.id)
                raise ConflictError(definition.id) from None

            if result.rowcount == 0:
                db.rollback()
                logger.warning(
                    "alarm_definition_version_mismatch",
                    definition_id=definition.id,
                    expected_version=expected_version,
                )
                raise ConflictError(definition.id)

            db.commit()
            return replace(definition, version=expected_version + 1)

    def delete(self, tenant_id: str, definition_id: str) -> None:
        with self._session() as db:
            record = db.query(AlarmDefinitionRecord).filter(
                AlarmDefinitionRecord.id == definition_id,
                AlarmDefinitionRecord.tenant_id == tenant_id,
            ).first()
            if record is None:
                raise NotFoundError(definition_id)
            db.delete(record)
            db.commit()
