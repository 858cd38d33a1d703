"""
FastAPI 依赖注入
"""
from typing import Optional

from fastapi import Header

from alarms import (
    AlarmDefinitionService,
    DefinitionValidator,
    InMemoryAlarmDefinitionRepository,
    LinkHydrator,
    RecordingAlarmStateUpdater,
    StaticActionRegistry,
    ValidationPolicy,
)
from alarms.repository import AlarmDefinitionRepository, AlarmStateUpdater
from api.middleware.error_handler import TenantMissingError
from core.config import get_settings


# 全局单例存储
_repository: Optional[AlarmDefinitionRepository] = None
_state_updater: Optional[AlarmStateUpdater] = None
_service: Optional[AlarmDefinitionService] = None


def get_tenant_id(x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-Id")) -> str:
    """
    从请求头获取租户 ID

    认证由上游网关完成，这里只负责提取。
    """
    if not x_tenant_id or not x_tenant_id.strip():
        raise TenantMissingError()
    return x_tenant_id.strip()


def get_repository() -> AlarmDefinitionRepository:
    """获取告警定义持久化实现"""
    global _repository

    if _repository is None:
        settings = get_settings()
        if settings.database.enabled:
            from db import get_session_factory
            from db.crud import SqlAlarmDefinitionRepository
            _repository = SqlAlarmDefinitionRepository(get_session_factory())
        else:
            # 未启用数据库时使用内存存储
            _repository = InMemoryAlarmDefinitionRepository()

    return _repository


def get_state_updater() -> AlarmStateUpdater:
    """获取告警状态协作者（记录并输出状态转换日志）"""
    global _state_updater

    if _state_updater is None:
        _state_updater = RecordingAlarmStateUpdater()

    return _state_updater


def get_definition_service() -> AlarmDefinitionService:
    """获取告警定义服务"""
    global _service

    if _service is None:
        settings = get_settings()
        policy = ValidationPolicy.from_settings(settings.alarm)
        registry = None
        if policy.strict_action_validation:
            registry = StaticActionRegistry(settings.alarm.known_action_list)
        _service = AlarmDefinitionService(
            repository=get_repository(),
            validator=DefinitionValidator(policy, action_registry=registry),
            alarm_state_updater=get_state_updater(),
        )

    return _service


def get_link_hydrator() -> LinkHydrator:
    """获取链接注入器"""
    settings = get_settings()
    return LinkHydrator(settings.base_url, settings.api_prefix)
