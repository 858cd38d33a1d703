"""
外部协作者接口

- AlarmDefinitionRepository: 持久化（需提供按 id 的乐观并发语义）
- ActionRegistry: 校验动作 ID 是否存在（严格模式）
- AlarmStateUpdater: 转发 patch 中的一次性告警状态转换
- AlarmInstanceLookup: 查询定义是否仍被活跃告警引用

另提供内存实现，供测试及未配置数据库时使用。
"""
import copy
import threading
from typing import Dict, Iterable, List, Optional, Protocol, Set, Tuple

import structlog

from .exceptions import ConflictError, NotFoundError
from .expression import iter_sub_expressions
from .models import AlarmDefinition, AlarmState

logger = structlog.get_logger(__name__)


class AlarmDefinitionRepository(Protocol):
    """告警定义持久化接口"""

    def find_by_id(self, tenant_id: str, definition_id: str) -> Optional[AlarmDefinition]:
        """按 id 查找；不存在或属于其他租户时返回 None"""
        ...

    def find_by_name(self, tenant_id: str, name: str) -> Optional[AlarmDefinition]:
        ...

    def find(
        self,
        tenant_id: str,
        name: Optional[str] = None,
        dimensions: Optional[Dict[str, str]] = None,
    ) -> List[AlarmDefinition]:
        ...

    def save(self, definition: AlarmDefinition, expected_version: Optional[int] = None) -> AlarmDefinition:
        """
        保存定义

        expected_version 为 None 表示新建；否则仅当存储中的版本一致时才覆盖，
        不一致时抛出 ConflictError。返回带新版本号的实体。
        """
        ...

    def delete(self, tenant_id: str, definition_id: str) -> None:
        """删除定义；可能抛出 NotFoundError / InUseError"""
        ...


class ActionRegistry(Protocol):
    def exists(self, tenant_id: Optional[str], action_id: str) -> bool:
        ...


class AlarmStateUpdater(Protocol):
    def update_state(self, tenant_id: str, definition_id: str, state: AlarmState) -> None:
        ...


class AlarmInstanceLookup(Protocol):
    def has_active_alarms(self, tenant_id: str, definition_id: str) -> bool:
        ...


def matches_dimensions(definition: AlarmDefinition, dimensions: Optional[Dict[str, str]]) -> bool:
    """任一子表达式包含全部给定维度即视为匹配"""
    if not dimensions:
        return True
    for sub in iter_sub_expressions(definition.normalized_expression):
        dims = sub.dimension_map
        if all(dims.get(k) == v for k, v in dimensions.items()):
            return True
    return False


class InMemoryAlarmDefinitionRepository:
    """
    内存持久化实现

    线程安全；save 按版本号做 compare-and-swap。
    """

    def __init__(self, definitions: Iterable[AlarmDefinition] = ()):
        self._lock = threading.Lock()
        self._definitions: Dict[str, AlarmDefinition] = {}
        for definition in definitions:
            self._definitions[definition.id] = copy.deepcopy(definition)

    def find_by_id(self, tenant_id: str, definition_id: str) -> Optional[AlarmDefinition]:
        with self._lock:
            definition = self._definitions.get(definition_id)
            if definition is None or definition.tenant_id != tenant_id:
                return None
            return copy.deepcopy(definition)

    def find_by_name(self, tenant_id: str, name: str) -> Optional[AlarmDefinition]:
        with self._lock:
            for definition in self._definitions.values():
                if definition.tenant_id == tenant_id and definition.name == name:
                    return copy.deepcopy(definition)
        return None

    def find(
        self,
        tenant_id: str,
        name: Optional[str] = None,
        dimensions: Optional[Dict[str, str]] = None,
    ) -> List[AlarmDefinition]:
        with self._lock:
            result = [
                copy.deepcopy(d)
                for d in self._definitions.values()
                if d.tenant_id == tenant_id
                and (name is None or d.name == name)
                and matches_dimensions(d, dimensions)
            ]
        return sorted(result, key=lambda d: d.id)

    def save(self, definition: AlarmDefinition, expected_version: Optional[int] = None) -> AlarmDefinition:
        with self._lock:
            current = self._definitions.get(definition.id)
            if expected_version is None:
                if current is not None:
                    raise ConflictError(definition.id, f"Alarm definition {definition.id} already exists")
            elif current is None or current.version != expected_version:
                raise ConflictError(definition.id)

            for other in self._definitions.values():
                if (
                    other.id != definition.id
                    and other.tenant_id == definition.tenant_id
                    and other.name == definition.name
                ):
                    raise ConflictError(
                        definition.id,
                        f"Alarm definition named {definition.name!r} was created concurrently",
                    )

            stored = copy.deepcopy(definition)
            stored.version = 1 if expected_version is None else expected_version + 1
            self._definitions[stored.id] = stored
            return copy.deepcopy(stored)

    def delete(self, tenant_id: str, definition_id: str) -> None:
        with self._lock:
            definition = self._definitions.get(definition_id)
            if definition is None or definition.tenant_id != tenant_id:
                raise NotFoundError(definition_id)
            del self._definitions[definition_id]


class StaticActionRegistry:
    """固定集合的动作注册表"""

    def __init__(self, action_ids: Iterable[str] = (), tenant_actions: Optional[Dict[str, Set[str]]] = None):
        self._global = set(action_ids)
        self._tenant_actions = tenant_actions or {}

    def exists(self, tenant_id: Optional[str], action_id: str) -> bool:
        if action_id in self._global:
            return True
        return action_id in self._tenant_actions.get(tenant_id or "", set())


class RecordingAlarmStateUpdater:
    """记录收到的状态转换（未接入告警状态服务时使用）"""

    def __init__(self):
        self.transitions: List[Tuple[str, str, AlarmState]] = []

    def update_state(self, tenant_id: str, definition_id: str, state: AlarmState) -> None:
        self.transitions.append((tenant_id, definition_id, state))
        logger.info(
            "alarm_state_transition_recorded",
            tenant_id=tenant_id,
            definition_id=definition_id,
            state=state.value,
        )
