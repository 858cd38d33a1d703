"""
告警定义生命周期管理

负责:
- 创建 / 完整替换 / 局部更新 / 删除
- 每次修改都重新走完整的表达式解析与字段校验流程，不信任已存储的规范化结果
- 租户隔离: 其他租户的定义与不存在的定义返回相同的 NotFoundError
- 乐观并发: 以版本号调用持久层，冲突直接向上抛出 ConflictError
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import structlog

from .exceptions import FieldError, InUseError, NotFoundError, ValidationError
from .models import AlarmDefinition, AlarmSeverity, AlarmState
from .normalizer import NormalizedExpression, parse_and_normalize
from .patch import AlarmDefinitionPatch, is_set
from .repository import AlarmDefinitionRepository, AlarmInstanceLookup, AlarmStateUpdater
from .validation import DefinitionValidator, parse_dimensions_query, parse_state

logger = structlog.get_logger(__name__)


@dataclass
class _ValidatedFields:
    severity: AlarmSeverity
    expression: NormalizedExpression
    match_by: List[str]


class AlarmDefinitionService:
    """
    告警定义服务

    Args:
        repository: 持久化协作者
        validator: 字段校验器（默认策略）
        alarm_state_updater: 处理 patch 中 state 字段的协作者（可选）
        alarm_lookup: 删除前检查活跃告警的协作者（可选）
    """

    def __init__(
        self,
        repository: AlarmDefinitionRepository,
        validator: Optional[DefinitionValidator] = None,
        alarm_state_updater: Optional[AlarmStateUpdater] = None,
        alarm_lookup: Optional[AlarmInstanceLookup] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.repository = repository
        self.validator = validator or DefinitionValidator()
        self.alarm_state_updater = alarm_state_updater
        self.alarm_lookup = alarm_lookup
        self._id_factory = id_factory

    # ===== 读取 =====

    def get_definition(self, tenant_id: str, definition_id: str) -> AlarmDefinition:
        return self._require(tenant_id, definition_id)

    def list_definitions(
        self,
        tenant_id: str,
        name: Optional[str] = None,
        dimensions: Union[str, Dict[str, str], None] = None,
    ) -> List[AlarmDefinition]:
        """按名称和/或维度过滤列出租户的告警定义"""
        if isinstance(dimensions, str):
            dimensions = parse_dimensions_query(dimensions) if dimensions else None
        return self.repository.find(tenant_id, name=name, dimensions=dimensions)

    # ===== 修改 =====

    def create_definition(
        self,
        tenant_id: str,
        name: str,
        description: Optional[str],
        severity: Optional[str],
        expression: str,
        match_by: Optional[Sequence[str]] = None,
        alarm_actions: Optional[Sequence[str]] = None,
        ok_actions: Optional[Sequence[str]] = None,
        undetermined_actions: Optional[Sequence[str]] = None,
        actions_enabled: bool = True,
    ) -> AlarmDefinition:
        """
        创建告警定义

        severity 缺省为 LOW。同名且内容完全相同的重复提交直接返回已有定义。

        Raises:
            ParseError: 表达式语法错误
            ValidationError: 字段非法或名称已被占用
            ConflictError: 并发创建冲突
        """
        if name is None:
            raise ValidationError.single("name", "is required")
        fields = self._validate(
            tenant_id,
            name=name,
            description=description or "",
            severity=severity if severity is not None else AlarmSeverity.LOW.value,
            expression=expression,
            match_by=match_by or [],
            alarm_actions=alarm_actions or [],
            ok_actions=ok_actions or [],
            undetermined_actions=undetermined_actions or [],
        )

        now = datetime.utcnow()
        definition = AlarmDefinition(
            id=self._id_factory(),
            tenant_id=tenant_id,
            name=name,
            description=description or "",
            severity=fields.severity,
            expression=expression,
            normalized_expression=fields.expression.tree,
            normalized_text=fields.expression.canonical,
            match_by=fields.match_by,
            actions_enabled=actions_enabled,
            alarm_actions=list(alarm_actions or []),
            ok_actions=list(ok_actions or []),
            undetermined_actions=list(undetermined_actions or []),
            created_at=now,
            updated_at=now,
        )

        existing = self.repository.find_by_name(tenant_id, name)
        if existing is not None:
            if existing.same_content(definition):
                logger.info(
                    "alarm_definition_create_idempotent",
                    tenant_id=tenant_id,
                    definition_id=existing.id,
                )
                return existing
            raise self._name_taken(name)

        saved = self.repository.save(definition, expected_version=None)
        logger.info(
            "alarm_definition_created",
            tenant_id=tenant_id,
            definition_id=saved.id,
            name=saved.name,
            expression=saved.normalized_text,
        )
        return saved

    def replace_definition(
        self,
        tenant_id: str,
        definition_id: str,
        expression: str,
        name: str,
        description: Optional[str],
        severity: str,
        match_by: Optional[Sequence[str]],
        actions_enabled: bool,
        alarm_actions: Optional[Sequence[str]],
        ok_actions: Optional[Sequence[str]],
        undetermined_actions: Optional[Sequence[str]],
    ) -> AlarmDefinition:
        """
        完整替换告警定义的所有可变字段（id / tenant_id / created_at 保持不变）

        Raises:
            NotFoundError: 定义不存在或属于其他租户
            ParseError / ValidationError: 新内容非法
            ConflictError: 并发修改
        """
        existing = self._require(tenant_id, definition_id)

        missing = [
            FieldError(field_name, "is required")
            for field_name, value in (
                ("name", name),
                ("severity", severity),
                ("actions_enabled", actions_enabled),
            )
            if value is None
        ]
        if missing:
            raise ValidationError(missing)

        fields = self._validate(
            tenant_id,
            name=name,
            description=description or "",
            severity=severity,
            expression=expression,
            match_by=match_by or [],
            alarm_actions=alarm_actions or [],
            ok_actions=ok_actions or [],
            undetermined_actions=undetermined_actions or [],
        )
        self._check_name_available(tenant_id, definition_id, name)

        updated = AlarmDefinition(
            id=existing.id,
            tenant_id=existing.tenant_id,
            name=name,
            description=description or "",
            severity=fields.severity,
            expression=expression,
            normalized_expression=fields.expression.tree,
            normalized_text=fields.expression.canonical,
            match_by=fields.match_by,
            actions_enabled=actions_enabled,
            alarm_actions=list(alarm_actions or []),
            ok_actions=list(ok_actions or []),
            undetermined_actions=list(undetermined_actions or []),
            version=existing.version,
            created_at=existing.created_at,
            updated_at=datetime.utcnow(),
        )
        saved = self.repository.save(updated, expected_version=existing.version)
        logger.info(
            "alarm_definition_replaced",
            tenant_id=tenant_id,
            definition_id=definition_id,
            expression_changed=existing.normalized_text != saved.normalized_text,
        )
        return saved

    def patch_definition(
        self,
        tenant_id: str,
        definition_id: str,
        patch: Union[AlarmDefinitionPatch, Mapping[str, Any]],
    ) -> AlarmDefinition:
        """
        局部更新告警定义

        只合并 patch 中提供的字段；expression 若提供则整体替换并重新解析；
        state 转发给告警状态协作者，不写入定义。

        state 在定义保存成功之后（或判定内容未变化之后）才转发；
        若状态协作者此时抛出异常，已保存的定义修改不会回滚，异常原样向上传播。

        Raises:
            NotFoundError: 定义不存在或属于其他租户（先于任何校验）
            ParseError / ValidationError: 任一提供的字段非法，存储状态保持不变
            ConflictError: 并发修改
        """
        existing = self._require(tenant_id, definition_id)

        if not isinstance(patch, AlarmDefinitionPatch):
            patch = AlarmDefinitionPatch.from_mapping(patch)
        elif patch.is_empty():
            raise ValidationError.single("patch", "at least one field must be supplied")
        else:
            patch.check_types()

        state: Optional[AlarmState] = None
        state_errors: List[FieldError] = []
        if is_set(patch.state):
            try:
                state = parse_state(patch.state)
            except ValueError:
                allowed = ", ".join(s.value for s in AlarmState)
                state_errors.append(FieldError("state", f"{patch.state!r} is not one of {allowed}"))
            else:
                if self.alarm_state_updater is None:
                    state_errors.append(FieldError("state", "state transitions are not supported"))

        name = patch.name if is_set(patch.name) else existing.name
        description = patch.resolved_description()
        if description is None:
            description = existing.description
        severity = patch.severity if is_set(patch.severity) else existing.severity.value
        expression = patch.expression if is_set(patch.expression) else existing.expression
        actions_enabled = patch.actions_enabled if is_set(patch.actions_enabled) else existing.actions_enabled
        match_by = patch.resolved_list("match_by")
        alarm_actions = patch.resolved_list("alarm_actions")
        ok_actions = patch.resolved_list("ok_actions")
        undetermined_actions = patch.resolved_list("undetermined_actions")
        match_by = existing.match_by if match_by is None else match_by
        alarm_actions = existing.alarm_actions if alarm_actions is None else alarm_actions
        ok_actions = existing.ok_actions if ok_actions is None else ok_actions
        undetermined_actions = existing.undetermined_actions if undetermined_actions is None else undetermined_actions

        try:
            fields = self._validate(
                tenant_id,
                name=name,
                description=description,
                severity=severity,
                expression=expression,
                match_by=match_by,
                alarm_actions=alarm_actions,
                ok_actions=ok_actions,
                undetermined_actions=undetermined_actions,
            )
        except ValidationError as e:
            raise ValidationError(state_errors + e.errors) from None
        if state_errors:
            raise ValidationError(state_errors)
        if name != existing.name:
            self._check_name_available(tenant_id, definition_id, name)

        updated = AlarmDefinition(
            id=existing.id,
            tenant_id=existing.tenant_id,
            name=name,
            description=description,
            severity=fields.severity,
            expression=expression,
            normalized_expression=fields.expression.tree,
            normalized_text=fields.expression.canonical,
            match_by=fields.match_by,
            actions_enabled=actions_enabled,
            alarm_actions=list(alarm_actions),
            ok_actions=list(ok_actions),
            undetermined_actions=list(undetermined_actions),
            version=existing.version,
            created_at=existing.created_at,
            updated_at=existing.updated_at,
        )

        if updated.same_content(existing) and updated.expression == existing.expression:
            saved = existing
        else:
            updated.updated_at = datetime.utcnow()
            saved = self.repository.save(updated, expected_version=existing.version)
            logger.info(
                "alarm_definition_patched",
                tenant_id=tenant_id,
                definition_id=definition_id,
                fields=sorted(k for k in patch.supplied() if k != "state"),
            )

        if state is not None:
            self.alarm_state_updater.update_state(tenant_id, definition_id, state)
            logger.info(
                "alarm_state_forwarded",
                tenant_id=tenant_id,
                definition_id=definition_id,
                state=state.value,
            )
        return saved

    def delete_definition(self, tenant_id: str, definition_id: str) -> None:
        """
        删除告警定义

        Raises:
            NotFoundError: 定义不存在或属于其他租户
            InUseError: 仍被活跃告警引用
        """
        self._require(tenant_id, definition_id)
        if self.alarm_lookup is not None and self.alarm_lookup.has_active_alarms(tenant_id, definition_id):
            raise InUseError(definition_id)
        self.repository.delete(tenant_id, definition_id)
        logger.info("alarm_definition_deleted", tenant_id=tenant_id, definition_id=definition_id)

    # ===== 内部 =====

    def _require(self, tenant_id: str, definition_id: str) -> AlarmDefinition:
        definition = self.repository.find_by_id(tenant_id, definition_id)
        if definition is None or definition.tenant_id != tenant_id:
            logger.info("alarm_definition_not_found", tenant_id=tenant_id, definition_id=definition_id)
            raise NotFoundError(definition_id)
        return definition

    def _validate(
        self,
        tenant_id: str,
        *,
        name: str,
        description: str,
        severity: str,
        expression: str,
        match_by: Sequence[str],
        alarm_actions: Sequence[str],
        ok_actions: Sequence[str],
        undetermined_actions: Sequence[str],
    ) -> _ValidatedFields:
        """字段校验与表达式解析，字段错误与表达式语义错误合并报告"""
        errors: List[FieldError] = []
        check = None
        try:
            check = self.validator.validate(
                name=name,
                description=description,
                severity=severity,
                alarm_actions=alarm_actions,
                ok_actions=ok_actions,
                undetermined_actions=undetermined_actions,
                match_by=match_by,
                tenant_id=tenant_id,
            )
        except ValidationError as e:
            errors.extend(e.errors)

        normalized = None
        if not isinstance(expression, str) or not expression.strip():
            errors.append(FieldError("expression", "is required"))
        else:
            try:
                normalized = parse_and_normalize(expression)
            except ValidationError as e:
                errors.extend(e.errors)

        if errors:
            raise ValidationError(errors)
        return _ValidatedFields(
            severity=check.severity,
            expression=normalized,
            match_by=check.match_by,
        )

    def _check_name_available(self, tenant_id: str, definition_id: str, name: str) -> None:
        other = self.repository.find_by_name(tenant_id, name)
        if other is not None and other.id != definition_id:
            raise self._name_taken(name)

    @staticmethod
    def _name_taken(name: str) -> ValidationError:
        return ValidationError.single("name", f"an alarm definition named {name!r} already exists")
