"""
告警定义字段校验

校验表达式以外的字段: 名称、描述、严重级别、动作 ID 列表、match_by 维度键。
所有失败字段一次性汇总到同一个 ValidationError 中。
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import structlog

from .exceptions import FieldError, ValidationError
from .expression import IDENTIFIER_PATTERN, MAX_IDENTIFIER_LENGTH
from .models import AlarmSeverity, AlarmState
from .repository import ActionRegistry

logger = structlog.get_logger(__name__)

ACTION_FIELDS = ("alarm_actions", "ok_actions", "undetermined_actions")


@dataclass(frozen=True)
class ValidationPolicy:
    """
    校验策略

    reject_duplicate_actions 为 False 时，同一列表内的重复动作 ID 只记为警告；
    reject_duplicate_match_by 为 False 时，重复的 match_by 键记为警告并去重。
    """
    reject_duplicate_actions: bool = False
    reject_duplicate_match_by: bool = True
    strict_action_validation: bool = False
    name_max_length: int = 255
    description_max_length: int = 255
    action_id_max_length: int = 50

    @classmethod
    def from_settings(cls, settings) -> "ValidationPolicy":
        """从 AlarmPolicySettings 构建"""
        return cls(
            reject_duplicate_actions=settings.reject_duplicate_actions,
            reject_duplicate_match_by=settings.reject_duplicate_match_by,
            strict_action_validation=settings.strict_action_validation,
            name_max_length=settings.name_max_length,
            description_max_length=settings.description_max_length,
            action_id_max_length=settings.action_id_max_length,
        )


@dataclass
class DefinitionCheck:
    """校验结果: 规范化后的值与警告信息"""
    severity: Optional[AlarmSeverity] = None
    match_by: Optional[List[str]] = None
    warnings: List[str] = field(default_factory=list)


def parse_severity(value: str) -> AlarmSeverity:
    """大小写不敏感地解析严重级别"""
    return AlarmSeverity(value.strip().upper())


def parse_state(value: str) -> AlarmState:
    """大小写不敏感地解析告警状态"""
    return AlarmState(value.strip().upper())


def is_valid_dimension_key(key: object) -> bool:
    return (
        isinstance(key, str)
        and len(key) <= MAX_IDENTIFIER_LENGTH
        and bool(IDENTIFIER_PATTERN.match(key))
    )


def parse_dimensions_query(text: str) -> Dict[str, str]:
    """
    解析列表查询中的维度过滤参数

    格式: key1:value1,key2:value2

    Raises:
        ValidationError: 语法错误或键重复
    """
    dimensions: Dict[str, str] = {}
    for item in text.split(","):
        item = item.strip()
        key, sep, value = item.partition(":")
        key, value = key.strip(), value.strip()
        if not sep or not is_valid_dimension_key(key) or not is_valid_dimension_key(value):
            raise ValidationError.single("dimensions", f"invalid dimension {item!r}; expected key:value")
        if key in dimensions:
            raise ValidationError.single("dimensions", f"duplicate dimension key {key!r}")
        dimensions[key] = value
    return dimensions


class DefinitionValidator:
    """
    告警定义字段校验器

    参数为 None 表示该字段未提供（patch 路径），跳过校验。
    """

    def __init__(
        self,
        policy: Optional[ValidationPolicy] = None,
        action_registry: Optional[ActionRegistry] = None,
    ):
        self.policy = policy or ValidationPolicy()
        self.action_registry = action_registry
        if self.policy.strict_action_validation and action_registry is None:
            raise ValueError("strict action validation requires an action registry")

    def validate(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        severity: Optional[str] = None,
        alarm_actions: Optional[Sequence[str]] = None,
        ok_actions: Optional[Sequence[str]] = None,
        undetermined_actions: Optional[Sequence[str]] = None,
        match_by: Optional[Sequence[str]] = None,
        tenant_id: Optional[str] = None,
    ) -> DefinitionCheck:
        """
        校验字段

        Returns:
            DefinitionCheck（规范化的 severity / match_by 以及警告）

        Raises:
            ValidationError: 列出所有失败字段
        """
        errors: List[FieldError] = []
        check = DefinitionCheck()

        if name is not None:
            self._check_name(name, errors)

        if description is not None and not isinstance(description, str):
            errors.append(FieldError("description", "must be a string"))
        elif description is not None and len(description) > self.policy.description_max_length:
            errors.append(FieldError(
                "description",
                f"must be at most {self.policy.description_max_length} characters",
            ))

        if severity is not None:
            try:
                check.severity = parse_severity(severity)
            except (ValueError, AttributeError):
                allowed = ", ".join(s.value for s in AlarmSeverity)
                errors.append(FieldError("severity", f"{severity!r} is not one of {allowed}"))

        actions = dict(zip(ACTION_FIELDS, (alarm_actions, ok_actions, undetermined_actions)))
        for field_name, action_ids in actions.items():
            if action_ids is not None:
                self._check_actions(field_name, action_ids, tenant_id, errors, check)

        if match_by is not None:
            check.match_by = self._check_match_by(match_by, errors, check)

        if errors:
            logger.info("alarm_definition_invalid", fields=[e.field for e in errors])
            raise ValidationError(errors)

        for warning in check.warnings:
            logger.warning("alarm_definition_validation_warning", note=warning)
        return check

    def _check_name(self, name: str, errors: List[FieldError]) -> None:
        if not isinstance(name, str):
            errors.append(FieldError("name", "must be a string"))
        elif not name.strip():
            errors.append(FieldError("name", "may not be empty"))
        elif len(name) > self.policy.name_max_length:
            errors.append(FieldError(
                "name", f"must be at most {self.policy.name_max_length} characters"
            ))

    def _check_actions(
        self,
        field_name: str,
        action_ids: Sequence[str],
        tenant_id: Optional[str],
        errors: List[FieldError],
        check: DefinitionCheck,
    ) -> None:
        seen = set()
        for action_id in action_ids:
            if not isinstance(action_id, str) or not action_id.strip():
                errors.append(FieldError(field_name, "action ids may not be empty"))
                continue
            if action_id != action_id.strip():
                errors.append(FieldError(field_name, f"action id {action_id!r} has surrounding whitespace"))
                continue
            if len(action_id) > self.policy.action_id_max_length:
                errors.append(FieldError(
                    field_name,
                    f"action id {action_id!r} exceeds {self.policy.action_id_max_length} characters",
                ))
                continue
            if action_id in seen:
                note = f"duplicate action id {action_id!r}"
                if self.policy.reject_duplicate_actions:
                    errors.append(FieldError(field_name, note))
                else:
                    check.warnings.append(f"{field_name}: {note}")
                continue
            seen.add(action_id)
            if self.policy.strict_action_validation and not self.action_registry.exists(tenant_id, action_id):
                errors.append(FieldError(field_name, f"unknown action id {action_id!r}"))

    def _check_match_by(
        self,
        match_by: Sequence[str],
        errors: List[FieldError],
        check: DefinitionCheck,
    ) -> List[str]:
        keys: List[str] = []
        for key in match_by:
            if not is_valid_dimension_key(key):
                errors.append(FieldError("match_by", f"invalid dimension key {key!r}"))
                continue
            if key in keys:
                note = f"duplicate match_by key {key!r}"
                if self.policy.reject_duplicate_match_by:
                    errors.append(FieldError("match_by", note))
                else:
                    check.warnings.append(f"match_by: {note}")
                continue
            keys.append(key)
        return keys
