"""
告警定义局部更新（patch）结构

每个字段都是一个可选槽位:
- UNSET: 请求中没有该字段，保持原值
- None / 空值: 请求显式提供了空值，按字段语义处理（清空或报错）
"""
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional, Union

from .exceptions import FieldError, ValidationError


class _Unset:
    """字段未提供的哨兵值"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()

_STRING_FIELDS = ("name", "description", "severity", "expression", "state")
_LIST_FIELDS = ("match_by", "alarm_actions", "ok_actions", "undetermined_actions")
_NOT_NULLABLE = ("name", "severity", "expression", "actions_enabled", "state")


def is_set(value: Any) -> bool:
    return value is not UNSET


@dataclass(frozen=True)
class AlarmDefinitionPatch:
    """
    告警定义 patch

    state 不是定义的字段，而是当前告警实例的一次性状态转换，
    由生命周期管理器转发给告警状态协作者。
    """
    name: Union[str, None, Any] = UNSET
    description: Union[str, None, Any] = UNSET
    severity: Union[str, None, Any] = UNSET
    expression: Union[str, None, Any] = UNSET
    match_by: Union[List[str], None, Any] = UNSET
    state: Union[str, None, Any] = UNSET
    actions_enabled: Union[bool, None, Any] = UNSET
    alarm_actions: Union[List[str], None, Any] = UNSET
    ok_actions: Union[List[str], None, Any] = UNSET
    undetermined_actions: Union[List[str], None, Any] = UNSET

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    def supplied(self) -> Dict[str, Any]:
        """请求中实际提供的字段"""
        return {
            name: getattr(self, name)
            for name in self.field_names()
            if is_set(getattr(self, name))
        }

    def is_empty(self) -> bool:
        return not self.supplied()

    def check_types(self) -> None:
        """
        校验每个已提供字段的类型与可空性

        Raises:
            ValidationError: 列出所有类型错误的字段
        """
        errors: List[FieldError] = []
        for name, value in self.supplied().items():
            if value is None:
                if name in _NOT_NULLABLE:
                    errors.append(FieldError(name, "may not be null"))
                continue
            if name in _STRING_FIELDS and not isinstance(value, str):
                errors.append(FieldError(name, "must be a string"))
            elif name in _LIST_FIELDS and (
                not isinstance(value, (list, tuple))
                or not all(isinstance(item, str) for item in value)
            ):
                errors.append(FieldError(name, "must be a list of strings"))
            elif name == "actions_enabled" and not isinstance(value, bool):
                errors.append(FieldError(name, "must be a boolean"))
        if errors:
            raise ValidationError(errors)

    def resolved_description(self) -> Optional[str]:
        """显式的 null 表示清空描述"""
        if not is_set(self.description):
            return None
        return self.description or ""

    def resolved_list(self, name: str) -> Optional[List[str]]:
        """显式的 null 或空列表表示清空；未提供返回 None"""
        value = getattr(self, name)
        if not is_set(value):
            return None
        return list(value or [])

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "AlarmDefinitionPatch":
        """
        从原始字段字典构建 patch

        Raises:
            ValidationError: 空 payload、未知字段或字段类型错误
        """
        if not isinstance(payload, Mapping):
            raise ValidationError.single("patch", "must be an object")
        if not payload:
            raise ValidationError.single("patch", "at least one field must be supplied")

        known = set(cls.field_names())
        unknown = sorted(k for k in payload if k not in known)
        if unknown:
            raise ValidationError(
                [FieldError(str(k), "unknown field") for k in unknown]
            )

        patch = cls(**{k: payload[k] for k in payload})
        patch.check_types()
        return patch
