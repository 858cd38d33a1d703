"""
告警定义异常类型

所有核心操作抛出的错误都继承自 AlarmDefinitionError，
调用方（API 层）负责把各类错误映射为传输层响应。
"""
from dataclasses import dataclass
from typing import List, Optional, Dict, Any


class AlarmDefinitionError(Exception):
    """
    告警定义基础异常类

    Example:
        ```python
        try:
            service.delete_definition(tenant_id, definition_id)
        except AlarmDefinitionError as e:
            print(f"failed: {e}")
        ```
    """

    code = "ALARM_DEFINITION_ERROR"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class ParseError(AlarmDefinitionError):
    """
    表达式语法错误

    Attributes:
        position: 出错 token 在原始文本中的字符偏移（从 0 开始）
    """

    code = "PARSE_ERROR"

    def __init__(self, position: int, message: str):
        super().__init__(message, details={"position": position})
        self.position = position

    def __str__(self) -> str:
        return f"[{self.code}] {self.message} (at position {self.position})"


@dataclass(frozen=True)
class FieldError:
    """单个字段的校验失败"""
    field: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "reason": self.reason}


class ValidationError(AlarmDefinitionError):
    """
    字段校验错误

    可以同时携带多个字段错误，调用方可一次性报告所有问题。

    Attributes:
        errors: FieldError 列表（至少一个）
    """

    code = "VALIDATION_ERROR"

    def __init__(self, errors: List[FieldError]):
        if not errors:
            raise ValueError("ValidationError requires at least one FieldError")
        self.errors = list(errors)
        message = "; ".join(f"{e.field}: {e.reason}" for e in self.errors)
        super().__init__(message, details={"errors": [e.to_dict() for e in self.errors]})

    @classmethod
    def single(cls, field: str, reason: str) -> "ValidationError":
        return cls([FieldError(field, reason)])

    @property
    def field(self) -> str:
        """第一个失败的字段"""
        return self.errors[0].field

    @property
    def reason(self) -> str:
        return self.errors[0].reason

    @property
    def fields(self) -> List[str]:
        """所有失败字段（去重，保持顺序）"""
        seen: List[str] = []
        for error in self.errors:
            if error.field not in seen:
                seen.append(error.field)
        return seen


class NotFoundError(AlarmDefinitionError):
    """
    告警定义未找到

    定义不存在或属于其他租户时抛出，两种情况信号完全相同。
    """

    code = "NOT_FOUND"

    def __init__(self, definition_id: str):
        super().__init__(f"Alarm definition {definition_id} not found")
        self.definition_id = definition_id


class ConflictError(AlarmDefinitionError):
    """
    并发修改冲突

    持久层检测到同一定义被并发修改时抛出，调用方可以重试。
    """

    code = "CONFLICT"
    retryable = True

    def __init__(self, definition_id: str, message: Optional[str] = None):
        super().__init__(message or f"Alarm definition {definition_id} was modified concurrently")
        self.definition_id = definition_id


class InUseError(AlarmDefinitionError):
    """告警定义仍被活跃告警实例引用，无法删除"""

    code = "IN_USE"

    def __init__(self, definition_id: str):
        super().__init__(f"Alarm definition {definition_id} is referenced by active alarms")
        self.definition_id = definition_id
