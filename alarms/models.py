"""
告警定义领域模型
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from .expression import ExpressionNode, expression_to_dict


class AlarmSeverity(str, Enum):
    """告警严重级别"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AlarmState(str, Enum):
    """告警实例状态（仅用于 patch 中的一次性状态转换）"""
    OK = "OK"
    ALARM = "ALARM"
    UNDETERMINED = "UNDETERMINED"


@dataclass
class AlarmDefinition:
    """
    告警定义

    id 与 tenant_id 创建后不可变；expression 只能通过完整替换或 patch
    重新解析得到，不做增量修改。version 用于乐观并发控制。
    """
    id: str
    tenant_id: str
    name: str
    severity: AlarmSeverity
    expression: str
    normalized_expression: ExpressionNode
    normalized_text: str
    description: str = ""
    match_by: List[str] = field(default_factory=list)
    actions_enabled: bool = True
    alarm_actions: List[str] = field(default_factory=list)
    ok_actions: List[str] = field(default_factory=list)
    undetermined_actions: List[str] = field(default_factory=list)
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def same_content(self, other: "AlarmDefinition") -> bool:
        """比较可变字段（表达式按规范文本比较）"""
        return (
            self.name == other.name
            and self.description == other.description
            and self.severity == other.severity
            and self.normalized_text == other.normalized_text
            and self.match_by == other.match_by
            and self.actions_enabled == other.actions_enabled
            and self.alarm_actions == other.alarm_actions
            and self.ok_actions == other.ok_actions
            and self.undetermined_actions == other.undetermined_actions
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "severity": self.severity.value,
            "expression": self.expression,
            "normalized_expression": self.normalized_text,
            "expression_data": expression_to_dict(self.normalized_expression),
            "match_by": list(self.match_by),
            "actions_enabled": self.actions_enabled,
            "alarm_actions": list(self.alarm_actions),
            "ok_actions": list(self.ok_actions),
            "undetermined_actions": list(self.undetermined_actions),
            "version": self.version,
            "created_at": self.created_at.isoformat() + "Z" if self.created_at else None,
            "updated_at": self.updated_at.isoformat() + "Z" if self.updated_at else None,
        }
