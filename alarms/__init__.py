# 告警定义核心模块
from .exceptions import (
    AlarmDefinitionError,
    ParseError,
    FieldError,
    ValidationError,
    NotFoundError,
    ConflictError,
    InUseError,
)
from .expression import (
    AggregateFunction,
    RelationalOperator,
    BooleanOperator,
    SubExpression,
    BooleanExpression,
    ExpressionNode,
    iter_sub_expressions,
    expression_to_dict,
    expression_from_dict,
)
from .parser import parse
from .normalizer import NormalizedExpression, validate_and_normalize, parse_and_normalize, render
from .models import AlarmDefinition, AlarmSeverity, AlarmState
from .patch import AlarmDefinitionPatch, UNSET
from .validation import DefinitionValidator, ValidationPolicy, DefinitionCheck, parse_dimensions_query
from .repository import (
    AlarmDefinitionRepository,
    ActionRegistry,
    AlarmStateUpdater,
    AlarmInstanceLookup,
    InMemoryAlarmDefinitionRepository,
    StaticActionRegistry,
    RecordingAlarmStateUpdater,
)
from .links import LinkHydrator
from .service import AlarmDefinitionService

__all__ = [
    # 异常
    "AlarmDefinitionError",
    "ParseError",
    "FieldError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InUseError",
    # 表达式
    "AggregateFunction",
    "RelationalOperator",
    "BooleanOperator",
    "SubExpression",
    "BooleanExpression",
    "ExpressionNode",
    "iter_sub_expressions",
    "expression_to_dict",
    "expression_from_dict",
    "parse",
    "NormalizedExpression",
    "validate_and_normalize",
    "parse_and_normalize",
    "render",
    # 定义
    "AlarmDefinition",
    "AlarmSeverity",
    "AlarmState",
    "AlarmDefinitionPatch",
    "UNSET",
    "DefinitionValidator",
    "ValidationPolicy",
    "DefinitionCheck",
    "parse_dimensions_query",
    # 协作者
    "AlarmDefinitionRepository",
    "ActionRegistry",
    "AlarmStateUpdater",
    "AlarmInstanceLookup",
    "InMemoryAlarmDefinitionRepository",
    "StaticActionRegistry",
    "RecordingAlarmStateUpdater",
    "LinkHydrator",
    "AlarmDefinitionService",
]
