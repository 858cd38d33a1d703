"""
告警表达式树

表达式树是一个封闭的变体集合:
- SubExpression: 单个指标聚合比较（叶子节点）
- BooleanExpression: 由 AND / OR 连接的子树（内部节点）
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Tuple, Union

DEFAULT_PERIOD = 60
DEFAULT_PERIODS = 1

# 指标名、维度键与维度值共用的标识符语法
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
MAX_IDENTIFIER_LENGTH = 255


class AggregateFunction(str, Enum):
    """聚合函数"""
    MAX = "MAX"
    MIN = "MIN"
    AVG = "AVG"
    SUM = "SUM"
    COUNT = "COUNT"


class RelationalOperator(str, Enum):
    """比较运算符"""
    LT = "LT"
    LTE = "LTE"
    GT = "GT"
    GTE = "GTE"

    @property
    def symbol(self) -> str:
        return _OPERATOR_SYMBOLS[self]

    @classmethod
    def from_symbol(cls, symbol: str) -> "RelationalOperator":
        for op, sym in _OPERATOR_SYMBOLS.items():
            if sym == symbol:
                return op
        raise ValueError(f"unknown relational operator {symbol!r}")


_OPERATOR_SYMBOLS = {
    RelationalOperator.LT: "<",
    RelationalOperator.LTE: "<=",
    RelationalOperator.GT: ">",
    RelationalOperator.GTE: ">=",
}


class BooleanOperator(str, Enum):
    """布尔连接词"""
    AND = "AND"
    OR = "OR"


@dataclass(frozen=True, eq=False)
class SubExpression:
    """
    子表达式: function(metric{dimensions}, period) operator threshold times periods

    dimensions 按书写顺序保存为 (key, value) 元组，以便校验器发现重复键；
    相等性与哈希不依赖维度顺序。
    """
    function: AggregateFunction
    metric_name: str
    operator: RelationalOperator
    threshold: float
    dimensions: Tuple[Tuple[str, str], ...] = ()
    period: int = DEFAULT_PERIOD
    periods: int = DEFAULT_PERIODS

    @property
    def dimension_map(self) -> Dict[str, str]:
        return dict(self.dimensions)

    def _identity(self) -> tuple:
        return (
            self.function,
            self.metric_name,
            tuple(sorted(self.dimensions)),
            self.operator,
            self.threshold,
            self.period,
            self.periods,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SubExpression):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "function": self.function.value,
            "metric_name": self.metric_name,
            "dimensions": dict(self.dimensions),
            "operator": self.operator.value,
            "threshold": self.threshold,
            "period": self.period,
            "periods": self.periods,
        }


@dataclass(frozen=True)
class BooleanExpression:
    """布尔表达式节点，operands 至少两个"""
    operator: BooleanOperator
    operands: Tuple["ExpressionNode", ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operator": self.operator.value,
            "operands": [expression_to_dict(o) for o in self.operands],
        }


ExpressionNode = Union[SubExpression, BooleanExpression]


def iter_sub_expressions(node: ExpressionNode) -> Iterator[SubExpression]:
    """深度优先遍历所有叶子子表达式"""
    if isinstance(node, SubExpression):
        yield node
    elif isinstance(node, BooleanExpression):
        for operand in node.operands:
            yield from iter_sub_expressions(operand)
    else:
        raise TypeError(f"unexpected expression node {type(node).__name__}")


def expression_to_dict(node: ExpressionNode) -> Dict[str, Any]:
    """表达式树转字典（结构化边界表示）"""
    if isinstance(node, (SubExpression, BooleanExpression)):
        return node.to_dict()
    raise TypeError(f"unexpected expression node {type(node).__name__}")


def expression_from_dict(data: Dict[str, Any]) -> ExpressionNode:
    """从字典还原表达式树"""
    if "operands" in data:
        return BooleanExpression(
            operator=BooleanOperator(data["operator"]),
            operands=tuple(expression_from_dict(o) for o in data["operands"]),
        )
    return SubExpression(
        function=AggregateFunction(data["function"]),
        metric_name=data["metric_name"],
        dimensions=tuple((str(k), str(v)) for k, v in data.get("dimensions", {}).items()),
        operator=RelationalOperator(data["operator"]),
        threshold=float(data["threshold"]),
        period=int(data.get("period", DEFAULT_PERIOD)),
        periods=int(data.get("periods", DEFAULT_PERIODS)),
    )
