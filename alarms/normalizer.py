"""
表达式校验与规范化

- 递归校验每个子表达式与布尔节点
- 生成规范化的表达式树（维度按键排序，同类连接词扁平化）
- 生成规范化文本，语义相同的输入得到完全相同的字符串

纯函数，无副作用。
"""
import math
from dataclasses import dataclass
from typing import List, Tuple

from .exceptions import FieldError, ValidationError
from .expression import (
    DEFAULT_PERIOD,
    DEFAULT_PERIODS,
    IDENTIFIER_PATTERN,
    MAX_IDENTIFIER_LENGTH,
    AggregateFunction,
    BooleanExpression,
    BooleanOperator,
    ExpressionNode,
    RelationalOperator,
    SubExpression,
)
from .parser import parse

EXPRESSION_FIELD = "expression"


@dataclass(frozen=True)
class NormalizedExpression:
    """解析并规范化后的表达式"""
    text: str
    tree: ExpressionNode
    canonical: str


def _valid_identifier(value: object) -> bool:
    return (
        isinstance(value, str)
        and len(value) <= MAX_IDENTIFIER_LENGTH
        and bool(IDENTIFIER_PATTERN.match(value))
    )


def _check_sub_expression(node: SubExpression, path: str, errors: List[FieldError]) -> None:
    def fail(reason: str) -> None:
        errors.append(FieldError(EXPRESSION_FIELD, f"{path}: {reason}"))

    if not isinstance(node.function, AggregateFunction):
        fail(f"unknown function {node.function!r}")
    if not _valid_identifier(node.metric_name):
        fail(f"invalid metric name {node.metric_name!r}")

    seen = set()
    for key, value in node.dimensions:
        if not _valid_identifier(key):
            fail(f"invalid dimension key {key!r}")
        if not _valid_identifier(value):
            fail(f"invalid value {value!r} for dimension {key!r}")
        if key in seen:
            fail(f"duplicate dimension key {key!r}")
        seen.add(key)

    if not isinstance(node.operator, RelationalOperator):
        fail(f"unknown relational operator {node.operator!r}")
    if isinstance(node.threshold, bool) or not isinstance(node.threshold, (int, float)):
        fail("threshold must be a number")
    elif not math.isfinite(node.threshold):
        fail("threshold must be a finite number")
    if isinstance(node.period, bool) or not isinstance(node.period, int) or node.period <= 0:
        fail(f"period must be a positive integer, got {node.period!r}")
    if isinstance(node.periods, bool) or not isinstance(node.periods, int) or node.periods < 1:
        fail(f"periods must be at least 1, got {node.periods!r}")


def _check(node: ExpressionNode, path: str, errors: List[FieldError]) -> None:
    if isinstance(node, SubExpression):
        _check_sub_expression(node, path, errors)
    elif isinstance(node, BooleanExpression):
        if not isinstance(node.operator, BooleanOperator):
            errors.append(FieldError(EXPRESSION_FIELD, f"{path}: unknown connective {node.operator!r}"))
        if len(node.operands) < 2:
            errors.append(FieldError(EXPRESSION_FIELD, f"{path}: boolean expression needs at least 2 operands"))
        for index, operand in enumerate(node.operands):
            _check(operand, f"{path}[{index}]", errors)
    else:
        raise TypeError(f"unexpected expression node {type(node).__name__}")


def _normalize(node: ExpressionNode) -> ExpressionNode:
    if isinstance(node, SubExpression):
        return SubExpression(
            function=node.function,
            metric_name=node.metric_name,
            dimensions=tuple(sorted(node.dimensions)),
            operator=node.operator,
            threshold=float(node.threshold) + 0.0,  # -0.0 -> 0.0
            period=node.period,
            periods=node.periods,
        )
    if isinstance(node, BooleanExpression):
        operands: List[ExpressionNode] = []
        for operand in node.operands:
            normalized = _normalize(operand)
            # a and (b and c) -> a and b and c
            if isinstance(normalized, BooleanExpression) and normalized.operator == node.operator:
                operands.extend(normalized.operands)
            else:
                operands.append(normalized)
        return BooleanExpression(operator=node.operator, operands=tuple(operands))
    raise TypeError(f"unexpected expression node {type(node).__name__}")


def render(node: ExpressionNode) -> str:
    """把（已规范化的）表达式树渲染为规范文本"""
    if isinstance(node, SubExpression):
        metric = node.metric_name
        if node.dimensions:
            dims = ", ".join(f"{k}={v}" for k, v in node.dimensions)
            metric = f"{metric}{{{dims}}}"
        if node.period != DEFAULT_PERIOD:
            metric = f"{metric}, {node.period}"
        text = f"{node.function.value.lower()}({metric}) {node.operator.symbol} {float(node.threshold)!r}"
        if node.periods != DEFAULT_PERIODS:
            text = f"{text} times {node.periods}"
        return text
    if isinstance(node, BooleanExpression):
        parts = []
        for operand in node.operands:
            part = render(operand)
            if isinstance(operand, BooleanExpression):
                part = f"({part})"
            parts.append(part)
        return f" {node.operator.value.lower()} ".join(parts)
    raise TypeError(f"unexpected expression node {type(node).__name__}")


def validate_and_normalize(tree: ExpressionNode) -> Tuple[ExpressionNode, str]:
    """
    校验并规范化表达式树

    Args:
        tree: parse() 产生的表达式树

    Returns:
        (规范化表达式树, 规范文本)

    Raises:
        ValidationError: 列出树中发现的全部问题
    """
    errors: List[FieldError] = []
    _check(tree, "expression", errors)
    if errors:
        raise ValidationError(errors)
    normalized = _normalize(tree)
    return normalized, render(normalized)


def parse_and_normalize(text: str) -> NormalizedExpression:
    """解析 + 校验 + 规范化"""
    tree, canonical = validate_and_normalize(parse(text))
    return NormalizedExpression(text=text, tree=tree, canonical=canonical)
