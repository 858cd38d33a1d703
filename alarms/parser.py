"""
告警表达式解析器

把表达式文本解析为表达式树，例如:

    avg(cpu.idle_perc{hostname=web-01}, 120) < 10 times 3 and max(disk.used) > 90

语法:
    expr     := term ((AND term)* | (OR term)*)
    term     := subexpr | '(' expr ')'
    subexpr  := FUNC '(' METRIC dims? [',' PERIOD] ')' dims? OP NUMBER ['times' INT]
    dims     := '{' key '=' value (',' key '=' value)* '}'

同一分组层级内不允许混用 and / or，必须用括号显式分组。
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog

from .exceptions import ParseError
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

logger = structlog.get_logger(__name__)

# token 类型
WORD = "WORD"
LPAREN = "("
RPAREN = ")"
LBRACE = "{"
RBRACE = "}"
COMMA = ","
EQUALS = "="
RELOP = "RELOP"
AND = "AND"
OR = "OR"
EOF = "EOF"

_PUNCTUATION = {
    "(": LPAREN,
    ")": RPAREN,
    "{": LBRACE,
    "}": RBRACE,
    ",": COMMA,
    "=": EQUALS,
}

_WORD_CHARS = re.compile(r"[A-Za-z0-9._+\-]+")
_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")

# 括号嵌套层数上限
MAX_NESTING_DEPTH = 100

_RELATIONAL_KEYWORDS = {
    "lt": RelationalOperator.LT,
    "lte": RelationalOperator.LTE,
    "gt": RelationalOperator.GT,
    "gte": RelationalOperator.GTE,
}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int

    def describe(self) -> str:
        if self.kind == EOF:
            return "end of expression"
        return repr(self.text)


def tokenize(text: str) -> List[Token]:
    """
    词法分析

    Returns:
        token 列表，最后一个总是 EOF

    Raises:
        ParseError: 遇到无法识别的字符
    """
    tokens: List[Token] = []
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        if ch in _PUNCTUATION:
            tokens.append(Token(_PUNCTUATION[ch], ch, i))
            i += 1
            continue
        if ch in "<>":
            if i + 1 < length and text[i + 1] == "=":
                tokens.append(Token(RELOP, ch + "=", i))
                i += 2
            else:
                tokens.append(Token(RELOP, ch, i))
                i += 1
            continue
        if ch in "&|":
            if i + 1 < length and text[i + 1] == ch:
                tokens.append(Token(AND if ch == "&" else OR, ch * 2, i))
                i += 2
                continue
            raise ParseError(i, f"unexpected character {ch!r}")
        match = _WORD_CHARS.match(text, i)
        if match is None:
            raise ParseError(i, f"unexpected character {ch!r}")
        tokens.append(Token(WORD, match.group(), i))
        i = match.end()
    tokens.append(Token(EOF, "", length))
    return tokens


class _Parser:
    """递归下降解析器，每次 parse 调用新建一个实例"""

    def __init__(self, text: str):
        self._tokens = tokenize(text)
        self._index = 0
        self._depth = 0

    def parse(self) -> ExpressionNode:
        node = self._expression()
        token = self._peek()
        if token.kind != EOF:
            raise ParseError(token.position, f"unexpected {token.describe()}")
        return node

    # ---- token helpers ----

    def _peek(self) -> Token:
        return self._tokens[self._index]

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        if token.kind != EOF:
            self._index += 1
        return token

    def _expect(self, kind: str, what: str) -> Token:
        token = self._peek()
        if token.kind != kind:
            raise ParseError(token.position, f"expected {what} but found {token.describe()}")
        return self._advance()

    def _at_word(self, *values: str) -> bool:
        token = self._peek()
        return token.kind == WORD and token.text.lower() in values

    # ---- grammar ----

    def _connective(self, token: Token) -> Optional[BooleanOperator]:
        if token.kind == AND or (token.kind == WORD and token.text.lower() == "and"):
            return BooleanOperator.AND
        if token.kind == OR or (token.kind == WORD and token.text.lower() == "or"):
            return BooleanOperator.OR
        return None

    def _expression(self) -> ExpressionNode:
        operands = [self._term()]
        connective: Optional[BooleanOperator] = None
        while True:
            token = self._peek()
            op = self._connective(token)
            if op is None:
                break
            if connective is None:
                connective = op
            elif op != connective:
                raise ParseError(
                    token.position,
                    "ambiguous expression: 'and' and 'or' cannot be mixed "
                    "at the same level without parentheses",
                )
            self._advance()
            operands.append(self._term())

        if connective is None:
            return operands[0]
        return BooleanExpression(operator=connective, operands=tuple(operands))

    def _term(self) -> ExpressionNode:
        if self._peek().kind == LPAREN:
            token = self._advance()
            self._depth += 1
            if self._depth > MAX_NESTING_DEPTH:
                raise ParseError(token.position, "expression nested too deeply")
            node = self._expression()
            self._expect(RPAREN, "')'")
            self._depth -= 1
            return node
        return self._sub_expression()

    def _sub_expression(self) -> SubExpression:
        func_token = self._expect(WORD, "aggregate function")
        try:
            function = AggregateFunction(func_token.text.upper())
        except ValueError:
            names = ", ".join(f.value.lower() for f in AggregateFunction)
            raise ParseError(
                func_token.position,
                f"unknown function {func_token.text!r}; expected one of {names}",
            ) from None

        self._expect(LPAREN, "'('")
        metric_name = self._identifier(self._expect(WORD, "metric name"), "metric name")

        dimensions = None
        if self._peek().kind == LBRACE:
            dimensions = self._dimensions()

        period = DEFAULT_PERIOD
        if self._peek().kind == COMMA:
            self._advance()
            period = self._integer(self._expect(WORD, "period"), "period")
        self._expect(RPAREN, "')'")

        if self._peek().kind == LBRACE:
            if dimensions is not None:
                raise ParseError(self._peek().position, "dimensions specified twice")
            dimensions = self._dimensions()

        operator = self._relational(self._advance())
        threshold = self._number(self._expect(WORD, "threshold"))

        periods = DEFAULT_PERIODS
        if self._at_word("times"):
            self._advance()
            periods = self._integer(self._expect(WORD, "periods count"), "periods count")

        return SubExpression(
            function=function,
            metric_name=metric_name,
            dimensions=tuple(dimensions or ()),
            operator=operator,
            threshold=threshold,
            period=period,
            periods=periods,
        )

    def _dimensions(self) -> List[Tuple[str, str]]:
        self._expect(LBRACE, "'{'")
        pairs: List[Tuple[str, str]] = []
        while True:
            key = self._identifier(self._expect(WORD, "dimension key"), "dimension key")
            self._expect(EQUALS, "'='")
            value = self._identifier(self._expect(WORD, "dimension value"), "dimension value")
            pairs.append((key, value))
            if self._peek().kind == COMMA:
                self._advance()
                continue
            self._expect(RBRACE, "',' or '}'")
            return pairs

    # ---- literal conversion ----

    def _identifier(self, token: Token, what: str) -> str:
        if not IDENTIFIER_PATTERN.match(token.text):
            raise ParseError(token.position, f"invalid {what} {token.text!r}")
        if len(token.text) > MAX_IDENTIFIER_LENGTH:
            raise ParseError(
                token.position,
                f"{what} exceeds {MAX_IDENTIFIER_LENGTH} characters",
            )
        return token.text

    def _relational(self, token: Token) -> RelationalOperator:
        if token.kind == RELOP:
            return RelationalOperator.from_symbol(token.text)
        if token.kind == WORD and token.text.lower() in _RELATIONAL_KEYWORDS:
            return _RELATIONAL_KEYWORDS[token.text.lower()]
        raise ParseError(
            token.position,
            f"expected relational operator but found {token.describe()}",
        )

    def _number(self, token: Token) -> float:
        if not _NUMBER_PATTERN.match(token.text):
            raise ParseError(token.position, f"invalid threshold {token.text!r}")
        return float(token.text)

    def _integer(self, token: Token, what: str) -> int:
        if not _INTEGER_PATTERN.match(token.text):
            raise ParseError(token.position, f"invalid {what} {token.text!r}; expected an integer")
        return int(token.text)


def parse(text: str) -> ExpressionNode:
    """
    解析告警表达式

    Args:
        text: 表达式文本

    Returns:
        表达式树（SubExpression 或 BooleanExpression）

    Raises:
        ParseError: 语法错误，携带出错位置
    """
    if text is None or not text.strip():
        raise ParseError(0, "expression is empty")
    node = _Parser(text).parse()
    logger.debug("expression_parsed", length=len(text))
    return node
