"""
表达式校验与规范化测试
"""
import pytest

from alarms import (
    AggregateFunction,
    BooleanExpression,
    BooleanOperator,
    RelationalOperator,
    SubExpression,
    ValidationError,
    expression_from_dict,
    expression_to_dict,
    parse,
    parse_and_normalize,
    validate_and_normalize,
)


def _sub(**overrides) -> SubExpression:
    params = dict(
        function=AggregateFunction.AVG,
        metric_name="cpu",
        operator=RelationalOperator.GT,
        threshold=1.0,
    )
    params.update(overrides)
    return SubExpression(**params)


class TestCanonicalText:
    """规范文本测试"""

    @pytest.mark.parametrize("text,expected", [
        ("avg(cpu{host=x}) > 10", "avg(cpu{host=x}) > 10.0"),
        ("max(cpu, 120) >= 5 times 3", "max(cpu, 120) >= 5.0 times 3"),
        ("avg(cpu{b=2, a=1}, 300) < 1", "avg(cpu{a=1, b=2}, 300) < 1.0"),
        ("avg(cpu, 60) > 1 times 1", "avg(cpu) > 1.0"),
        ("avg(a) gt 1", "avg(a) > 1.0"),
        ("COUNT(requests) lte 0", "count(requests) <= 0.0"),
        ("avg(a) > 1 AND max(b) < 2", "avg(a) > 1.0 and max(b) < 2.0"),
        ("(avg(a) > 1 and max(b) < 2) or min(c) > 3", "(avg(a) > 1.0 and max(b) < 2.0) or min(c) > 3.0"),
    ])
    def test_render(self, text, expected):
        """测试规范文本格式"""
        assert parse_and_normalize(text).canonical == expected

    def test_same_connective_flattened(self):
        """测试同类连接词的嵌套被展开"""
        result = parse_and_normalize("avg(a) > 1 and (max(b) < 2 and min(c) > 3)")
        assert result.canonical == "avg(a) > 1.0 and max(b) < 2.0 and min(c) > 3.0"
        assert len(result.tree.operands) == 3

    def test_keeps_original_text(self):
        """测试保留原始文本"""
        text = "avg(cpu)>10"
        assert parse_and_normalize(text).text == text


class TestConvergence:
    """语义相同输入的收敛测试"""

    def test_spelling_variants_converge(self):
        """测试空白、大小写、维度位置与默认值写法不影响规范文本"""
        variants = [
            "avg(cpu{host=x})>10",
            "  avg( cpu { host = x } ) > 10.0 ",
            "AVG(cpu){host=x} gt 10",
            "avg(cpu{host=x}, 60) > 1e1 times 1",
        ]
        canonicals = {parse_and_normalize(v).canonical for v in variants}
        assert canonicals == {"avg(cpu{host=x}) > 10.0"}

    def test_negative_zero_threshold_converges(self):
        """测试 -0 与 0 阈值得到相同的规范文本"""
        assert parse_and_normalize("avg(x) > -0").canonical == "avg(x) > 0.0"
        assert parse_and_normalize("avg(x) > -0.0").canonical == parse_and_normalize("avg(x) > 0").canonical

    @pytest.mark.parametrize("text", [
        "avg(cpu{b=2,a=1}, 300) < 1",
        "max(disk.used{mount=root}) >= 1e20 times 4",
        "min(temp) < -5 or (sum(x) > 1 and count(y) > 2)",
    ])
    def test_canonical_is_fixed_point(self, text):
        """测试规范文本再次规范化结果不变"""
        canonical = parse_and_normalize(text).canonical
        assert parse_and_normalize(canonical).canonical == canonical

    def test_dimension_order_does_not_affect_equality(self):
        """测试维度顺序不影响子表达式相等性"""
        a = parse("avg(cpu{a=1,b=2}) > 1")
        b = parse("avg(cpu{b=2,a=1}) > 1")
        assert a == b
        assert hash(a) == hash(b)

    def test_dict_form_round_trip(self):
        """测试结构化表示可以还原规范化树"""
        tree = parse_and_normalize("avg(a{h=1}) > 1 and max(b, 120) < 2 times 3").tree
        assert expression_from_dict(expression_to_dict(tree)) == tree


class TestExpressionValidation:
    """表达式语义校验测试"""

    def test_periods_must_be_positive(self):
        """测试 times 0"""
        with pytest.raises(ValidationError) as exc_info:
            parse_and_normalize("avg(cpu) > 1 times 0")
        assert exc_info.value.field == "expression"
        assert "periods" in exc_info.value.reason

    @pytest.mark.parametrize("text", ["avg(cpu, 0) > 1", "avg(cpu, -60) > 1"])
    def test_period_must_be_positive(self, text):
        """测试非正数周期"""
        with pytest.raises(ValidationError) as exc_info:
            parse_and_normalize(text)
        assert "period" in exc_info.value.reason

    def test_duplicate_dimension_key(self):
        """测试重复维度键"""
        with pytest.raises(ValidationError) as exc_info:
            parse_and_normalize("avg(cpu{host=a, host=b}) > 1")
        assert "duplicate dimension key" in exc_info.value.reason

    def test_overflowing_threshold(self):
        """测试溢出为无穷大的阈值"""
        with pytest.raises(ValidationError) as exc_info:
            parse_and_normalize("avg(cpu) > 1e400")
        assert "finite" in exc_info.value.reason

    def test_errors_collected_across_operands(self):
        """测试一次报告所有子表达式的问题"""
        with pytest.raises(ValidationError) as exc_info:
            parse_and_normalize("avg(cpu, 0) > 1 and max(mem) > 1 times 0")
        reasons = [e.reason for e in exc_info.value.errors]
        assert len(reasons) == 2
        assert reasons[0].startswith("expression[0]")
        assert reasons[1].startswith("expression[1]")

    def test_boolean_needs_two_operands(self):
        """测试只有一个操作数的布尔节点"""
        tree = BooleanExpression(operator=BooleanOperator.AND, operands=(_sub(),))
        with pytest.raises(ValidationError):
            validate_and_normalize(tree)

    def test_invalid_identifiers_in_tree(self):
        """测试直接构造的树中的非法标识符"""
        tree = _sub(metric_name="bad metric", dimensions=(("ok", "bad value"),))
        with pytest.raises(ValidationError) as exc_info:
            validate_and_normalize(tree)
        assert len(exc_info.value.errors) == 2

    def test_valid_tree_returns_tree_and_text(self):
        """测试合法树的返回值"""
        tree, canonical = validate_and_normalize(_sub(dimensions=(("b", "2"), ("a", "1"))))
        assert tree.dimensions == (("a", "1"), ("b", "2"))
        assert canonical == "avg(cpu{a=1, b=2}) > 1.0"
