"""
告警定义字段校验测试
"""
import pytest

from alarms import (
    AlarmSeverity,
    DefinitionValidator,
    StaticActionRegistry,
    ValidationError,
    ValidationPolicy,
    parse_dimensions_query,
)
from alarms.validation import parse_severity
from core.config import AlarmPolicySettings


@pytest.fixture
def validator():
    return DefinitionValidator()


class TestDefinitionValidator:
    """默认策略测试"""

    def test_valid_fields(self, validator):
        """测试合法字段的规范化结果"""
        check = validator.validate(
            name="cpu high",
            description="",
            severity="high",
            alarm_actions=["a1"],
            ok_actions=[],
            undetermined_actions=[],
            match_by=["hostname"],
        )
        assert check.severity == AlarmSeverity.HIGH
        assert check.match_by == ["hostname"]
        assert check.warnings == []

    def test_omitted_fields_skipped(self, validator):
        """测试未提供的字段不做校验"""
        check = validator.validate()
        assert check.severity is None
        assert check.match_by is None

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name(self, validator, name):
        """测试空名称"""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(name=name)
        assert exc_info.value.field == "name"

    def test_name_too_long(self, validator):
        """测试超长名称"""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(name="n" * 256)
        assert exc_info.value.field == "name"

    def test_description_too_long(self, validator):
        """测试超长描述"""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(description="d" * 256)
        assert exc_info.value.field == "description"

    def test_unknown_severity(self, validator):
        """测试未知严重级别"""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(severity="urgent")
        assert exc_info.value.field == "severity"
        assert "LOW" in exc_info.value.reason

    def test_all_failures_reported(self, validator):
        """测试多个失败字段一次性报告"""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(name="", severity="bogus", alarm_actions=[""])
        assert exc_info.value.fields == ["name", "severity", "alarm_actions"]

    def test_action_id_too_long(self, validator):
        """测试超长动作 ID"""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(ok_actions=["a" * 51])
        assert exc_info.value.field == "ok_actions"

    def test_action_id_with_whitespace(self, validator):
        """测试带空白的动作 ID"""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(undetermined_actions=[" a1"])
        assert exc_info.value.field == "undetermined_actions"

    def test_duplicate_actions_warn_by_default(self, validator):
        """测试重复动作 ID 默认只产生警告"""
        check = validator.validate(alarm_actions=["a1", "a1"])
        assert check.warnings == ["alarm_actions: duplicate action id 'a1'"]

    def test_duplicate_match_by_rejected_by_default(self, validator):
        """测试重复 match_by 键默认拒绝"""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(match_by=["hostname", "hostname"])
        assert exc_info.value.field == "match_by"

    def test_invalid_match_by_key(self, validator):
        """测试非法 match_by 键"""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(match_by=["host name"])
        assert exc_info.value.field == "match_by"


class TestValidationPolicy:
    """可配置策略测试"""

    def test_reject_duplicate_actions(self):
        """测试拒绝重复动作 ID"""
        validator = DefinitionValidator(ValidationPolicy(reject_duplicate_actions=True))
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(alarm_actions=["a1", "a1"])
        assert exc_info.value.field == "alarm_actions"

    def test_lenient_match_by_deduplicates(self):
        """测试宽松模式下 match_by 去重"""
        validator = DefinitionValidator(ValidationPolicy(reject_duplicate_match_by=False))
        check = validator.validate(match_by=["hostname", "service", "hostname"])
        assert check.match_by == ["hostname", "service"]
        assert len(check.warnings) == 1

    def test_strict_mode_requires_registry(self):
        """测试严格模式必须提供动作注册表"""
        with pytest.raises(ValueError):
            DefinitionValidator(ValidationPolicy(strict_action_validation=True))

    def test_strict_mode_checks_registry(self):
        """测试严格模式校验动作是否存在"""
        registry = StaticActionRegistry(["a1"], tenant_actions={"t1": {"a2"}})
        validator = DefinitionValidator(ValidationPolicy(strict_action_validation=True), registry)

        validator.validate(alarm_actions=["a1", "a2"], tenant_id="t1")

        with pytest.raises(ValidationError) as exc_info:
            validator.validate(alarm_actions=["a1", "a2", "zz"], tenant_id="t1")
        assert exc_info.value.reason == "unknown action id 'zz'"

        with pytest.raises(ValidationError):
            validator.validate(alarm_actions=["a2"], tenant_id="t2")

    def test_from_settings(self):
        """测试从配置构建策略"""
        policy = ValidationPolicy.from_settings(
            AlarmPolicySettings(reject_duplicate_actions=True, name_max_length=10)
        )
        assert policy.reject_duplicate_actions is True
        assert policy.name_max_length == 10


class TestHelpers:
    """辅助解析函数测试"""

    def test_parse_severity_case_insensitive(self):
        assert parse_severity(" medium ") == AlarmSeverity.MEDIUM

    def test_parse_dimensions_query(self):
        """测试维度过滤参数"""
        assert parse_dimensions_query("hostname:web-01, service:monitoring") == {
            "hostname": "web-01",
            "service": "monitoring",
        }

    @pytest.mark.parametrize("text", ["hostname", "a:1,a:2", "host name:x", ":x"])
    def test_invalid_dimensions_query(self, text):
        """测试非法维度过滤参数"""
        with pytest.raises(ValidationError) as exc_info:
            parse_dimensions_query(text)
        assert exc_info.value.field == "dimensions"
