"""Tests for when-condition parsing and evaluation."""

from sshot.conditions import Always, Defined, Equals, evaluate_condition, parse_condition
from sshot.variables import VariableEnvironment


class TestParseCondition:
    """Tests for parse_condition."""

    def test_empty_is_always(self):
        assert parse_condition("") == Always()
        assert parse_condition("   ") == Always()

    def test_equals(self):
        condition = parse_condition("{{.os}} == ubuntu")
        assert isinstance(condition, Equals)
        assert condition.rhs == "ubuntu"

    def test_equals_strips_quotes(self):
        assert parse_condition("{{.os}} == 'ubuntu'").rhs == "ubuntu"
        assert parse_condition('{{.os}} == "ubuntu" ').rhs == "ubuntu"

    def test_defined(self):
        assert parse_condition("nginx_version is defined") == Defined("nginx_version")

    def test_unrecognized_is_always(self):
        """Test unknown syntax fails open."""
        assert parse_condition("{{.os}} != ubuntu") == Always()
        assert parse_condition("a == b == c") == Always()

    def test_str(self):
        assert str(Defined("x")) == "x is defined"
        assert str(Equals("{{.os}}", "ubuntu")) == "{{.os}} == ubuntu"


class TestEvaluate:
    """Tests for evaluate_condition."""

    def test_equals_true_and_false(self):
        assert evaluate_condition("{{.os}} == ubuntu", VariableEnvironment({"os": "ubuntu"}))
        assert not evaluate_condition("{{.os}} == ubuntu", VariableEnvironment({"os": "centos"}))

    def test_equals_missing_variable(self):
        assert not evaluate_condition("{{.os}} == ubuntu", VariableEnvironment())

    def test_defined(self):
        env = VariableEnvironment({"app_version": "1.2"})
        assert evaluate_condition("app_version is defined", env)
        assert not evaluate_condition("db_version is defined", env)

    def test_defined_nested_fact(self):
        env = VariableEnvironment()
        env.merge_facts("system", {"os": {"family": "Debian"}})
        assert evaluate_condition("system.os.family is defined", env)

    def test_fail_open(self):
        assert evaluate_condition("whatever this means", VariableEnvironment())
