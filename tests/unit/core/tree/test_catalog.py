import pytest

from rulebuilder.core.tree.catalog import NUMERIC_OPERATORS, Cardinality, RuleBuilderConfig
from rulebuilder.core.tree.exceptions import ConfigurationError


class TestCardinality:
    """Test operator cardinality lookups."""

    def test_fixed_cardinality(self, config):
        """Test operators with a fixed operand count."""
        assert config.cardinality_of("equal") == Cardinality(fixed=1)
        assert config.cardinality_of("between") == Cardinality(fixed=2)
        assert config.cardinality_of("is_null") == Cardinality(fixed=0)

    def test_dynamic_cardinality(self, config):
        """Test operators with a variable operand count."""
        cardinality = config.cardinality_of("in")
        assert cardinality.is_dynamic
        assert cardinality.default == 3
        assert cardinality.minimum == 1
        assert cardinality.maximum == 5

    def test_unknown_operator_is_unary(self, config):
        """Test that unknown or missing operators take one operand."""
        assert config.cardinality_of("no_such_operator") == Cardinality(fixed=1)
        assert config.cardinality_of(None) == Cardinality(fixed=1)

    def test_allows_and_clamp(self):
        """Test bounds checks on a dynamic cardinality."""
        cardinality = Cardinality(default=3, minimum=1, maximum=5)
        assert cardinality.allows(1)
        assert cardinality.allows(5)
        assert not cardinality.allows(0)
        assert not cardinality.allows(6)
        assert cardinality.clamp(9) == 5
        assert cardinality.clamp(0) == 1

    def test_fixed_allows_only_exact_count(self):
        """Test that a fixed cardinality accepts only its own count."""
        assert Cardinality(fixed=2).allows(2)
        assert not Cardinality(fixed=2).allows(1)


class TestDefaults:
    """Test per-type defaults."""

    def test_default_condition_operator(self, config):
        """Test the configured default comparison."""
        assert config.default_condition_operator("number") == "equal"

    def test_missing_default_condition_operator(self, config):
        """Test that a type without a default raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="No default condition operator") as exc_info:
            config.default_condition_operator("currency")
        assert exc_info.value.key == "types.currency.defaultConditionOperator"

    def test_default_expression_operator_returns_symbol(self, config):
        """Test that the operator key resolves to its symbol."""
        assert config.default_expression_operator("number") == "+"
        assert config.default_expression_operator("text") == "||"

    def test_missing_default_expression_operator(self, config):
        """Test that booleans have no default expression operator configured."""
        with pytest.raises(ConfigurationError, match="No default expression operator"):
            config.default_expression_operator("boolean")


class TestLookups:
    """Test operator, function and rule type lookups."""

    def test_available_condition_operators_by_type(self, config):
        """Test that operators are filtered by the left operand's type."""
        assert config.available_condition_operators("date") == ["equal", "between", "is_null"]

    def test_available_condition_operators_without_type(self, config):
        """Test that an unconfigured type offers every operator."""
        assert config.available_condition_operators("boolean") == list(config.condition_operators)
        assert config.available_condition_operators(None) == list(config.condition_operators)

    def test_numeric_operators_from_catalogue(self, config):
        """Test that numeric operator symbols come from the catalogue."""
        assert config.numeric_operators == frozenset({"+", "-", "*", "/"})

    def test_numeric_operators_fallback(self):
        """Test the built-in numeric operators when none are configured."""
        assert RuleBuilderConfig().numeric_operators == NUMERIC_OPERATORS

    def test_function_lookup(self, config):
        """Test function definitions and their arguments."""
        function = config.function("LOOKUP.STATUS")
        assert function.return_type == "text"
        assert function.args[0].options_ref == "statuses"
        assert config.function("DATE.IN_RANGE").custom_editor == "dateRange"

    def test_unknown_function(self, config):
        """Test that an unknown function raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Unknown function 'NOPE'"):
            config.function("NOPE")

    def test_allowed_rule_types(self, config):
        """Test the configured reference rule types."""
        assert config.allowed_rule_types() == ["Reporting", "Validation"]

    def test_missing_rule_types(self, config_payload):
        """Test that an empty rule type list raises ConfigurationError."""
        config_payload["ruleTypes"] = []
        config = RuleBuilderConfig.from_payload(config_payload)
        with pytest.raises(ConfigurationError, match="No allowed rule types") as exc_info:
            config.allowed_rule_types()
        assert exc_info.value.key == "ruleTypes"
