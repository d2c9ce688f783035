"""Editor configuration: operators, types, functions and rule types.

The catalogue is served by the rule service (``/rules/ui/config``) and is
parsed into pydantic models here. Tree operations never invent defaults the
catalogue is supposed to provide; lookups for a missing required value raise
``ConfigurationError``.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ConfigurationError

NUMERIC_OPERATORS: frozenset[str] = frozenset({"+", "-", "*", "/"})


@dataclass(frozen=True)
class Cardinality:
    """Number of right-hand operands an operator takes.

    Either ``fixed`` is set, or the operator is dynamic and carries
    ``default``/``minimum``/``maximum`` bounds.
    """

    fixed: int | None = None
    default: int | None = None
    minimum: int | None = None
    maximum: int | None = None

    @property
    def is_dynamic(self) -> bool:
        return self.fixed is None and self.default is not None

    def allows(self, count: int) -> bool:
        """Whether ``count`` operands are within this operator's bounds."""
        if not self.is_dynamic:
            return count == self.fixed
        if self.minimum is not None and count < self.minimum:
            return False
        if self.maximum is not None and count > self.maximum:
            return False
        return True

    def clamp(self, count: int) -> int:
        if self.minimum is not None:
            count = max(count, self.minimum)
        if self.maximum is not None:
            count = min(count, self.maximum)
        return count


UNARY = Cardinality(fixed=1)


class _CatalogModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ConditionOperatorDef(_CatalogModel):
    """A comparison operator usable in a predicate."""

    label: str | None = None
    cardinality: int | None = None
    default_cardinality: int | None = Field(None, alias="defaultCardinality")
    min_cardinality: int | None = Field(None, alias="minCardinality")
    max_cardinality: int | None = Field(None, alias="maxCardinality")
    separator: str | None = None

    def to_cardinality(self) -> Cardinality:
        if self.default_cardinality is not None:
            return Cardinality(
                default=self.default_cardinality,
                minimum=self.min_cardinality if self.min_cardinality is not None else 1,
                maximum=self.max_cardinality,
            )
        return Cardinality(fixed=self.cardinality if self.cardinality is not None else 1)


class ExpressionOperatorDef(_CatalogModel):
    """An operator joining operands of an expression group."""

    symbol: str
    label: str | None = None
    numeric: bool = False


class TypeDef(_CatalogModel):
    """Per-return-type defaults and allowed operators."""

    default_condition_operator: str | None = Field(None, alias="defaultConditionOperator")
    default_expression_operator: str | None = Field(None, alias="defaultExpressionOperator")
    valid_condition_operators: list[str] = Field(default_factory=list, alias="validConditionOperators")


class FunctionArgDef(_CatalogModel):
    """Declared argument of a function."""

    name: str
    type: str | None = None
    label: str | None = None
    widget: str | None = None
    options_ref: str | None = Field(None, alias="optionsRef")


class FunctionDef(_CatalogModel):
    """A callable function offered by the editor."""

    return_type: str = Field(..., alias="returnType")
    label: str | None = None
    args: list[FunctionArgDef] = Field(default_factory=list)
    custom_editor: str | None = Field(None, alias="customEditor")


class RuleBuilderConfig(_CatalogModel):
    """The complete editor catalogue."""

    condition_operators: dict[str, ConditionOperatorDef] = Field(
        default_factory=dict, alias="conditionOperators"
    )
    expression_operators: dict[str, ExpressionOperatorDef] = Field(
        default_factory=dict, alias="expressionOperators"
    )
    types: dict[str, TypeDef] = Field(default_factory=dict)
    functions: dict[str, FunctionDef] = Field(default_factory=dict)
    rule_types: list[str] = Field(default_factory=list, alias="ruleTypes")
    default_field: str = Field("TABLE1.NUMBER_FIELD_01", alias="defaultField")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RuleBuilderConfig":
        """Build a catalogue from the service's JSON payload."""
        return cls.model_validate(payload)

    def cardinality_of(self, operator: str | None) -> Cardinality:
        """Cardinality of a condition operator; unknown operators take one operand."""
        if operator is None:
            return UNARY
        definition = self.condition_operators.get(operator)
        if definition is None:
            return UNARY
        return definition.to_cardinality()

    def default_condition_operator(self, return_type: str) -> str:
        type_def = self.types.get(return_type)
        if type_def is None or not type_def.default_condition_operator:
            raise ConfigurationError(
                f"No default condition operator configured for type '{return_type}'",
                key=f"types.{return_type}.defaultConditionOperator",
            )
        return type_def.default_condition_operator

    def default_expression_operator(self, return_type: str) -> str:
        """Symbol of the operator inserted between new operands of ``return_type``."""
        type_def = self.types.get(return_type)
        key = type_def.default_expression_operator if type_def else None
        if not key:
            raise ConfigurationError(
                f"No default expression operator configured for type '{return_type}'",
                key=f"types.{return_type}.defaultExpressionOperator",
            )
        operator = self.expression_operators.get(key)
        return operator.symbol if operator else key

    def available_condition_operators(self, left_type: str | None) -> list[str]:
        """Operators valid for a left operand of ``left_type``."""
        if left_type and left_type in self.types and self.types[left_type].valid_condition_operators:
            return [
                key
                for key in self.types[left_type].valid_condition_operators
                if key in self.condition_operators
            ]
        return list(self.condition_operators)

    @property
    def numeric_operators(self) -> frozenset[str]:
        """Symbols whose presence makes a group evaluate to a number."""
        symbols = {op.symbol for op in self.expression_operators.values() if op.numeric}
        return frozenset(symbols) if symbols else NUMERIC_OPERATORS

    def function(self, name: str) -> FunctionDef:
        definition = self.functions.get(name)
        if definition is None:
            raise ConfigurationError(f"Unknown function '{name}'", key=f"functions.{name}")
        return definition

    def allowed_rule_types(self) -> list[str]:
        """Rule types a reference may target; required for reference widgets."""
        if not self.rule_types:
            raise ConfigurationError("No allowed rule types configured", key="ruleTypes")
        return list(self.rule_types)
