"""Tree nodes for rule definitions.

Expressions, conditions and case structures are tagged variants: each node
class carries a ``TAG`` matching its serialized ``type`` and the unions below
are matched exhaustively with ``match`` statements. Nodes are plain
dataclasses; edit operations build new containers and never share a node
between two parents.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

NUMBER = "number"
TEXT = "text"
DATE = "date"
BOOLEAN = "boolean"

DEFAULT_VALUES: dict[str, Any] = {
    NUMBER: 0,
    TEXT: "",
    BOOLEAN: False,
    DATE: None,
}


def default_value_for(return_type: str | None) -> Any:
    """Return the empty value a new literal of ``return_type`` starts with."""
    return DEFAULT_VALUES.get(return_type or TEXT)


# =============================================================================
# Expressions
# =============================================================================


@dataclass
class Literal:
    """A constant value."""

    TAG: ClassVar[str] = "value"

    return_type: str
    value: Any = None


@dataclass
class FieldRef:
    """A typed field access (e.g. ``TABLE1.NUMBER_FIELD_01``)."""

    TAG: ClassVar[str] = "field"

    return_type: str
    path: str | None = None


@dataclass
class FunctionArg:
    """A named argument of a function call."""

    name: str
    value: "Expression"


@dataclass
class FunctionCall:
    """A call to a configured function."""

    TAG: ClassVar[str] = "function"

    return_type: str
    name: str | None = None
    args: list[FunctionArg] = field(default_factory=list)

    def arg_map(self) -> dict[str, Any]:
        """Flat ``{argName: value}`` view used by custom editors."""
        flat: dict[str, Any] = {}
        for arg in self.args:
            value = arg.value
            flat[arg.name] = value.value if isinstance(value, Literal) else value
        return flat


@dataclass
class RuleRef:
    """A reference to another rule, substituted for a subtree.

    The ``internal_*`` attributes hold the advisory result of the
    consistency check for the referenced rule; they are never serialized.
    """

    TAG: ClassVar[str] = "ruleRef"

    return_type: str
    rule_id: str | None = None
    rule_uuid: str | None = None
    version: int | None = None
    rule_type: str | None = None
    internal_mismatch: bool | None = None
    internal_declared_type: str | None = None
    internal_evaluated_type: str | None = None

    @property
    def is_resolved(self) -> bool:
        """Whether a target rule has been selected."""
        return bool(self.rule_id) and bool(self.rule_uuid)

    @property
    def target(self) -> tuple[str | None, int | None]:
        return self.rule_uuid, self.version


@dataclass
class ExpressionGroup:
    """An n-ary operator chain: ``operands[0] op[0] operands[1] ...``.

    A persisted group always holds at least two operands and exactly one
    operator fewer than operands.
    """

    TAG: ClassVar[str] = "expressionGroup"

    return_type: str
    operands: list["Expression"]
    operators: list[str]


LeafExpression = Union[Literal, FieldRef, FunctionCall, RuleRef]
Expression = Union[Literal, FieldRef, FunctionCall, RuleRef, ExpressionGroup]

EXPRESSION_TYPES: tuple[type, ...] = (Literal, FieldRef, FunctionCall, RuleRef, ExpressionGroup)


# =============================================================================
# Conditions
# =============================================================================


class Conjunction(str, Enum):
    """How the children of a predicate group combine."""

    AND = "AND"
    OR = "OR"


class NodeKind(str, Enum):
    """Structural kinds the naming synchronizer distinguishes."""

    PREDICATE = "condition"
    PREDICATE_GROUP = "conditionGroup"
    RULE_REF = "ruleRef"
    EXPRESSION = "expression"


@dataclass
class Predicate:
    """A single comparison: ``left operator right``.

    ``right`` is ``None`` for operators without operands, a single expression
    for unary-right operators and a list for operators taking several.
    """

    TAG: ClassVar[str] = "condition"
    return_type: ClassVar[str] = BOOLEAN

    name: str
    left: Expression
    operator: str | None
    right: Union[Expression, list[Expression], None]


@dataclass
class PredicateGroup:
    """Child conditions combined under a conjunction, optionally negated."""

    TAG: ClassVar[str] = "conditionGroup"
    return_type: ClassVar[str] = BOOLEAN

    name: str
    children: list["Condition"]
    conjunction: Conjunction = Conjunction.AND
    negate: bool = False


@dataclass
class RuleRefCondition:
    """A boolean rule referenced as a predicate."""

    TAG: ClassVar[str] = "ruleRef"
    return_type: ClassVar[str] = BOOLEAN

    name: str
    rule_ref: RuleRef


Condition = Union[Predicate, PredicateGroup, RuleRefCondition]

CONDITION_TYPES: tuple[type, ...] = (Predicate, PredicateGroup, RuleRefCondition)


def condition_kind(condition: Condition) -> NodeKind:
    """Return the structural kind of a condition node."""
    match condition:
        case Predicate():
            return NodeKind.PREDICATE
        case PredicateGroup():
            return NodeKind.PREDICATE_GROUP
        case RuleRefCondition():
            return NodeKind.RULE_REF
    raise TypeError(f"Not a condition node: {type(condition).__name__}")


def expression_kind(expression: Expression) -> NodeKind:
    """Return the naming kind of an expression node."""
    if isinstance(expression, RuleRef):
        return NodeKind.RULE_REF
    return NodeKind.EXPRESSION


# =============================================================================
# Case
# =============================================================================


class LabelSource(str, Enum):
    """Where a result label came from."""

    DEFAULT = "default"
    REFERENCE = "reference"
    USER = "user"


@dataclass
class WhenClause:
    """One ``WHEN condition THEN result`` branch."""

    when: Condition
    then: Expression
    result_label: str | None = None
    label_source: LabelSource = LabelSource.DEFAULT
    user_modified_since_ref: bool = False


@dataclass
class Case:
    """Ordered when clauses plus the mandatory else result."""

    when_clauses: list[WhenClause]
    else_clause: Expression
    else_label: str | None = None
    else_label_source: LabelSource = LabelSource.DEFAULT
    else_user_modified_since_ref: bool = False

    @property
    def return_type(self) -> str:
        """The case evaluates to the type of its results."""
        return self.else_clause.return_type


Definition = Union[Condition, Case, Expression]
