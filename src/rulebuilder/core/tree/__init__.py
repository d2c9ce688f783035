"""Rule tree engine API."""

from typing import Any

from .ast import (
    BOOLEAN,
    DATE,
    NUMBER,
    TEXT,
    Case,
    Condition,
    Conjunction,
    Definition,
    Expression,
    ExpressionGroup,
    FieldRef,
    FunctionArg,
    FunctionCall,
    LabelSource,
    Literal,
    NodeKind,
    Predicate,
    PredicateGroup,
    RuleRef,
    RuleRefCondition,
    WhenClause,
)
from .cardinality import CardinalityResolver
from .catalog import Cardinality, RuleBuilderConfig
from .conditions import RemoveNode
from .consistency import ConsistencyChecker, ConsistencyResult
from .exceptions import (
    ConfigurationError,
    LoadError,
    RuleTreeError,
    StructuralInvariantError,
    UnknownNodeError,
    ValidationWarning,
)
from .naming import NamingSynchronizer
from .serializer import definition_from_dict, definition_to_dict
from .validator import TreeValidator


def load_definition(
    data: dict[str, Any],
    structure: str,
    config: RuleBuilderConfig | None = None,
) -> Definition:
    """Parse and validate a stored rule definition.

    With a ``config``, operators missing from stored groups default to the
    type's configured expression operator.
    """
    default_operator = config.default_expression_operator if config is not None else None
    definition = definition_from_dict(data, structure, default_operator)
    TreeValidator().assert_well_formed(definition)
    return definition


__all__ = [
    "load_definition",
    "definition_from_dict",
    "definition_to_dict",
    "BOOLEAN",
    "DATE",
    "NUMBER",
    "TEXT",
    "Case",
    "Condition",
    "Conjunction",
    "Definition",
    "Expression",
    "ExpressionGroup",
    "FieldRef",
    "FunctionArg",
    "FunctionCall",
    "LabelSource",
    "Literal",
    "NodeKind",
    "Predicate",
    "PredicateGroup",
    "RuleRef",
    "RuleRefCondition",
    "WhenClause",
    "Cardinality",
    "CardinalityResolver",
    "RuleBuilderConfig",
    "RemoveNode",
    "ConsistencyChecker",
    "ConsistencyResult",
    "NamingSynchronizer",
    "TreeValidator",
    "RuleTreeError",
    "ConfigurationError",
    "LoadError",
    "StructuralInvariantError",
    "UnknownNodeError",
    "ValidationWarning",
]
