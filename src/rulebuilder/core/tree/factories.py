"""Default node constructors.

Centralized creation of new predicates, groups, references and case clauses
so every edit operation synthesizes the same shapes.
"""

from .ast import (
    BOOLEAN,
    NUMBER,
    Case,
    Conjunction,
    FieldRef,
    Predicate,
    PredicateGroup,
    RuleRef,
    RuleRefCondition,
    WhenClause,
)
from .catalog import RuleBuilderConfig
from .expressions import default_leaf


def default_predicate(config: RuleBuilderConfig, name: str, return_type: str = NUMBER) -> Predicate:
    """A ``field <default operator> <empty value>`` predicate of ``return_type``."""
    return Predicate(
        name=name,
        left=FieldRef(return_type=return_type, path=config.default_field),
        operator=config.default_condition_operator(return_type),
        right=default_leaf(return_type),
    )


def default_predicate_group(
    config: RuleBuilderConfig,
    name: str,
    child_names: tuple[str, str] = ("Condition 1", "Condition 2"),
) -> PredicateGroup:
    """A group pre-filled with two default predicates."""
    return PredicateGroup(
        name=name,
        children=[default_predicate(config, child_name) for child_name in child_names],
        conjunction=Conjunction.AND,
        negate=False,
    )


def empty_rule_ref(return_type: str = BOOLEAN) -> RuleRef:
    """A reference with no target selected yet."""
    return RuleRef(return_type=return_type, version=1)


def default_rule_ref_condition(name: str) -> RuleRefCondition:
    return RuleRefCondition(name=name, rule_ref=empty_rule_ref())


def default_when_clause(config: RuleBuilderConfig, condition_name: str, return_type: str) -> WhenClause:
    return WhenClause(
        when=default_predicate(config, condition_name),
        then=default_leaf(return_type),
    )


def default_case(config: RuleBuilderConfig, return_type: str = NUMBER) -> Case:
    """A case with one when clause and the ``Default`` else result."""
    return Case(
        when_clauses=[default_when_clause(config, "Condition 1", return_type)],
        else_clause=default_leaf(return_type),
        else_label=None,
    )
