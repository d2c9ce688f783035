"""Transport format for rule trees.

Converts tree nodes to and from the JSON-compatible dictionaries the rule
service stores. Loading normalizes what storage may hold (single-operand
groups collapse, missing return types are inferred); dumping emits only
domain fields, so no editor state ever reaches persistence.
"""

from typing import Any

from .ast import (
    BOOLEAN,
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
from .case import ELSE_PATH, resolve_else_label, resolve_result_label, then_path
from .catalog import NUMERIC_OPERATORS
from .consistency import STRUCTURE_CASE, STRUCTURE_CONDITION, STRUCTURE_EXPRESSION
from .exceptions import UnknownNodeError
from .expressions import OperatorDefault, infer_return_type, normalize_expression
from .naming import NamingSynchronizer, positional_label

STRUCTURES = (STRUCTURE_CONDITION, STRUCTURE_CASE, STRUCTURE_EXPRESSION)


def _literal_type(value: Any) -> str:
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, (int, float)):
        return NUMBER
    return TEXT


# =============================================================================
# Expressions
# =============================================================================


def _expression_from_dict(data: dict[str, Any]) -> Expression:
    if not isinstance(data, dict):
        raise UnknownNodeError(f"Expected an expression object, got {type(data).__name__}")
    node_type = data.get("type")
    return_type = data.get("returnType")

    match node_type:
        case "value":
            value = data.get("value")
            return Literal(return_type=return_type or _literal_type(value), value=value)
        case "field":
            return FieldRef(return_type=return_type or TEXT, path=data.get("field"))
        case "function":
            function = data.get("function") or {}
            args = [
                FunctionArg(name=arg.get("name"), value=_expression_from_dict(arg.get("value")))
                for arg in function.get("args") or []
            ]
            return FunctionCall(return_type=return_type or TEXT, name=function.get("name"), args=args)
        case "ruleRef":
            return RuleRef(
                return_type=return_type or TEXT,
                rule_id=data.get("id"),
                rule_uuid=data.get("uuid"),
                version=data.get("version"),
                rule_type=data.get("ruleType"),
            )
        case "expressionGroup":
            operands = [_expression_from_dict(item) for item in data.get("expressions") or []]
            operators = list(data.get("operators") or [])
            inferred = infer_return_type(operands, operators, NUMERIC_OPERATORS) if operands else NUMBER
            return ExpressionGroup(
                return_type=return_type or inferred,
                operands=operands,
                operators=operators,
            )
    raise UnknownNodeError(f"Unknown expression type '{node_type}'")


def expression_from_dict(data: dict[str, Any], default_operator: OperatorDefault | None = None) -> Expression:
    """Parse a stored expression, collapsing single-operand groups.

    ``default_operator`` fills in operators missing from stored groups.
    """
    return normalize_expression(_expression_from_dict(data), NUMERIC_OPERATORS, default_operator)


def _rule_ref_fields(ref: RuleRef) -> dict[str, Any]:
    fields = {"id": ref.rule_id, "uuid": ref.rule_uuid, "version": ref.version}
    if ref.rule_type is not None:
        fields["ruleType"] = ref.rule_type
    return fields


def expression_to_dict(expression: Expression) -> dict[str, Any]:
    match expression:
        case Literal(return_type=return_type, value=value):
            return {"type": Literal.TAG, "returnType": return_type, "value": value}
        case FieldRef(return_type=return_type, path=path):
            return {"type": FieldRef.TAG, "returnType": return_type, "field": path}
        case FunctionCall(return_type=return_type, name=name, args=args):
            return {
                "type": FunctionCall.TAG,
                "returnType": return_type,
                "function": {
                    "name": name,
                    "args": [{"name": arg.name, "value": expression_to_dict(arg.value)} for arg in args],
                },
            }
        case RuleRef():
            return {"type": RuleRef.TAG, "returnType": expression.return_type, **_rule_ref_fields(expression)}
        case ExpressionGroup(return_type=return_type, operands=operands, operators=operators):
            return {
                "type": ExpressionGroup.TAG,
                "returnType": return_type,
                "expressions": [expression_to_dict(operand) for operand in operands],
                "operators": list(operators),
            }
    raise UnknownNodeError(f"Not an expression node: {type(expression).__name__}")


# =============================================================================
# Conditions
# =============================================================================


def _right_from_dict(
    right: Any,
    default_operator: OperatorDefault | None = None,
) -> Expression | list[Expression] | None:
    if right is None:
        return None
    if isinstance(right, list):
        return [expression_from_dict(item, default_operator) for item in right]
    return expression_from_dict(right, default_operator)


def condition_from_dict(
    data: dict[str, Any],
    path: str = "root",
    default_operator: OperatorDefault | None = None,
) -> Condition:
    """Parse a stored condition.

    A ``condition`` carrying a ``ruleRef`` object is a rule used as a
    predicate. Nameless nodes get their positional default label.
    """
    if not isinstance(data, dict):
        raise UnknownNodeError(f"Expected a condition object, got {type(data).__name__}")
    node_type = data.get("type")

    if node_type in ("condition", "ruleRef") and isinstance(data.get("ruleRef"), dict):
        ref = data["ruleRef"]
        rule_ref = RuleRef(
            return_type=ref.get("returnType") or BOOLEAN,
            rule_id=ref.get("id"),
            rule_uuid=ref.get("uuid"),
            version=ref.get("version"),
            rule_type=ref.get("ruleType"),
        )
        default = rule_ref.rule_id or positional_label(path, NodeKind.RULE_REF)
        return RuleRefCondition(name=data.get("name") or default, rule_ref=rule_ref)

    if node_type == "condition":
        return Predicate(
            name=data.get("name") or positional_label(path, NodeKind.PREDICATE),
            left=expression_from_dict(data.get("left"), default_operator),
            operator=data.get("operator"),
            right=_right_from_dict(data.get("right"), default_operator),
        )

    if node_type == "conditionGroup":
        children = [
            condition_from_dict(child, f"{path}-condition-{index}", default_operator)
            for index, child in enumerate(data.get("conditions") or [])
        ]
        return PredicateGroup(
            name=data.get("name") or positional_label(path, NodeKind.PREDICATE_GROUP),
            children=children,
            conjunction=Conjunction(data.get("conjunction") or Conjunction.AND.value),
            negate=bool(data.get("not", False)),
        )

    raise UnknownNodeError(f"Unknown condition type '{node_type}'")


def condition_to_dict(condition: Condition) -> dict[str, Any]:
    match condition:
        case Predicate(name=name, left=left, operator=operator, right=right):
            if right is None:
                right_data = None
            elif isinstance(right, list):
                right_data = [expression_to_dict(item) for item in right]
            else:
                right_data = expression_to_dict(right)
            return {
                "type": Predicate.TAG,
                "returnType": BOOLEAN,
                "name": name,
                "left": expression_to_dict(left),
                "operator": operator,
                "right": right_data,
            }
        case PredicateGroup(name=name, children=children, conjunction=conjunction, negate=negate):
            return {
                "type": PredicateGroup.TAG,
                "returnType": BOOLEAN,
                "name": name,
                "conjunction": Conjunction(conjunction).value,
                "not": negate,
                "conditions": [condition_to_dict(child) for child in children],
            }
        case RuleRefCondition(name=name, rule_ref=rule_ref):
            return {
                "type": Predicate.TAG,
                "returnType": BOOLEAN,
                "name": name,
                "ruleRef": {**_rule_ref_fields(rule_ref), "returnType": rule_ref.return_type},
            }
    raise UnknownNodeError(f"Not a condition node: {type(condition).__name__}")


# =============================================================================
# Case
# =============================================================================


def _label_from_stored(
    stored: str | None,
    result: Expression,
    default: str,
) -> tuple[str | None, LabelSource, bool]:
    """Recover label provenance from a stored result name."""
    if not stored or stored == default:
        return None, LabelSource.DEFAULT, False
    if isinstance(result, RuleRef) and result.is_resolved and stored == result.rule_id:
        return stored, LabelSource.REFERENCE, False
    return stored, LabelSource.USER, True


def case_from_dict(data: dict[str, Any], default_operator: OperatorDefault | None = None) -> Case:
    if not isinstance(data, dict) or "elseClause" not in data:
        raise UnknownNodeError("Case definition requires an elseClause")
    clauses = []
    for index, item in enumerate(data.get("whenClauses") or []):
        then = expression_from_dict(item.get("then"), default_operator)
        label, source, modified = _label_from_stored(
            item.get("resultName"), then, positional_label(then_path(index), NodeKind.EXPRESSION)
        )
        clauses.append(
            WhenClause(
                when=condition_from_dict(item.get("when"), f"case-when-{index}", default_operator),
                then=then,
                result_label=label,
                label_source=source,
                user_modified_since_ref=modified,
            )
        )
    else_clause = expression_from_dict(data.get("elseClause"), default_operator)
    else_label, else_source, else_modified = _label_from_stored(
        data.get("elseResultName"), else_clause, positional_label(ELSE_PATH, NodeKind.EXPRESSION)
    )
    return Case(
        when_clauses=clauses,
        else_clause=else_clause,
        else_label=else_label,
        else_label_source=else_source,
        else_user_modified_since_ref=else_modified,
    )


def case_to_dict(case: Case) -> dict[str, Any]:
    """Dump a case with every result name resolved to its effective label."""
    naming = NamingSynchronizer()
    return {
        "whenClauses": [
            {
                "when": condition_to_dict(clause.when),
                "then": expression_to_dict(clause.then),
                "resultName": resolve_result_label(case, index, naming),
            }
            for index, clause in enumerate(case.when_clauses)
        ],
        "elseClause": expression_to_dict(case.else_clause),
        "elseResultName": resolve_else_label(case, naming),
    }


# =============================================================================
# Definitions
# =============================================================================


def structure_of(definition: Definition) -> str:
    if isinstance(definition, Case):
        return STRUCTURE_CASE
    if isinstance(definition, (Predicate, PredicateGroup, RuleRefCondition)):
        return STRUCTURE_CONDITION
    return STRUCTURE_EXPRESSION


def definition_from_dict(
    data: dict[str, Any],
    structure: str,
    default_operator: OperatorDefault | None = None,
) -> Definition:
    """Parse a rule definition according to the rule's ``structure``."""
    match structure:
        case "condition":
            return condition_from_dict(data, default_operator=default_operator)
        case "case":
            return case_from_dict(data, default_operator)
        case "expression":
            return expression_from_dict(data, default_operator)
    raise UnknownNodeError(f"Unknown rule structure '{structure}'")


def definition_to_dict(definition: Definition) -> dict[str, Any]:
    match structure_of(definition):
        case "condition":
            return condition_to_dict(definition)
        case "case":
            return case_to_dict(definition)
    return expression_to_dict(definition)
