"""Expression group normalizer.

Structural edits over expression groups: wrapping a bare expression into a
group, inserting and removing operands, slot replacement, return-type
inference and the load-time collapse of single-operand groups.

All functions are pure: they return new group objects and reuse untouched
operands as-is. ``remove_operand`` may return either a group or the bare
expression left behind, so callers must accept both shapes.
"""

from dataclasses import replace
from typing import Callable, Iterable

from .ast import (
    TEXT,
    Expression,
    ExpressionGroup,
    FieldRef,
    FunctionArg,
    FunctionCall,
    Literal,
    RuleRef,
    default_value_for,
)
from .catalog import NUMERIC_OPERATORS
from .exceptions import StructuralInvariantError

# Looks up the operator inserted between operands of a return type.
OperatorDefault = Callable[[str], str]


def default_leaf(return_type: str | None) -> Literal:
    """A literal holding the empty value for ``return_type``."""
    return_type = return_type or TEXT
    return Literal(return_type=return_type, value=default_value_for(return_type))


def infer_return_type(
    operands: list[Expression],
    operators: list[str],
    numeric_operators: Iterable[str] = NUMERIC_OPERATORS,
) -> str:
    """Infer a group's type.

    Any numeric operator makes the group a number; otherwise the group takes
    the type of its first operand.
    """
    numeric = set(numeric_operators)
    if any(op in numeric for op in operators):
        return "number"
    if not operands:
        return "number"
    return operands[0].return_type or "number"


def _rebuild(
    operands: list[Expression],
    operators: list[str],
    numeric_operators: Iterable[str],
) -> ExpressionGroup:
    return ExpressionGroup(
        return_type=infer_return_type(operands, operators, numeric_operators),
        operands=operands,
        operators=operators,
    )


def operand_type(group: ExpressionGroup) -> str:
    """The type new operands of ``group`` are created with."""
    return group.operands[0].return_type if group.operands else group.return_type


def wrap_as_group(
    expression: Expression,
    default_operator: str,
    numeric_operators: Iterable[str] = NUMERIC_OPERATORS,
) -> ExpressionGroup:
    """Wrap a bare expression into a two-operand group.

    The second operand is a default leaf of the expression's type, joined by
    ``default_operator`` (taken from the caller's type configuration).
    """
    operands = [expression, default_leaf(expression.return_type)]
    operators = [default_operator]
    return ExpressionGroup(
        return_type=infer_return_type(operands, operators, numeric_operators),
        operands=operands,
        operators=operators,
    )


def insert_operand(
    group: ExpressionGroup,
    after_index: int,
    default_operator: str,
    numeric_operators: Iterable[str] = NUMERIC_OPERATORS,
) -> ExpressionGroup:
    """Insert a default operand right after ``after_index``.

    ``operators[i]`` sits between ``operands[i]`` and ``operands[i + 1]``, so
    the new operator goes in at ``after_index``.
    """
    if after_index < 0 or after_index >= len(group.operands):
        raise IndexError(f"Operand index {after_index} out of range")
    operands = list(group.operands)
    operators = list(group.operators)
    operands.insert(after_index + 1, default_leaf(operand_type(group)))
    operators.insert(after_index, default_operator)
    return _rebuild(operands, operators, numeric_operators)


def append_operand(
    group: ExpressionGroup,
    default_operator: str,
    numeric_operators: Iterable[str] = NUMERIC_OPERATORS,
) -> ExpressionGroup:
    """Add a default operand at the end of the group."""
    return insert_operand(group, len(group.operands) - 1, default_operator, numeric_operators)


def remove_operand(
    group: ExpressionGroup,
    index: int,
    numeric_operators: Iterable[str] = NUMERIC_OPERATORS,
) -> Expression:
    """Remove an operand and its adjacent operator.

    Returns the sole remaining operand (collapsed) when only one is left.
    """
    if index < 0 or index >= len(group.operands):
        raise IndexError(f"Operand index {index} out of range")
    operands = list(group.operands)
    operators = list(group.operators)
    del operands[index]
    if operators:
        del operators[index - 1 if index > 0 else 0]

    if not operands:
        raise StructuralInvariantError("Expression group has no operands left")
    if len(operands) == 1:
        return normalize_expression(operands[0], numeric_operators)
    return _rebuild(operands, operators, numeric_operators)


def update_operand(
    group: ExpressionGroup,
    index: int,
    expression: Expression,
    numeric_operators: Iterable[str] = NUMERIC_OPERATORS,
) -> ExpressionGroup:
    operands = list(group.operands)
    operands[index] = expression
    return _rebuild(operands, list(group.operators), numeric_operators)


def update_operator(
    group: ExpressionGroup,
    index: int,
    operator: str,
    numeric_operators: Iterable[str] = NUMERIC_OPERATORS,
) -> ExpressionGroup:
    operators = list(group.operators)
    operators[index] = operator
    return _rebuild(list(group.operands), operators, numeric_operators)


def _padding_operator(
    operands: list[Expression],
    operators: list[str],
    default_operator: OperatorDefault | None,
) -> str:
    if default_operator is not None:
        return default_operator(operands[0].return_type)
    if operators:
        return operators[-1]
    raise StructuralInvariantError(
        f"Expression group with {len(operands)} operands has no operators"
    )


def normalize_expression(
    expression: Expression,
    numeric_operators: Iterable[str] = NUMERIC_OPERATORS,
    default_operator: OperatorDefault | None = None,
) -> Expression:
    """Collapse single-operand groups, recursively.

    Groups received from storage may hold a single operand (possibly itself a
    one-operand group); such groups are replaced by the expression they
    contain. Operator lists are trimmed or padded to ``len(operands) - 1``;
    padding uses ``default_operator`` for the operands' type when given and
    repeats the last stored operator otherwise.

    Raises:
        StructuralInvariantError: If a group has no operands, or has to be
            padded with neither a stored operator nor a default.
        ConfigurationError: If ``default_operator`` knows no operator for
            the operands' type.
    """
    match expression:
        case ExpressionGroup(operands=operands, operators=operators):
            if not operands:
                raise StructuralInvariantError("Expression group has no operands")
            normalized = [
                normalize_expression(op, numeric_operators, default_operator) for op in operands
            ]
            if len(normalized) == 1:
                return normalized[0]
            fixed_operators = list(operators[: len(normalized) - 1])
            missing = len(normalized) - 1 - len(fixed_operators)
            if missing:
                filler = _padding_operator(normalized, fixed_operators, default_operator)
                fixed_operators.extend([filler] * missing)
            return ExpressionGroup(
                return_type=infer_return_type(normalized, fixed_operators, numeric_operators),
                operands=normalized,
                operators=fixed_operators,
            )
        case FunctionCall(args=args):
            return replace(
                expression,
                args=[
                    FunctionArg(
                        name=arg.name,
                        value=normalize_expression(arg.value, numeric_operators, default_operator),
                    )
                    for arg in args
                ],
            )
        case Literal() | FieldRef() | RuleRef():
            return expression
    raise TypeError(f"Not an expression node: {type(expression).__name__}")


def retype(expression: Expression, return_type: str) -> Expression:
    """Rewrite the declared type tag of an expression, deeply for groups.

    Values are never coerced; only ``return_type`` changes.
    """
    match expression:
        case ExpressionGroup(operands=operands):
            return replace(
                expression,
                return_type=return_type,
                operands=[retype(operand, return_type) for operand in operands],
                operators=list(expression.operators),
            )
        case Literal() | FieldRef() | FunctionCall() | RuleRef():
            return replace(expression, return_type=return_type)
    raise TypeError(f"Not an expression node: {type(expression).__name__}")


def change_source(expression: Expression, source: str, default_field: str | None = None) -> Expression:
    """Switch a leaf to another source kind, keeping its return type.

    ``source`` is one of ``value``, ``field``, ``function`` or ``ruleRef``.
    """
    return_type = expression.return_type
    match source:
        case "value":
            return default_leaf(return_type)
        case "field":
            return FieldRef(return_type=return_type, path=default_field)
        case "function":
            return FunctionCall(return_type=return_type)
        case "ruleRef":
            return RuleRef(return_type=return_type)
    raise ValueError(f"Unknown expression source '{source}'")
